import csv
import sys
import logging
from decimal import Context, Decimal
from typing import Iterable, TextIO

from config import get_settings
from engine import PaymentsEngine
from ledger import Ledger
from models import AccountSummary

FIELDNAMES = ["client", "available", "held", "total", "locked"]
FOUR_PLACES = Decimal("0.0001")
# Wide enough for any balance the ledger context can hold
OUTPUT_CONTEXT = Context(prec=64)


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    return f"{value.quantize(FOUR_PLACES, context=OUTPUT_CONTEXT):f}"


def write_accounts(accounts: Iterable[AccountSummary], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(FIELDNAMES)
    for account in accounts:
        writer.writerow([
            account.client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if len(argv) != 1:
        print("Usage: python main.py <input.csv>", file=sys.stderr)
        return 1

    engine = PaymentsEngine(
        num_workers=settings.workers,
        ledger=Ledger(history_scope=settings.history_scope),
    )
    try:
        accounts = engine.process_file(argv[0])
    except OSError as e:
        print(f"Could not read {argv[0]}: {e}", file=sys.stderr)
        return 1

    write_accounts(accounts.values(), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
