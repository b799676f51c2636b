import threading
from dataclasses import dataclass
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow
from enum import Enum
from typing import Optional

MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 2**32 - 1

# Amounts are exact to 4 places and below 10**15
AMOUNT_PLACES = 4
MAX_AMOUNT = Decimal(10) ** 15

# Balance arithmetic raises instead of rounding
LEDGER_CONTEXT = Context(prec=34, traps=[InvalidOperation, DivisionByZero, Overflow, Inexact])


def is_valid_amount(amount: Decimal) -> bool:
    """Finite, positive, below MAX_AMOUNT and with at most AMOUNT_PLACES significant decimals."""
    if not amount.is_finite() or amount <= 0 or amount >= MAX_AMOUNT:
        return False
    return amount == amount.quantize(Decimal(1).scaleb(-AMOUNT_PLACES), context=Context(prec=34))


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @classmethod
    def _missing_(cls, value):
        # Some feeds spell it out in full
        if value == "withdrawal":
            return cls.WITHDRAW
        return None

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAW)


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass(frozen=True)
class AccountSummary:
    """Read-only snapshot of an account, used for reporting."""

    client_id: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


class ProcessingStats:
    """Thread-safe counters for tracking processing statistics."""

    def __init__(self):
        self._lock = threading.Lock()
        self.processed = 0
        self.failed = 0
        self.skipped = 0

    def record_success(self):
        with self._lock:
            self.processed += 1

    def record_failure(self):
        with self._lock:
            self.failed += 1

    def record_skip(self):
        with self._lock:
            self.skipped += 1

    def __repr__(self) -> str:
        return f"Processed: {self.processed}, Failed: {self.failed}, Skipped: {self.skipped}"
