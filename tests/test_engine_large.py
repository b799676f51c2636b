import sys
import os
import random
from decimal import Decimal

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from engine import PaymentsEngine


def random_rows(seed: int, num_clients: int, num_rows: int):
    """Deterministic mix of every transaction type, including bad references."""
    rng = random.Random(seed)
    rows = ["type, client, tx, amount"]
    made = {}
    for tx_id in range(1, num_rows + 1):
        client_id = rng.randint(1, num_clients)
        kind = rng.choices(
            ["deposit", "withdraw", "dispute", "resolve", "chargeback"],
            weights=[45, 30, 12, 10, 3],
        )[0]
        if kind in ("deposit", "withdraw"):
            amount = Decimal(rng.randint(1, 1_000_000)) / 10000
            rows.append(f"{kind}, {client_id}, {tx_id}, {amount}")
            made.setdefault(client_id, []).append(tx_id)
        else:
            candidates = made.get(client_id) or [tx_id]
            rows.append(f"{kind}, {client_id}, {rng.choice(candidates)},")
    return rows


class TestPaymentsEngineLargeScale:
    def test_1000_accounts_6000_transactions(self, tmp_path):
        num_clients = 1000
        rows = ["type, client, tx, amount"]
        tx_id = 1

        # Each client: deposits 100 + 200 + 300, withdrawals 50 + 100, one rejected
        # withdrawal of 1000, then an extra deposit of 50 = 500
        for client_id in range(1, num_clients + 1):
            for kind, amount in [
                ("deposit", 100), ("deposit", 200), ("deposit", 300),
                ("withdraw", 50), ("withdraw", 100), ("withdraw", 1000),
            ]:
                rows.append(f"{kind}, {client_id}, {tx_id}, {amount}")
                tx_id += 1

        for client_id in range(1, num_clients + 1):
            rows.append(f"deposit, {client_id}, {tx_id}, 50")
            tx_id += 1

        csv_file = tmp_path / "large_test.csv"
        csv_file.write_text('\n'.join(rows))

        engine = PaymentsEngine(num_workers=10)
        accounts = engine.process_file(str(csv_file))

        assert len(accounts) == num_clients
        assert list(accounts) == list(range(1, num_clients + 1))
        assert engine.stats.failed == num_clients

        for client_id in range(1, num_clients + 1):
            assert accounts[client_id].available == Decimal("500"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

    def test_with_disputes_resolves_chargebacks(self, tmp_path):
        rows = ["type, client, tx, amount"]

        def deposits(client_id, *amounts):
            for i, amount in enumerate(amounts, start=1):
                rows.append(f"deposit, {client_id}, {client_id * 100 + i}, {amount}")

        # 1-10: deposits only -> 500
        for client_id in range(1, 11):
            deposits(client_id, 100, 150, 250)

        # 11-20: dispute then resolve -> 500
        for client_id in range(11, 21):
            deposits(client_id, 100, 150, 250)
        for client_id in range(11, 21):
            rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")
        for client_id in range(11, 21):
            rows.append(f"resolve, {client_id}, {client_id * 100 + 1},")

        # 21-30: dispute then chargeback -> 400, locked
        for client_id in range(21, 31):
            deposits(client_id, 100, 150, 250)
        for client_id in range(21, 31):
            rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")
        for client_id in range(21, 31):
            rows.append(f"chargeback, {client_id}, {client_id * 100 + 1},")

        # 31-40: withdrawal, then its deposit disputed -> available 150, held 150
        for client_id in range(31, 41):
            deposits(client_id, 150, 250)
            rows.append(f"withdraw, {client_id}, {client_id * 100 + 3}, 100")
        for client_id in range(31, 41):
            rows.append(f"dispute, {client_id}, {client_id * 100 + 1},")

        # 41-50: withdrawal itself disputed -> available 400, held 100
        for client_id in range(41, 51):
            deposits(client_id, 200, 400)
            rows.append(f"withdraw, {client_id}, {client_id * 100 + 3}, 100")
        for client_id in range(41, 51):
            rows.append(f"dispute, {client_id}, {client_id * 100 + 3},")

        csv_file = tmp_path / "disputes_test.csv"
        csv_file.write_text('\n'.join(rows))

        engine = PaymentsEngine(num_workers=10)
        accounts = engine.process_file(str(csv_file))

        for client_id in range(1, 21):
            assert accounts[client_id].available == Decimal("500"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].locked is False

        for client_id in range(21, 31):
            assert accounts[client_id].available == Decimal("400"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("0")
            assert accounts[client_id].total == Decimal("400")
            assert accounts[client_id].locked is True

        for client_id in range(31, 41):
            assert accounts[client_id].available == Decimal("150"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("150")
            assert accounts[client_id].total == Decimal("300")

        for client_id in range(41, 51):
            assert accounts[client_id].available == Decimal("400"), f"Client {client_id}"
            assert accounts[client_id].held == Decimal("100")
            assert accounts[client_id].total == Decimal("500")

    def test_sharded_matches_sync(self, tmp_path):
        csv_file = tmp_path / "random.csv"
        csv_file.write_text('\n'.join(random_rows(seed=7, num_clients=200, num_rows=20000)))

        sync_accounts = PaymentsEngine(num_workers=1).process_file(str(csv_file))
        sharded_accounts = PaymentsEngine(num_workers=8).process_file(str(csv_file))

        assert list(sync_accounts) == list(sharded_accounts)
        assert sync_accounts == sharded_accounts

        for summary in sync_accounts.values():
            assert summary.available + summary.held == summary.total
            assert summary.held >= 0
