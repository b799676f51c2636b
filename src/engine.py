import csv
import logging
import threading
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

from errors import RejectedTransaction
from ledger import Ledger
from message_queue import InMemoryQueue
from models import (
    MAX_CLIENT_ID,
    MAX_TRANSACTION_ID,
    AccountSummary,
    ProcessingStats,
    Transaction,
    TransactionType,
    is_valid_amount,
)

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Replays a transaction log against a Ledger.

    With one worker transactions are applied synchronously in input order.
    With more, transactions are sharded by client onto one queue per worker,
    which keeps every client's transactions in their original order.
    """

    def __init__(self, num_workers: int = 1, ledger: Optional[Ledger] = None):
        if num_workers < 1:
            raise ValueError(f"num_workers must be at least 1, got {num_workers}")
        self._num_workers = num_workers
        self._ledger = ledger if ledger is not None else Ledger()
        self._stats = ProcessingStats()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, AccountSummary]:
        """Process CSV file and return final account states."""
        # Undecodable bytes become U+FFFD so only the affected row fails to parse
        with open(filepath, "r", newline="", encoding="utf-8", errors="replace") as f:
            return self.process_rows(csv.DictReader(f))

    def process_rows(self, rows: Iterable[Dict[str, str]]) -> Dict[int, AccountSummary]:
        return self.process_transactions(self._parse_rows(rows))

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, AccountSummary]:
        logger.info(f"Starting processing with {self._num_workers} worker(s)")

        if self._num_workers == 1:
            for transaction in transactions:
                self._apply(transaction)
        else:
            self._process_sharded(transactions)

        logger.info(f"Processing complete. {self._stats}")
        return {summary.client_id: summary for summary in self._ledger.accounts()}

    def _process_sharded(self, transactions: Iterable[Transaction]) -> None:
        queues = [InMemoryQueue() for _ in range(self._num_workers)]
        worker_threads = []
        for queue in queues:
            worker_thread = threading.Thread(target=self._consume_transactions, args=(queue,))
            worker_thread.start()
            worker_threads.append(worker_thread)

        try:
            for transaction in transactions:
                # Registering here fixes output order to the order clients appear in the input
                self._ledger.get_or_create_account(transaction.client_id)
                queues[transaction.client_id % self._num_workers].publish_message(transaction)
        finally:
            for queue in queues:
                queue.shutdown()
            for worker_thread in worker_threads:
                worker_thread.join()

    def _consume_transactions(self, queue: InMemoryQueue) -> None:
        """Worker loop: pull from one shard queue until it is drained."""
        while True:
            transaction = queue.consume_message()
            if transaction is None:
                if queue.is_drained():
                    break
                continue
            self._apply(transaction)

    def _apply(self, transaction: Transaction) -> None:
        try:
            self._ledger.apply_transaction(transaction)
        except RejectedTransaction as e:
            self._stats.record_failure()
            logger.warning(f"Rejected {e.transaction}: {e.error}")
            return
        self._stats.record_success()

    def _parse_rows(self, rows: Iterable[Dict[str, str]]) -> Iterable[Transaction]:
        for row in rows:
            transaction = self.parse_row(row)
            if transaction is None:
                self._stats.record_skip()
                continue
            yield transaction

    @staticmethod
    def parse_row(row: Dict[str, str]) -> Optional[Transaction]:
        """Parse CSV row into Transaction. Returns None for malformed rows."""
        try:
            normalized = {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}

            transaction_type = TransactionType(normalized["type"].lower())
            client_id = int(normalized["client"])
            transaction_id = int(normalized["tx"])

            if not 0 <= client_id <= MAX_CLIENT_ID:
                raise ValueError(f"client id {client_id} out of range")
            if not 0 <= transaction_id <= MAX_TRANSACTION_ID:
                raise ValueError(f"tx id {transaction_id} out of range")

            amount = None
            if transaction_type.carries_amount:
                amount_str = normalized.get("amount", "")
                if not amount_str:
                    raise ValueError(f"{transaction_type.value} requires an amount")
                amount = Decimal(amount_str)
                if not is_valid_amount(amount):
                    raise ValueError(f"invalid amount {amount_str}")

            return Transaction(
                transaction_type=transaction_type,
                client_id=client_id,
                transaction_id=transaction_id,
                amount=amount,
            )
        except (KeyError, ValueError, InvalidOperation) as e:
            logger.warning(f"Failed to parse row {row}: {e!r}")
            return None
