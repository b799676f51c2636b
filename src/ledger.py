import logging
import threading
from collections.abc import Mapping
from typing import Dict, Hashable, Iterator, List, Optional

from account import ClientAccount
from errors import RejectedTransaction, TransactionError
from models import AccountSummary, Transaction

logger = logging.getLogger(__name__)

HISTORY_SCOPES = ("client", "global")


class ClientHistory(Mapping):
    """Read-only view of the ledger history restricted to one client, keyed by transaction id."""

    def __init__(self, ledger: "Ledger", client_id: int):
        self._ledger = ledger
        self._client_id = client_id

    def __getitem__(self, transaction_id: int) -> Transaction:
        transaction = self._ledger.get_transaction(self._client_id, transaction_id)
        if transaction is None:
            raise KeyError(transaction_id)
        return transaction

    def __iter__(self) -> Iterator[int]:
        for transaction in self._ledger.transactions():
            if transaction.client_id == self._client_id:
                yield transaction.transaction_id

    def __len__(self) -> int:
        return sum(1 for _ in self)


class Ledger:
    """
    Owns every client account plus the history of deposits and withdrawals
    that later disputes can refer to.

    Accounts are created on first reference and kept in first-seen order.
    apply_transaction holds the client's lock, so different clients may be
    driven from different threads.
    """

    def __init__(self, history_scope: str = "client"):
        if history_scope not in HISTORY_SCOPES:
            raise ValueError(f"history_scope must be one of {HISTORY_SCOPES}, got {history_scope!r}")
        self._history_scope = history_scope
        self._accounts: Dict[int, ClientAccount] = {}
        self._history: Dict[Hashable, Transaction] = {}

        # Protects creation of entries in _accounts and _client_locks
        self._global_lock = threading.Lock()
        self._history_lock = threading.Lock()
        self._client_locks: Dict[int, threading.Lock] = {}

    def get_client_lock(self, client_id: int) -> threading.Lock:
        """Get or create the lock serializing work on one client's account."""
        with self._global_lock:
            if client_id not in self._client_locks:
                self._client_locks[client_id] = threading.Lock()
            return self._client_locks[client_id]

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create new one."""
        with self._global_lock:
            if client_id not in self._accounts:
                logger.debug(f"Opening account for client {client_id}")
                self._accounts[client_id] = ClientAccount(client_id)
            return self._accounts[client_id]

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        return self._accounts.get(client_id)

    def apply_transaction(self, transaction: Transaction) -> None:
        """
        Route a transaction to its account and record it in history if the
        account asks for it.

        Raises:
            RejectedTransaction: the account refused the transaction. Nothing
            was changed and the transaction is not retained.
        """
        account = self.get_or_create_account(transaction.client_id)

        with self.get_client_lock(transaction.client_id):
            try:
                retain = account.apply(ClientHistory(self, transaction.client_id), transaction)
            except TransactionError as err:
                raise RejectedTransaction(transaction, err) from err

            if retain:
                with self._history_lock:
                    self._history[self._history_key(transaction.client_id, transaction.transaction_id)] = transaction

    def get_transaction(self, client_id: int, transaction_id: int) -> Optional[Transaction]:
        """Retrieve a retained transaction belonging to client_id."""
        transaction = self._history.get(self._history_key(client_id, transaction_id))
        if transaction is None or transaction.client_id != client_id:
            return None
        return transaction

    def transactions(self) -> List[Transaction]:
        with self._history_lock:
            return list(self._history.values())

    def history_size(self) -> int:
        return len(self._history)

    def accounts(self) -> List[AccountSummary]:
        """Snapshot of every account, in the order clients were first seen."""
        with self._global_lock:
            accounts = list(self._accounts.values())
        return [account.summary() for account in accounts]

    def _history_key(self, client_id: int, transaction_id: int) -> Hashable:
        if self._history_scope == "global":
            return transaction_id
        return (client_id, transaction_id)
