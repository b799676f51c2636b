from decimal import Decimal

from models import Transaction


class TransactionError(Exception):
    """Base class for a transaction an account refuses to apply."""


class Overdraft(TransactionError):
    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(f"Tried to withdraw {requested} from an available balance of {available}")


class TransactionNotDisputed(TransactionError):
    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} either does not exist or is not disputed")


class AccountLocked(TransactionError):
    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__(f"Account {client_id} is locked")


class BalanceOverflow(TransactionError):
    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__(f"Balance of account {client_id} cannot be represented exactly")


class RejectedTransaction(Exception):
    """Raised by the ledger with the transaction that was dropped and why."""

    def __init__(self, transaction: Transaction, error: TransactionError):
        self.transaction = transaction
        self.error = error
        super().__init__(f"{error} ({transaction!r})")
