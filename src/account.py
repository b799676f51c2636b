import logging
from decimal import Decimal, Inexact, localcontext
from typing import Dict, Mapping

from errors import AccountLocked, BalanceOverflow, Overdraft, TransactionNotDisputed
from models import LEDGER_CONTEXT, AccountSummary, Transaction, TransactionType

logger = logging.getLogger(__name__)


class ClientAccount:
    """
    Balance and dispute state for a single client.

    Only the total balance is stored. Held funds are the sum over the
    transactions currently under dispute, and available is total - held,
    so disputing or resolving the same transaction twice cannot move
    money twice.

    Once a chargeback locks the account every further transaction is
    rejected with AccountLocked.
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self.total: Decimal = Decimal("0")
        self.disputed: Dict[int, Transaction] = {}
        self.locked = False

    @property
    def held(self) -> Decimal:
        return sum((tx.amount for tx in self.disputed.values()), Decimal("0"))

    @property
    def available(self) -> Decimal:
        return self.total - self.held

    def apply(self, history: Mapping[int, Transaction], transaction: Transaction) -> bool:
        """
        Apply a single transaction to this account.

        history maps transaction ids to the deposits and withdrawals this
        client has already made.

        Returns:
            True if the transaction must be kept in history for later disputes.

        Raises:
            AccountLocked: the account was locked by an earlier chargeback
            Overdraft: a withdrawal exceeds the available balance
            TransactionNotDisputed: a chargeback names a transaction that is not disputed
            BalanceOverflow: the new balance cannot be represented exactly
        """
        if self.locked:
            raise AccountLocked(self.client_id)

        try:
            with localcontext(LEDGER_CONTEXT):
                match transaction.transaction_type:
                    case TransactionType.DEPOSIT:
                        return self._deposit(transaction)
                    case TransactionType.WITHDRAW:
                        return self._withdraw(transaction)
                    case TransactionType.DISPUTE:
                        return self._dispute(history, transaction)
                    case TransactionType.RESOLVE:
                        return self._resolve(transaction)
                    case TransactionType.CHARGEBACK:
                        return self._chargeback(transaction)
        except Inexact as err:
            raise BalanceOverflow(self.client_id) from err

        raise ValueError(f"Unknown transaction type {transaction.transaction_type}")

    def summary(self) -> AccountSummary:
        held = self.held
        return AccountSummary(
            client_id=self.client_id,
            available=self.total - held,
            held=held,
            total=self.total,
            locked=self.locked,
        )

    def _deposit(self, transaction: Transaction) -> bool:
        self.total += transaction.amount
        return True

    def _withdraw(self, transaction: Transaction) -> bool:
        available = self.available
        if available - transaction.amount < 0:
            raise Overdraft(available=available, requested=transaction.amount)
        self.total -= transaction.amount
        return True

    def _dispute(self, history: Mapping[int, Transaction], transaction: Transaction) -> bool:
        original = history.get(transaction.transaction_id)
        if original is None:
            logger.info(f"Dispute for tx {transaction.transaction_id}: no such transaction for client {self.client_id}, ignoring")
            return False

        if transaction.transaction_id in self.disputed:
            logger.info(f"Dispute for tx {transaction.transaction_id}: already disputed, ignoring")
            return False

        self.disputed[transaction.transaction_id] = original
        return False

    def _resolve(self, transaction: Transaction) -> bool:
        if self.disputed.pop(transaction.transaction_id, None) is None:
            logger.info(f"Resolve for tx {transaction.transaction_id}: not disputed, ignoring")
        return False

    def _chargeback(self, transaction: Transaction) -> bool:
        original = self.disputed.get(transaction.transaction_id)
        if original is None:
            raise TransactionNotDisputed(transaction.transaction_id)

        self.total -= original.amount
        del self.disputed[transaction.transaction_id]
        self.locked = True
        return False

    def __repr__(self) -> str:
        return f"ClientAccount(client={self.client_id}, available={self.available}, held={self.held}, total={self.total}, locked={self.locked})"
