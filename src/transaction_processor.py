import logging
from typing import Optional

from models import Transaction, TransactionType, ClientAccount, ProcessingResult
from ledger import Ledger
from accounts import AccountTable

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transactions to the account table, one at a time, in input order.
    Every rejected transaction is a silent no-op reported as IGNORED;
    the reason is only visible at INFO log level.
    """

    def __init__(self, ledger: Ledger, accounts: AccountTable):
        self._ledger = ledger
        self._accounts = accounts

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        Returns:
            APPLIED: Balances and/or the ledger changed
            IGNORED: A precondition failed and nothing changed
        """
        account = self._accounts.get_or_create(transaction.client_id)

        if account.locked:
            logger.info(f"{transaction}: account {account.client_id} is locked")
            return ProcessingResult.IGNORED

        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                return self._handle_deposit(account, transaction)
            case TransactionType.WITHDRAWAL:
                return self._handle_withdrawal(account, transaction)
            case TransactionType.DISPUTE:
                return self._handle_dispute(account, transaction)
            case TransactionType.RESOLVE:
                return self._handle_resolve(account, transaction)
            case TransactionType.CHARGEBACK:
                return self._handle_chargeback(account, transaction)

    def _handle_deposit(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if not self._has_valid_amount(transaction):
            return ProcessingResult.IGNORED

        if transaction.transaction_id in self._ledger:
            logger.info(f"Deposit tx {transaction.transaction_id}: duplicate transaction id")
            return ProcessingResult.IGNORED

        account.credit(transaction.amount)
        self._ledger.record(transaction)
        return ProcessingResult.APPLIED

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if not self._has_valid_amount(transaction):
            return ProcessingResult.IGNORED

        if transaction.transaction_id in self._ledger:
            logger.info(f"Withdrawal tx {transaction.transaction_id}: duplicate transaction id")
            return ProcessingResult.IGNORED

        if account.available < transaction.amount:
            logger.info(
                f"Withdrawal tx {transaction.transaction_id}: insufficient funds "
                f"(available {account.available}, requested {transaction.amount})"
            )
            return ProcessingResult.IGNORED

        account.debit(transaction.amount)
        self._ledger.record(transaction)
        return ProcessingResult.APPLIED

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original = self._find_original(transaction)
        if original is None:
            return ProcessingResult.IGNORED

        if original.disputed:
            logger.info(f"Dispute for tx {transaction.transaction_id}: transaction already disputed")
            return ProcessingResult.IGNORED

        account.hold(original.amount)
        self._ledger.set_disputed(original.transaction_id, True)
        return ProcessingResult.APPLIED

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original = self._find_original(transaction)
        if original is None:
            return ProcessingResult.IGNORED

        if not original.disputed:
            logger.info(f"Resolve for tx {transaction.transaction_id}: transaction is not disputed")
            return ProcessingResult.IGNORED

        account.release_hold(original.amount)
        self._ledger.set_disputed(original.transaction_id, False)
        return ProcessingResult.APPLIED

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original = self._find_original(transaction)
        if original is None:
            return ProcessingResult.IGNORED

        if not original.disputed:
            logger.info(f"Chargeback for tx {transaction.transaction_id}: transaction is not disputed")
            return ProcessingResult.IGNORED

        account.remove_held(original.amount)
        account.lock()
        self._ledger.set_disputed(original.transaction_id, False)
        return ProcessingResult.APPLIED

    def _find_original(self, transaction: Transaction) -> Optional[Transaction]:
        """Look up the ledger entry a dispute, resolve or chargeback refers to."""
        kind = transaction.transaction_type.value.capitalize()
        original = self._ledger.lookup(transaction.transaction_id)

        if original is None:
            logger.info(f"{kind} for tx {transaction.transaction_id}: transaction not found")
            return None

        if original.client_id != transaction.client_id:
            logger.info(
                f"{kind} for tx {transaction.transaction_id}: client mismatch "
                f"(expected {original.client_id}, got {transaction.client_id})"
            )
            return None

        return original

    @staticmethod
    def _has_valid_amount(transaction: Transaction) -> bool:
        if transaction.amount is None or transaction.amount <= 0:
            kind = transaction.transaction_type.value.capitalize()
            logger.info(f"{kind} tx {transaction.transaction_id}: invalid amount {transaction.amount}")
            return False
        return True
