from typing import Optional, Tuple

from models import Transaction, TransactionType, ClientAccount, DepositRecord, ProcessingResult
from state_manager import StateManager


class TransactionProcessor:
    """
    Applies transactions to the ledger state one at a time.
    Every check runs before any mutation, so a rejected transaction
    leaves balances exactly as they were.
    Returns a ProcessingResult; logging is left to the caller.
    """

    def __init__(self, state: StateManager):
        self._state = state

    def process_transaction(self, transaction: Transaction) -> ProcessingResult:
        """
        Process a single transaction.

        Returns:
            SUCCESS: Applied
            ACCOUNT_LOCKED: Account was frozen by an earlier chargeback
            anything else: Rule violation specific to the transaction type
        """
        account = self._state.get_or_create_account(transaction.client_id)

        if account.locked:
            return ProcessingResult.ACCOUNT_LOCKED

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
        if transaction.amount is None or transaction.amount <= 0:
            return ProcessingResult.INVALID_AMOUNT

        if self._state.get_deposit(transaction.transaction_id) is not None:
            return ProcessingResult.DUPLICATE_TRANSACTION

        self._state.record_deposit(transaction.transaction_id, account.client_id, transaction.amount)
        account.credit(transaction.amount)
        return ProcessingResult.SUCCESS

    def _handle_withdrawal(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        if transaction.amount is None or transaction.amount <= 0:
            return ProcessingResult.INVALID_AMOUNT

        # Withdrawals are not stored: only deposits can be disputed later.
        if account.available < transaction.amount:
            return ProcessingResult.INSUFFICIENT_FUNDS

        account.debit(transaction.amount)
        return ProcessingResult.SUCCESS

    def _handle_dispute(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original = self._state.get_deposit(transaction.transaction_id)

        if original is None:
            return ProcessingResult.TRANSACTION_NOT_FOUND

        if original.client_id != transaction.client_id:
            return ProcessingResult.CLIENT_MISMATCH

        if original.disputed:
            return ProcessingResult.ALREADY_DISPUTED

        # available can go negative if funds were withdrawn after the deposit
        account.hold(original.amount)
        original.disputed = True
        return ProcessingResult.SUCCESS

    def _handle_resolve(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original, result = self._find_disputed_deposit(transaction)
        if original is None:
            return result

        account.release_hold(original.amount)
        original.disputed = False
        return ProcessingResult.SUCCESS

    def _handle_chargeback(self, account: ClientAccount, transaction: Transaction) -> ProcessingResult:
        original, result = self._find_disputed_deposit(transaction)
        if original is None:
            return result

        account.remove_held(original.amount)
        account.lock()
        original.disputed = False
        return ProcessingResult.SUCCESS

    def _find_disputed_deposit(self, transaction: Transaction) -> Tuple[Optional[DepositRecord], ProcessingResult]:
        """
        Look up the open dispute a resolve/chargeback refers to.
        Ownership is checked after the dispute state.
        """
        original = self._state.get_deposit(transaction.transaction_id)

        if original is None:
            return None, ProcessingResult.TRANSACTION_NOT_FOUND

        if not original.disputed:
            return None, ProcessingResult.NOT_DISPUTED

        if original.client_id != transaction.client_id:
            return None, ProcessingResult.CLIENT_MISMATCH

        return original, ProcessingResult.SUCCESS
