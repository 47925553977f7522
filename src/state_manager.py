from decimal import Decimal
from typing import List, Optional, Tuple

from sortedcontainers import SortedDict

from models import ClientAccount, DepositRecord, DuplicateTransactionError


class StateManager:
    """
    Owns all account and deposit history state for a run.
    Both maps are kept sorted by id so lookups stay O(log N) and the final
    report comes out in ascending client order.
    No business rules live here; see TransactionProcessor.
    """

    def __init__(self):
        self._accounts: SortedDict = SortedDict()
        self._deposits: SortedDict = SortedDict()

    def get_or_create_account(self, client_id: int) -> ClientAccount:
        """Get existing account or create a zeroed one."""
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id)
            self._accounts[client_id] = account
        return account

    def get_account(self, client_id: int) -> Optional[ClientAccount]:
        """Look up an account without creating it."""
        return self._accounts.get(client_id)

    def record_deposit(self, transaction_id: int, client_id: int, amount: Decimal) -> DepositRecord:
        """Store a deposit for future dispute lookups."""
        if transaction_id in self._deposits:
            raise DuplicateTransactionError(transaction_id)
        record = DepositRecord(client_id=client_id, amount=amount)
        self._deposits[transaction_id] = record
        return record

    def get_deposit(self, transaction_id: int) -> Optional[DepositRecord]:
        """Retrieve stored deposit by transaction ID."""
        return self._deposits.get(transaction_id)

    def get_all_accounts(self) -> List[Tuple[int, ClientAccount]]:
        """Return all accounts in ascending client ID order (for final output)."""
        return list(self._accounts.items())

    def account_count(self) -> int:
        return len(self._accounts)

    def deposit_count(self) -> int:
        return len(self._deposits)
