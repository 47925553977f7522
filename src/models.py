from dataclasses import dataclass, field
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, ROUND_HALF_EVEN
from enum import Enum
from typing import Dict, Optional

# Input amounts are capped at 2**96 - 1, so even 2**32 of them summed
# stay inside 64 significant digits. Any rounding is an error.
MAX_AMOUNT = Decimal(2 ** 96 - 1)
LEDGER_CONTEXT = Context(
    prec=64,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"


class ProcessingResult(Enum):
    SUCCESS = "success"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_LOCKED = "account_locked"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    TRANSACTION_NOT_FOUND = "transaction_not_found"
    CLIENT_MISMATCH = "client_mismatch"
    ALREADY_DISPUTED = "already_disputed"
    NOT_DISPUTED = "not_disputed"

    @property
    def is_success(self) -> bool:
        return self is ProcessingResult.SUCCESS


class DuplicateTransactionError(KeyError):
    """Raised by the store when a deposit id is recorded twice."""

    def __init__(self, transaction_id: int):
        super().__init__(transaction_id)
        self.transaction_id = transaction_id

    def __str__(self) -> str:
        return f"transaction {self.transaction_id} already recorded"


@dataclass
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class DepositRecord:
    client_id: int
    amount: Decimal
    disputed: bool = False


@dataclass
class ClientAccount:
    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return LEDGER_CONTEXT.add(self.available, self.held)

    def credit(self, amount: Decimal) -> None:
        self.available = LEDGER_CONTEXT.add(self.available, amount)

    def debit(self, amount: Decimal) -> None:
        self.available = LEDGER_CONTEXT.subtract(self.available, amount)

    def hold(self, amount: Decimal) -> None:
        available = LEDGER_CONTEXT.subtract(self.available, amount)
        held = LEDGER_CONTEXT.add(self.held, amount)
        self.available, self.held = available, held

    def release_hold(self, amount: Decimal) -> None:
        held = LEDGER_CONTEXT.subtract(self.held, amount)
        available = LEDGER_CONTEXT.add(self.available, amount)
        self.available, self.held = available, held

    def remove_held(self, amount: Decimal) -> None:
        self.held = LEDGER_CONTEXT.subtract(self.held, amount)

    def lock(self) -> None:
        self.locked = True


@dataclass
class ProcessingStats:
    """Counters for a single run: applied, rejected (by reason) and unparseable rows."""

    processed: int = 0
    failed: int = 0
    skipped_rows: int = 0
    failures_by_reason: Dict[ProcessingResult, int] = field(default_factory=dict)

    @property
    def seen(self) -> int:
        return self.processed + self.failed

    def record(self, result: ProcessingResult) -> None:
        if result.is_success:
            self.processed += 1
            return
        self.failed += 1
        self.failures_by_reason[result] = self.failures_by_reason.get(result, 0) + 1

    def record_skipped_row(self) -> None:
        self.skipped_rows += 1
