import csv
import logging
import time
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_EVEN
from typing import Dict, Iterable, Iterator, List, Optional, TextIO, Tuple

from models import Transaction, TransactionType, ClientAccount, ProcessingStats, LEDGER_CONTEXT, MAX_AMOUNT
from state_manager import StateManager
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

AMOUNT_PRECISION = Decimal("0.0001")
# Rounds input to AMOUNT_PRECISION without the ledger's Inexact trap
INPUT_CONTEXT = Context(prec=LEDGER_CONTEXT.prec, rounding=ROUND_HALF_EVEN)
DEFAULT_PROGRESS_INTERVAL = 1_000_000
REPORT_HEADER = ("client", "available", "held", "total", "locked")

AMOUNT_TYPES = (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class PaymentsEngine:
    """
    Replays a transaction stream against a fresh ledger, in arrival order.
    Rows are read lazily; rejected transactions are counted and skipped.
    """

    def __init__(self, progress_interval: int = DEFAULT_PROGRESS_INTERVAL):
        self._progress_interval = progress_interval
        self._state = StateManager()
        self._processor = TransactionProcessor(self._state)
        self.stats = ProcessingStats()
        self.elapsed: float = 0.0

    @property
    def state(self) -> StateManager:
        return self._state

    def process_file(self, filepath: str) -> List[Tuple[int, ClientAccount]]:
        """Process CSV file and return final account states, ordered by client."""
        logger.info(f"Processing transactions from {filepath}")
        with open(filepath, "r", encoding="utf-8", newline="") as f:
            return self.process_transactions(self._read_transactions(f))

    def process_transactions(self, transactions: Iterable[Transaction]) -> List[Tuple[int, ClientAccount]]:
        """Apply each transaction in order and return final account states."""
        start = time.perf_counter()

        for transaction in transactions:
            result = self._processor.process_transaction(transaction)
            self.stats.record(result)
            if not result.is_success:
                logger.info(f"Rejected {transaction}: {result.value}")

            if self._progress_interval and self.stats.seen % self._progress_interval == 0:
                logger.info(f"Processed {self.stats.seen} transactions...")

        self.elapsed += time.perf_counter() - start
        logger.info(
            f"Processed {self.stats.seen} transactions in {self.elapsed:.3f}s "
            f"({self._state.account_count()} accounts, {self._state.deposit_count()} deposits)"
        )
        if self.stats.failures_by_reason:
            reasons = ", ".join(
                f"{reason.value}={count}" for reason, count in self.stats.failures_by_reason.items()
            )
            logger.info(f"Rejected transactions by reason: {reasons}")
        return self._state.get_all_accounts()

    def _read_transactions(self, f: TextIO) -> Iterator[Transaction]:
        """Yield parsed transactions from an open CSV file, skipping bad rows."""
        reader = csv.DictReader(f)
        for row in reader:
            transaction = parse_csv_row(row)
            if transaction is None:
                self.stats.record_skipped_row()
                continue
            yield transaction


def parse_csv_row(row: Dict[Optional[str], Optional[str]]) -> Optional[Transaction]:
    """Parse CSV row into Transaction. Returns None (and logs) if the row is malformed."""
    try:
        normalized = {k.strip(): (v or "").strip() for k, v in row.items() if isinstance(k, str)}

        transaction_type = TransactionType(normalized["type"].lower())
        client_id = _parse_id(normalized["client"])
        transaction_id = _parse_id(normalized["tx"])

        amount = None
        amount_str = normalized.get("amount", "")
        # A missing amount is left for the processor to reject as INVALID_AMOUNT
        if transaction_type in AMOUNT_TYPES and amount_str:
            amount = _parse_amount(amount_str)

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except (KeyError, ValueError, InvalidOperation) as e:
        logger.warning(f"Failed to parse row {row}: {e!r}")
        return None


def _parse_id(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise ValueError(f"id must be non-negative, got {parsed}")
    return parsed


def _parse_amount(value: str) -> Decimal:
    amount = Decimal(value)
    if not amount.is_finite():
        raise ValueError(f"amount must be finite, got {value}")
    if amount.copy_abs() > MAX_AMOUNT:
        raise ValueError(f"amount out of range, got {value}")
    return amount.quantize(AMOUNT_PRECISION, context=INPUT_CONTEXT)


def format_decimal(value: Decimal) -> str:
    """Format decimal with up to 4 decimal places, removing trailing zeros."""
    normalized = value.normalize(LEDGER_CONTEXT)
    if normalized.is_zero():
        return "0"
    return f"{normalized:f}"


def write_accounts(accounts: Iterable[Tuple[int, ClientAccount]], stream: TextIO) -> None:
    """Write the account report as CSV, one row per account in the given order."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(REPORT_HEADER)
    for client_id, account in accounts:
        writer.writerow([
            client_id,
            format_decimal(account.available),
            format_decimal(account.held),
            format_decimal(account.total),
            str(account.locked).lower(),
        ])
