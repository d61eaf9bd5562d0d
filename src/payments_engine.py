import csv
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Mapping, Optional

from models import Transaction, TransactionType, ClientAccount, ProcessingStats, quantize_amount
from ledger import Ledger
from accounts import AccountTable
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 4294967295
MAX_AMOUNT_DIGITS = 64


class InputFileError(Exception):
    """The transactions file could not be opened or read."""


class PaymentsEngine:
    """
    Runs one pass over an ordered stream of transactions.
    Records are applied strictly in input order by a single processor.
    """

    def __init__(self, ledger: Optional[Ledger] = None, accounts: Optional[AccountTable] = None):
        self._ledger = ledger if ledger is not None else Ledger()
        self._accounts = accounts if accounts is not None else AccountTable()
        self._processor = TransactionProcessor(self._ledger, self._accounts)
        self._stats = ProcessingStats()

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        try:
            f = open(filepath, "r", newline="", encoding="utf-8-sig", errors="replace")
        except OSError as e:
            raise InputFileError(f"Cannot open transactions file {filepath}: {e}") from e

        logger.info(f"Processing transactions from {filepath}")
        with f:
            try:
                return self.process_rows(csv.DictReader(f))
            except (OSError, csv.Error) as e:
                raise InputFileError(f"Cannot read transactions file {filepath}: {e}") from e

    def process_rows(self, rows: Iterable[Mapping[str, Optional[str]]]) -> Dict[int, ClientAccount]:
        """Parse and apply raw CSV rows. Malformed rows are dropped."""
        for row in rows:
            transaction = parse_csv_row(row)
            if transaction is None:
                self._stats.record_malformed()
                continue
            self._stats.record(self._processor.process_transaction(transaction))

        logger.info(self._stats.summary())
        return self._accounts.snapshot()

    def process_transactions(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        """Apply already parsed transactions in order."""
        for transaction in transactions:
            self._stats.record(self._processor.process_transaction(transaction))
        return self._accounts.snapshot()


def parse_csv_row(row: Mapping[str, Optional[str]]) -> Optional[Transaction]:
    """Parse CSV row into Transaction, or None if the row is malformed."""
    try:
        normalized = {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}

        transaction_type = TransactionType(normalized["type"].lower())
        client_id = _parse_id(normalized["client"], "client")
        transaction_id = _parse_id(normalized["tx"], "tx")

        if client_id > MAX_CLIENT_ID:
            raise ValueError(f"client id {client_id} out of range")
        if transaction_id > MAX_TRANSACTION_ID:
            raise ValueError(f"tx id {transaction_id} out of range")

        amount = None
        if transaction_type in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL):
            amount = _parse_amount(normalized.get("amount", ""))

        return Transaction(
            transaction_type=transaction_type,
            client_id=client_id,
            transaction_id=transaction_id,
            amount=amount,
        )
    except (KeyError, ValueError, InvalidOperation) as e:
        logger.info(f"Failed to parse row {dict(row)}: {e!r}")
        return None


def _parse_id(value: str, field: str) -> int:
    # int() alone would also take "1_000", "+1" and non-ASCII digits
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"{field} id {value!r} is not a non-negative integer")
    return int(value)


def _parse_amount(value: str) -> Decimal:
    raw = Decimal(value)
    if not raw.is_finite():
        raise ValueError(f"amount {value!r} is not finite")
    if raw.adjusted() >= MAX_AMOUNT_DIGITS:
        raise ValueError(f"amount {value!r} has more than {MAX_AMOUNT_DIGITS} integer digits")
    return quantize_amount(raw)
