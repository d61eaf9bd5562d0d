from typing import Dict, Optional

from models import Transaction


class Ledger:
    """
    Accepted deposits and withdrawals keyed by transaction id.
    Dispute, resolve and chargeback records look up their target here.
    """

    def __init__(self):
        self._entries: Dict[int, Transaction] = {}

    def record(self, entry: Transaction) -> bool:
        """
        Store a deposit or withdrawal.
        Returns False without touching the store if the id is already taken.
        """
        if not entry.is_ledger_entry:
            return False
        if entry.transaction_id in self._entries:
            return False
        self._entries[entry.transaction_id] = entry
        return True

    def lookup(self, transaction_id: int) -> Optional[Transaction]:
        """Retrieve stored entry by ID."""
        return self._entries.get(transaction_id)

    def set_disputed(self, transaction_id: int, value: bool) -> None:
        entry = self._entries.get(transaction_id)
        if entry is not None:
            entry.disputed = value

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
