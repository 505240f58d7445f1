"""Installment store - in-memory storage for installments and their details.

Installments own their details, so appending a detail and changing the
actionable date are written back with a single update() call.
"""

import threading
from datetime import datetime
from typing import Dict, List, Optional

from installment_reprocessor.models.installment import Installment


class InstallmentNotFoundError(Exception):
    """Raised when an installment is not found in the store."""

    pass


class InstallmentStore:
    """In-memory storage for installments.

    Thread-safe storage with lookup by id and subscription, plus time-based
    queries for installments due for an attempt.
    """

    def __init__(self):
        self._installments: Dict[str, Installment] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def add(self, installment: Installment) -> None:
        """Add an installment to the store.

        Raises:
            ValueError: If installment id already exists
        """
        with self._lock:
            if installment.id in self._installments:
                raise ValueError(f"Installment with id '{installment.id}' already exists")
            self._installments[installment.id] = installment

    def get_by_id(self, installment_id: str) -> Installment:
        """Get installment by id.

        Raises:
            InstallmentNotFoundError: If id not found
        """
        with self._lock:
            installment = self._installments.get(installment_id)
            if installment is None:
                raise InstallmentNotFoundError(f"Installment not found: {installment_id}")
            return installment

    def find_by_id(self, installment_id: str) -> Optional[Installment]:
        with self._lock:
            return self._installments.get(installment_id)

    def get_by_subscription(self, subscription_id: str) -> List[Installment]:
        """Get all installments of a subscription, oldest first."""
        with self._lock:
            installments = [
                i for i in self._installments.values() if i.subscription_id == subscription_id
            ]
        return sorted(installments, key=lambda i: i.created_at)

    def get_actionable(self, at: datetime) -> List[Installment]:
        """Get unfulfilled installments whose actionable date is at or before the given time.

        Args:
            at: Point in time to evaluate

        Returns:
            Installments ordered by actionable date
        """
        with self._lock:
            due = [i for i in self._installments.values() if i.is_actionable(at)]
        return sorted(due, key=lambda i: i.actionable_date)

    def update(self, installment: Installment) -> None:
        """Update an existing installment.

        Raises:
            InstallmentNotFoundError: If installment id not found
        """
        with self._lock:
            if installment.id not in self._installments:
                raise InstallmentNotFoundError(f"Installment not found: {installment.id}")
            self._installments[installment.id] = installment

    def exists(self, installment_id: str) -> bool:
        with self._lock:
            return installment_id in self._installments

    def count(self) -> int:
        with self._lock:
            return len(self._installments)

    def count_details(self) -> int:
        """Count details recorded across all installments."""
        with self._lock:
            return sum(len(i.details) for i in self._installments.values())

    def clear(self) -> None:
        """Clear all installments from the store.

        Warning: This removes all data. Use with caution.
        """
        with self._lock:
            self._installments.clear()

    def snapshot(self) -> Dict[str, Installment]:
        """Copy the current contents for transaction rollback."""
        with self._lock:
            return {key: item.model_copy(deep=True) for key, item in self._installments.items()}

    def restore(self, snapshot: Dict[str, Installment]) -> None:
        """Replace the contents with a previously taken snapshot."""
        with self._lock:
            self._installments = dict(snapshot)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, installment_id: str) -> bool:
        return self.exists(installment_id)

    def __repr__(self) -> str:
        return f"InstallmentStore(installments={self.count()})"


# Global store instance
_store_instance: Optional[InstallmentStore] = None
_store_lock = threading.Lock()


def get_installment_store() -> InstallmentStore:
    """Get global installment store instance (singleton)."""
    global _store_instance
    if _store_instance is None:
        with _store_lock:
            if _store_instance is None:
                _store_instance = InstallmentStore()
    return _store_instance

