"""Subscription store - in-memory storage for subscription state."""

import threading
from typing import Dict, Optional

from installment_reprocessor.models.subscription import SubscriptionRecord


class SubscriptionNotFoundError(Exception):
    """Raised when a subscription id is unknown."""

    pass


class SubscriptionStore:
    """Thread-safe map of subscription id to SubscriptionRecord.

    Takes part in atomic() transactions through lock/snapshot/restore, so a
    cancellation is only visible together with the installment change that
    caused it.
    """

    def __init__(self):
        self._records: Dict[str, SubscriptionRecord] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def add(self, subscription: SubscriptionRecord) -> None:
        """Store a new subscription.

        Raises:
            ValueError: If the id is already taken
        """
        with self._lock:
            if subscription.id in self._records:
                raise ValueError(f"Subscription with id '{subscription.id}' already exists")
            self._records[subscription.id] = subscription

    def get_by_id(self, subscription_id: str) -> SubscriptionRecord:
        """Get subscription by id.

        Raises:
            SubscriptionNotFoundError: If id not found
        """
        with self._lock:
            subscription = self._records.get(subscription_id)
            if subscription is None:
                raise SubscriptionNotFoundError(f"Subscription not found: {subscription_id}")
            return subscription

    def find_by_id(self, subscription_id: str) -> Optional[SubscriptionRecord]:
        with self._lock:
            return self._records.get(subscription_id)

    def update(self, subscription: SubscriptionRecord) -> None:
        """Replace a stored subscription.

        Raises:
            SubscriptionNotFoundError: If the subscription was never added
        """
        with self._lock:
            if subscription.id not in self._records:
                raise SubscriptionNotFoundError(f"Subscription not found: {subscription.id}")
            self._records[subscription.id] = subscription

    def exists(self, subscription_id: str) -> bool:
        with self._lock:
            return subscription_id in self._records

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def snapshot(self) -> Dict[str, SubscriptionRecord]:
        """Copy the current contents for transaction rollback."""
        with self._lock:
            return {key: record.model_copy(deep=True) for key, record in self._records.items()}

    def restore(self, snapshot: Dict[str, SubscriptionRecord]) -> None:
        """Replace the contents with a previously taken snapshot."""
        with self._lock:
            self._records = dict(snapshot)

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, subscription_id: str) -> bool:
        return self.exists(subscription_id)

    def __repr__(self) -> str:
        return f"SubscriptionStore(records={self.count()})"


_default_store: Optional[SubscriptionStore] = None
_default_store_lock = threading.Lock()


def get_subscription_store() -> SubscriptionStore:
    """Process-wide store used when the processor is built without one."""
    global _default_store
    if _default_store is None:
        with _default_store_lock:
            if _default_store is None:
                _default_store = SubscriptionStore()
    return _default_store
