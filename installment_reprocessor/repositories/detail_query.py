"""Read-only queries over installment details, keyed by subscription.

The reprocessing policy ranks every attempt of a subscription by recency
to find its latest success. Queries go through this class rather than
walking installments directly, so the policy can be tested against a mock.
"""

from typing import List, Optional

from installment_reprocessor.models.installment import InstallmentDetail
from installment_reprocessor.repositories.installment_store import (
    InstallmentStore,
    get_installment_store,
)


class InstallmentDetailQuery:
    """Detail lookups across all installments of a subscription."""

    def __init__(self, installment_store: Optional[InstallmentStore] = None):
        self.store = installment_store or get_installment_store()

    def for_subscription(self, subscription_id: str) -> List[InstallmentDetail]:
        """Get every detail of a subscription, oldest first.

        Ties on created_at keep installment then insertion order.
        """
        with self.store.lock:
            details = [
                detail
                for installment in self.store.get_by_subscription(subscription_id)
                for detail in installment.details
            ]
        return sorted(details, key=lambda d: d.created_at)

    def succeeded(self, subscription_id: str) -> List[InstallmentDetail]:
        return [d for d in self.for_subscription(subscription_id) if d.success]

    def failed(self, subscription_id: str) -> List[InstallmentDetail]:
        return [d for d in self.for_subscription(subscription_id) if not d.success]

    def latest_successful(self, subscription_id: str) -> Optional[InstallmentDetail]:
        """Get the most recent successful detail of a subscription.

        Args:
            subscription_id: Subscription identifier

        Returns:
            Latest successful InstallmentDetail, or None if no attempt ever succeeded
        """
        succeeded = self.succeeded(subscription_id)
        return succeeded[-1] if succeeded else None
