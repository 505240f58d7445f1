"""Installment outcome state machine.

Responsibilities:
- Schedule installments for subscriptions
- Record the outcome of every fulfillment attempt (success, failure,
  payment failure, out of stock) as an immutable detail
- Recompute or clear the installment's actionable date
- Cancel subscriptions that exhausted their reprocessing budget
- Publish installment lifecycle events

States: an installment is Scheduled while actionable_date is set,
Fulfilled once a successful detail exists and the date is cleared, and
Suspended when the date is cleared without any success.
"""

from datetime import datetime
from typing import Optional

from installment_reprocessor import i18n
from installment_reprocessor.i18n import MessageCatalog, get_message_catalog
from installment_reprocessor.logging_config import get_logger
from installment_reprocessor.models.events import InstallmentEventType
from installment_reprocessor.models.installment import (
    Installment,
    InstallmentDetail,
    OrderReference,
)
from installment_reprocessor.models.settings import ReprocessingConfig
from installment_reprocessor.models.subscription import (
    CancelReason,
    SubscriptionRecord,
    SubscriptionState,
)
from installment_reprocessor.repositories.detail_query import InstallmentDetailQuery
from installment_reprocessor.repositories.installment_store import (
    InstallmentStore,
    get_installment_store,
)
from installment_reprocessor.repositories.subscription_store import (
    SubscriptionStore,
    get_subscription_store,
)
from installment_reprocessor.repositories.transaction import atomic
from installment_reprocessor.services.clock import VirtualClock, get_clock
from installment_reprocessor.services.reprocessing import ReprocessingPolicy
from installment_reprocessor.utils.durations import as_utc

logger = get_logger(__name__)


class InstallmentError(Exception):
    """Base exception for installment errors."""

    pass


class InvalidInstallmentError(InstallmentError):
    """Raised when an installment cannot be scheduled for its subscription."""

    pass


class InstallmentProcessor:
    """Installment lifecycle management.

    Every outcome method loads the installment, appends a detail, updates
    the actionable date and (for payment failures) the subscription inside
    one atomic unit, then publishes an event.

    Args:
        installment_store: Installment storage (defaults to global instance)
        subscription_store: Subscription storage (defaults to global instance)
        config: Reprocessing policy (defaults to the global configuration)
        clock: Source of "now" (defaults to the global virtual clock)
        messages: Message catalog for detail descriptions
        detail_query: Cross-installment detail lookups
        event_dispatcher: Event publisher (lazy loaded global instance if omitted)
    """

    def __init__(
            self,
            installment_store: Optional[InstallmentStore] = None,
            subscription_store: Optional[SubscriptionStore] = None,
            config: Optional[ReprocessingConfig] = None,
            clock: Optional[VirtualClock] = None,
            messages: Optional[MessageCatalog] = None,
            detail_query: Optional[InstallmentDetailQuery] = None,
            event_dispatcher=None,
    ):
        self.installments = installment_store or get_installment_store()
        self.subscriptions = subscription_store or get_subscription_store()

        if config is None:
            from installment_reprocessor.config import get_config

            config = get_config().reprocessing
        self.config = config

        self.clock = clock or get_clock()
        self.messages = messages or get_message_catalog()
        self.detail_query = detail_query or InstallmentDetailQuery(self.installments)
        self.policy = ReprocessingPolicy(config, self.detail_query)
        self._event_dispatcher = event_dispatcher

        logger.info(
            "installment_processor_initialized",
            reprocessing_interval=config.reprocessing_interval,
            maximum_reprocessing_time=config.maximum_reprocessing_time,
        )

    def _get_event_dispatcher(self):
        """lazy load event dispatcher so Pub/Sub is only touched when needed"""
        if self._event_dispatcher is None:
            from installment_reprocessor.services.event_dispatcher import get_event_dispatcher
            self._event_dispatcher = get_event_dispatcher()
        return self._event_dispatcher

    def _publish_event(
            self,
            event_type: InstallmentEventType,
            installment: Installment,
            event_time: datetime,
            detail: Optional[InstallmentDetail] = None,
    ) -> None:
        """Publish an installment lifecycle event after a committed transition."""
        try:
            self._get_event_dispatcher().publish_installment_event(
                event_type=event_type,
                installment=installment,
                event_time=event_time,
                detail=detail,
            )
        except Exception as e:
            # Log error but don't fail the committed transition
            logger.error(
                "event_publish_failed",
                event_type=event_type.name,
                installment_id=installment.id,
                error=str(e),
                exc_info=True,
            )

    def _load(self, installment_id: str) -> tuple[Installment, SubscriptionRecord]:
        """Load a working copy of an installment and its subscription.

        Raises:
            InstallmentNotFoundError: If installment id not found
            SubscriptionNotFoundError: If the owning subscription is missing
        """
        installment = self.installments.get_by_id(installment_id).model_copy(deep=True)
        subscription = self.subscriptions.get_by_id(installment.subscription_id)
        return installment, subscription

    # Scheduling

    def register_subscription(
            self,
            user_id: str,
            created_at: Optional[datetime] = None,
    ) -> SubscriptionRecord:
        """Register a subscription whose installments will be processed.

        Args:
            user_id: Owner of the subscription
            created_at: Creation time (defaults to now)

        Returns:
            Created SubscriptionRecord
        """
        subscription = SubscriptionRecord(
            user_id=user_id,
            created_at=created_at or self.clock.now(),
        )
        self.subscriptions.add(subscription)

        logger.info(
            "subscription_registered",
            subscription_id=subscription.id,
            user_id=user_id,
            created_at=subscription.created_at.isoformat(),
        )
        return subscription

    def cancel_subscription(
            self,
            subscription_id: str,
            reason: CancelReason = CancelReason.USER_CANCELED,
    ) -> SubscriptionRecord:
        """Cancel a subscription (idempotent).

        Raises:
            SubscriptionNotFoundError: If subscription id not found
        """
        now = self.clock.now()
        with atomic(self.subscriptions):
            subscription = self.subscriptions.get_by_id(subscription_id).model_copy(deep=True)
            changed = subscription.cancel(reason, at=now)
            if changed:
                self.subscriptions.update(subscription)

        logger.info(
            "subscription_canceled" if changed else "subscription_already_canceled",
            subscription_id=subscription_id,
            cancel_reason=reason.value,
        )
        return subscription

    def schedule_installment(
            self,
            subscription_id: str,
            actionable_date: Optional[datetime] = None,
    ) -> Installment:
        """Create the installment for a subscription's next fulfillment cycle.

        Args:
            subscription_id: Subscription identifier
            actionable_date: When to attempt it (defaults to now)

        Returns:
            Created Installment

        Raises:
            SubscriptionNotFoundError: If subscription id not found
            InvalidInstallmentError: If the subscription no longer takes installments
        """
        now = self.clock.now()
        # state check and insert are one unit against concurrent cancels
        with atomic(self.subscriptions, self.installments):
            subscription = self.subscriptions.get_by_id(subscription_id)
            if subscription.state not in (
                    SubscriptionState.ACTIVE,
                    SubscriptionState.PENDING_CANCELLATION,
            ):
                raise InvalidInstallmentError(
                    f"Cannot schedule installment for subscription in {subscription.state.value} state"
                )

            installment = Installment(
                subscription_id=subscription_id,
                actionable_date=actionable_date or now,
                created_at=now,
            )
            self.installments.add(installment)

        logger.info(
            "installment_scheduled",
            installment_id=installment.id,
            subscription_id=subscription_id,
            actionable_date=installment.actionable_date.isoformat(),
        )

        self._publish_event(InstallmentEventType.INSTALLMENT_SCHEDULED, installment, now)

        return installment

    # Queries

    def get_installment(self, installment_id: str) -> Installment:
        """Get installment by id.

        Raises:
            InstallmentNotFoundError: If id not found
        """
        return self.installments.get_by_id(installment_id)

    def get_subscription(self, subscription_id: str) -> SubscriptionRecord:
        return self.subscriptions.get_by_id(subscription_id)

    def get_subscription_installments(self, subscription_id: str) -> list[Installment]:
        return self.installments.get_by_subscription(subscription_id)

    def get_actionable_installments(self, at: Optional[datetime] = None) -> list[Installment]:
        """Get installments due for an attempt.

        Unfulfilled installments whose actionable date has passed and whose
        subscription is still active.

        Args:
            at: Point in time to evaluate (defaults to now)
        """
        at = as_utc(at) if at is not None else self.clock.now()
        due = []
        for installment in self.installments.get_actionable(at):
            subscription = self.subscriptions.find_by_id(installment.subscription_id)
            if subscription is not None and subscription.is_active:
                due.append(installment)
        return due

    # Outcomes

    def out_of_stock(self, installment_id: str) -> InstallmentDetail:
        """Record that the installment's items were unavailable.

        Postpones the installment by the reprocessing interval. Never
        cancels the subscription.

        Args:
            installment_id: Installment identifier

        Returns:
            The unsuccessful detail (without order)
        """
        now = self.clock.now()
        with atomic(self.subscriptions, self.installments):
            installment, _ = self._load(installment_id)
            installment.reschedule(self.policy.retry_date(now), reason="Out of stock")
            detail = installment.record_detail(
                success=False,
                message=self.messages.translate(i18n.OUT_OF_STOCK),
                created_at=now,
            )
            self.installments.update(installment)

        logger.info(
            "installment_out_of_stock",
            installment_id=installment_id,
            subscription_id=installment.subscription_id,
            actionable_date=installment.actionable_date.isoformat() if installment.actionable_date else None,
        )

        self._publish_event(InstallmentEventType.INSTALLMENT_OUT_OF_STOCK, installment, now, detail)

        return detail

    def success(self, installment_id: str, order: OrderReference) -> InstallmentDetail:
        """Record a fulfilled installment.

        Clears the actionable date; the installment is done.

        Args:
            installment_id: Installment identifier
            order: Completed order

        Returns:
            The successful detail
        """
        now = self.clock.now()
        with atomic(self.subscriptions, self.installments):
            installment, _ = self._load(installment_id)
            installment.reschedule(None, reason="Installment fulfilled")
            detail = installment.record_detail(
                success=True,
                message=self.messages.translate(i18n.SUCCESS),
                created_at=now,
                order=order,
            )
            self.installments.update(installment)

        logger.info(
            "installment_succeeded",
            installment_id=installment_id,
            subscription_id=installment.subscription_id,
            order_number=order.number,
        )

        self._publish_event(InstallmentEventType.INSTALLMENT_SUCCEEDED, installment, now, detail)

        return detail

    def failed(self, installment_id: str, order: OrderReference) -> InstallmentDetail:
        """Record a failed fulfillment attempt.

        Retries after the reprocessing interval, or stops scheduling the
        installment when no interval is configured.

        Args:
            installment_id: Installment identifier
            order: Order that failed to process

        Returns:
            The unsuccessful detail
        """
        now = self.clock.now()
        with atomic(self.subscriptions, self.installments):
            installment, _ = self._load(installment_id)
            installment.reschedule(self.policy.retry_date(now), reason="Installment failed")
            detail = installment.record_detail(
                success=False,
                message=self.messages.translate(i18n.FAILED),
                created_at=now,
                order=order,
            )
            self.installments.update(installment)

        logger.info(
            "installment_failed",
            installment_id=installment_id,
            subscription_id=installment.subscription_id,
            order_number=order.number,
            retry_scheduled=installment.actionable_date is not None,
        )

        self._publish_event(InstallmentEventType.INSTALLMENT_FAILED, installment, now, detail)

        return detail

    def payment_failed(self, installment_id: str, order: OrderReference) -> InstallmentDetail:
        """Record a failed payment and apply the reprocessing budget.

        The detail is always recorded. If the subscription's reprocessing
        budget is exhausted the installment stops being scheduled and the
        subscription is canceled; otherwise the installment is retried like
        failed().

        Args:
            installment_id: Installment identifier
            order: Order whose payment failed

        Returns:
            The unsuccessful detail
        """
        now = self.clock.now()
        canceled = False
        with atomic(self.subscriptions, self.installments):
            installment, subscription = self._load(installment_id)
            detail = installment.record_detail(
                success=False,
                message=self.messages.translate(i18n.PAYMENT_FAILED),
                created_at=now,
                order=order,
            )

            exhausted = self.policy.reprocessing_time_exceeded(subscription, now)
            if exhausted:
                installment.reschedule(None, reason="Maximum reprocessing time exceeded")
                subscription = subscription.model_copy(deep=True)
                canceled = subscription.cancel(CancelReason.REPROCESSING_TIME_EXCEEDED, at=now)
                if canceled:
                    self.subscriptions.update(subscription)
            else:
                installment.reschedule(self.policy.retry_date(now), reason="Payment failed")

            self.installments.update(installment)

        logger.info(
            "installment_payment_failed",
            installment_id=installment_id,
            subscription_id=installment.subscription_id,
            order_number=order.number,
            reprocessing_time_exceeded=exhausted,
            subscription_state=subscription.state.value,
        )

        self._publish_event(InstallmentEventType.INSTALLMENT_PAYMENT_FAILED, installment, now, detail)
        if canceled:
            self._publish_event(InstallmentEventType.SUBSCRIPTION_CANCELED, installment, now)

        return detail

    def reset(self) -> dict:
        """Clear all subscriptions and installments."""
        with atomic(self.subscriptions, self.installments):
            counts = {
                "subscriptions_cleared": self.subscriptions.count(),
                "installments_cleared": self.installments.count(),
            }
            self.installments.clear()
            self.subscriptions.clear()

        logger.warning("reprocessor_state_reset", **counts)
        return counts


_processor_instance: Optional[InstallmentProcessor] = None


def get_installment_processor() -> InstallmentProcessor:
    """Get global installment processor instance (singleton)."""
    global _processor_instance
    if _processor_instance is None:
        _processor_instance = InstallmentProcessor()
    return _processor_instance
