"""Installment lifecycle events on Google Cloud Pub/Sub.

Every committed transition can be announced as an InstallmentEvent. Publishing
is best effort: a disabled dispatcher or a failed publish is logged and
reported through the return value, never raised into the caller's transition.
"""

from datetime import datetime
from threading import RLock
from typing import Optional

from google.api_core.exceptions import NotFound
from google.cloud import pubsub_v1

from installment_reprocessor.logging_config import get_logger
from installment_reprocessor.models.events import InstallmentEvent, InstallmentEventType
from installment_reprocessor.models.installment import Installment, InstallmentDetail

logger = get_logger(__name__)


def build_installment_event(
        event_type: InstallmentEventType,
        installment: Installment,
        event_time: datetime,
        detail: Optional[InstallmentDetail] = None,
) -> InstallmentEvent:
    """Snapshot an installment (after the transition) as an event payload."""
    return InstallmentEvent(
        event_type=event_type.value,
        event_name=event_type.name,
        event_time=event_time,
        installment_id=installment.id,
        subscription_id=installment.subscription_id,
        actionable_date=installment.actionable_date,
        order_number=detail.order.number if detail and detail.order else None,
        detail_id=detail.id if detail else None,
    )


class EventDispatcher:
    """Publishes InstallmentEvents to the configured topic.

    Args:
        config: Config instance, defaults to the global configuration
    """

    def __init__(self, config=None):
        self._lock = RLock()
        self._publisher: Optional[pubsub_v1.PublisherClient] = None
        self._topic_path: Optional[str] = None
        self._publish_timeout = 5.0

        if config is None:
            from installment_reprocessor.config import get_config

            config = get_config()

        if not config.events_enabled:
            logger.info("event_dispatcher_disabled", reason="events.enabled is false")
            return

        self._publish_timeout = config.events.publish_timeout_seconds
        try:
            self._connect(config.pubsub_project_id, config.pubsub_topic)
        except Exception as e:
            # dispatcher stays disabled; transitions still commit
            logger.error(
                "event_dispatcher_init_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._publisher = None
            self._topic_path = None

    def _connect(self, project_id: str, topic_name: str) -> None:
        publisher = pubsub_v1.PublisherClient()
        topic_path = publisher.topic_path(project_id, topic_name)

        try:
            publisher.get_topic(request={"topic": topic_path})
        except NotFound:
            publisher.create_topic(request={"name": topic_path})
            logger.info("pubsub_topic_created", topic_path=topic_path)

        self._publisher = publisher
        self._topic_path = topic_path
        logger.info("event_dispatcher_initialized", topic_path=topic_path)

    def is_enabled(self) -> bool:
        return self._publisher is not None

    def publish_installment_event(
            self,
            event_type: InstallmentEventType,
            installment: Installment,
            event_time: datetime,
            detail: Optional[InstallmentDetail] = None,
    ) -> bool:
        """Publish an installment lifecycle event.

        Args:
            event_type: Type of transition
            installment: Installment after the transition
            event_time: When the transition happened
            detail: Detail recorded by the transition, if any

        Returns:
            True once the server acknowledged the message
        """
        with self._lock:
            if not self.is_enabled():
                logger.debug("installment_event_skipped", event_type=event_type.name)
                return False

            event = build_installment_event(event_type, installment, event_time, detail)
            try:
                message_id = self._publish(event)
            except Exception as e:
                logger.error(
                    "installment_event_publish_failed",
                    event_type=event_type.name,
                    installment_id=installment.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return False

        logger.info(
            "installment_event_published",
            event_type=event_type.name,
            installment_id=installment.id,
            subscription_id=installment.subscription_id,
            message_id=message_id,
        )
        return True

    def _publish(self, event: InstallmentEvent) -> str:
        future = self._publisher.publish(
            self._topic_path,
            event.model_dump_json().encode("utf-8"),
            # attributes for subscriber-side filtering
            event_type=event.event_name,
            subscription_id=event.subscription_id,
        )
        return future.result(timeout=self._publish_timeout)

    def shutdown(self) -> None:
        """Flush pending messages and stop publishing."""
        with self._lock:
            publisher, self._publisher = self._publisher, None
            self._topic_path = None
        if publisher is None:
            return

        try:
            publisher.stop()
        except Exception as e:
            logger.warning("event_dispatcher_flush_failed", error=str(e))
        logger.info("event_dispatcher_stopped")


_event_dispatcher: Optional[EventDispatcher] = None
_dispatcher_lock = RLock()


def get_event_dispatcher() -> EventDispatcher:
    """Get or create the process-wide EventDispatcher."""
    global _event_dispatcher
    if _event_dispatcher is None:
        with _dispatcher_lock:
            if _event_dispatcher is None:
                _event_dispatcher = EventDispatcher()
    return _event_dispatcher


def reset_event_dispatcher() -> None:
    """Shut down and forget the process-wide dispatcher."""
    global _event_dispatcher

    with _dispatcher_lock:
        if _event_dispatcher is not None:
            _event_dispatcher.shutdown()
            _event_dispatcher = None
