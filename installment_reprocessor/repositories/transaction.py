"""Atomic multi-store writes for the in-memory stores.

atomic() holds every participating store's lock for the duration of the
block and restores their snapshots if the block raises, so readers never
observe a partially applied transition.
"""

from contextlib import ExitStack, contextmanager
from typing import Iterator

from installment_reprocessor.logging_config import get_logger

logger = get_logger(__name__)


@contextmanager
def atomic(*stores) -> Iterator[None]:
    """Run a block as a single unit of work over the given stores.

    Stores must expose lock, snapshot() and restore(). Locks are acquired in
    argument order; callers must always pass stores in the same order.

    Example:
        with atomic(subscription_store, installment_store):
            subscription_store.update(subscription)
            installment_store.update(installment)
    """
    with ExitStack() as stack:
        for store in stores:
            stack.enter_context(store.lock)

        snapshots = [store.snapshot() for store in stores]
        try:
            yield
        except BaseException as e:
            for store, snapshot in zip(stores, snapshots):
                store.restore(snapshot)
            logger.warning(
                "transaction_rolled_back",
                stores=[type(store).__name__ for store in stores],
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
