"""Unit tests for InstallmentStore and InstallmentDetailQuery."""

from datetime import datetime, timedelta, timezone

import pytest

from installment_reprocessor.models.installment import Installment
from installment_reprocessor.repositories.detail_query import InstallmentDetailQuery
from installment_reprocessor.repositories.installment_store import (
    InstallmentNotFoundError,
    InstallmentStore,
)

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Create a fresh store for each test."""
    store = InstallmentStore()
    yield store
    store.clear()


@pytest.fixture
def detail_query(store):
    return InstallmentDetailQuery(store)


def make_installment(subscription_id="sub_1", created_at=NOW, actionable_date=NOW):
    return Installment(
        subscription_id=subscription_id,
        created_at=created_at,
        actionable_date=actionable_date,
    )


class TestInstallmentStore:
    """Test basic store operations."""

    def test_add_and_get(self, store):
        installment = make_installment()
        store.add(installment)

        assert store.get_by_id(installment.id) is installment
        assert installment.id in store
        assert len(store) == 1

    def test_add_duplicate_raises(self, store):
        installment = make_installment()
        store.add(installment)

        with pytest.raises(ValueError, match="already exists"):
            store.add(installment)

    def test_get_missing_raises(self, store):
        with pytest.raises(InstallmentNotFoundError):
            store.get_by_id("inst_missing")

    def test_find_missing_returns_none(self, store):
        assert store.find_by_id("inst_missing") is None

    def test_update_missing_raises(self, store):
        with pytest.raises(InstallmentNotFoundError):
            store.update(make_installment())

    def test_update_replaces(self, store):
        installment = make_installment()
        store.add(installment)

        changed = installment.model_copy(deep=True)
        changed.reschedule(None, reason="test")
        store.update(changed)

        assert store.get_by_id(installment.id).actionable_date is None

    def test_get_by_subscription_is_oldest_first(self, store):
        newer = make_installment(created_at=NOW)
        older = make_installment(created_at=NOW - timedelta(days=30))
        other = make_installment(subscription_id="sub_2")
        for installment in (newer, older, other):
            store.add(installment)

        assert [i.id for i in store.get_by_subscription("sub_1")] == [older.id, newer.id]

    def test_get_actionable(self, store):
        later = make_installment(actionable_date=NOW + timedelta(hours=2))
        due = make_installment(actionable_date=NOW - timedelta(hours=1))
        exact = make_installment(actionable_date=NOW)
        unscheduled = make_installment(actionable_date=None)
        fulfilled = make_installment(actionable_date=NOW - timedelta(days=1))
        fulfilled.record_detail(success=True, message="done", created_at=NOW)
        for installment in (later, due, exact, unscheduled, fulfilled):
            store.add(installment)

        assert [i.id for i in store.get_actionable(NOW)] == [due.id, exact.id]

    def test_count_details(self, store):
        first = make_installment()
        first.record_detail(success=False, message="failed", created_at=NOW)
        second = make_installment()
        second.record_detail(success=False, message="failed", created_at=NOW)
        second.record_detail(success=True, message="done", created_at=NOW)
        store.add(first)
        store.add(second)

        assert store.count_details() == 3

    def test_snapshot_is_independent_copy(self, store):
        installment = make_installment()
        store.add(installment)

        snapshot = store.snapshot()
        installment.record_detail(success=False, message="failed", created_at=NOW)

        assert snapshot[installment.id].details == []

    def test_restore(self, store):
        installment = make_installment()
        store.add(installment)
        snapshot = store.snapshot()

        store.add(make_installment())
        store.restore(snapshot)

        assert store.count() == 1
        assert store.exists(installment.id)

    def test_repr(self, store):
        store.add(make_installment())

        assert repr(store) == "InstallmentStore(installments=1)"


class TestInstallmentDetailQuery:
    """Test detail lookups across a subscription's installments."""

    def test_empty_subscription(self, detail_query):
        assert detail_query.for_subscription("sub_1") == []
        assert detail_query.latest_successful("sub_1") is None

    def test_for_subscription_orders_by_creation(self, store, detail_query):
        first = make_installment(created_at=NOW - timedelta(days=10))
        second = make_installment(created_at=NOW - timedelta(days=5))
        a = first.record_detail(success=False, message="a", created_at=NOW - timedelta(days=9))
        c = first.record_detail(success=True, message="c", created_at=NOW - timedelta(days=1))
        b = second.record_detail(success=False, message="b", created_at=NOW - timedelta(days=4))
        store.add(first)
        store.add(second)

        assert [d.id for d in detail_query.for_subscription("sub_1")] == [a.id, b.id, c.id]

    def test_latest_successful_across_installments(self, store, detail_query):
        """Test that the newest success wins regardless of installment."""
        first = make_installment(created_at=NOW - timedelta(days=60))
        second = make_installment(created_at=NOW - timedelta(days=30))
        first.record_detail(success=True, message="old", created_at=NOW - timedelta(days=59))
        recent = second.record_detail(success=True, message="new", created_at=NOW - timedelta(days=29))
        second.record_detail(success=False, message="later failure", created_at=NOW)
        store.add(first)
        store.add(second)

        assert detail_query.latest_successful("sub_1") == recent

    def test_latest_successful_ignores_failures(self, store, detail_query):
        installment = make_installment()
        installment.record_detail(success=False, message="failed", created_at=NOW)
        store.add(installment)

        assert detail_query.latest_successful("sub_1") is None
        assert len(detail_query.failed("sub_1")) == 1
        assert detail_query.succeeded("sub_1") == []

    def test_scoped_to_subscription(self, store, detail_query):
        other = make_installment(subscription_id="sub_2")
        other.record_detail(success=True, message="done", created_at=NOW)
        store.add(other)

        assert detail_query.latest_successful("sub_1") is None
        assert detail_query.latest_successful("sub_2") is not None
