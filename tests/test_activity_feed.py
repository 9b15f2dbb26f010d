import pytest
from datetime import timedelta

from sqlalchemy.exc import OperationalError

from tailor_ops.core.schemas import UNKNOWN_CUSTOMER, Activity, CustomerSummary
from tailor_ops.services.activity import ActivityService, merge_activities
from tailor_ops.services.store import EntityStore


@pytest.fixture
def activity(db, now):
    return ActivityService(db, limit=10, clock=lambda: now)


@pytest.fixture
def book_delivery(lifecycle, make_order, finish_item):
    """Finished item on a picked-up order with a booked delivery slot."""
    def _book(at, name="Suit jacket"):
        order = make_order(names=[name, "Spare"])
        item_id = order.items[0].id
        finish_item(item_id)
        return lifecycle.schedule_delivery(item_id, at)
    return _book


def _activity(kind, entity_id, scheduled_at, now):
    overdue = scheduled_at < now
    return Activity(
        kind=kind,
        entity_id=entity_id,
        order_id=entity_id,
        customer=CustomerSummary(name="Jane Smith"),
        title="Jane Smith",
        subtitle="",
        scheduled_at=scheduled_at,
        is_overdue=overdue,
        priority="urgent" if overdue else "normal",
    )


class TestActivityFeed:

    def test_overdue_delivery_comes_first(self, activity, make_order, book_delivery, now):
        delivered_item = book_delivery(now - timedelta(hours=1))
        pickup = make_order(names=[], start=False, visit_offset=timedelta(hours=1))

        feed = activity.get_activity_feed()

        assert [(a.kind, a.entity_id) for a in feed.activities] == [
            ("delivery", delivered_item.id),
            ("pickup", pickup.id),
        ]
        delivery, visit = feed.activities
        assert delivery.is_overdue and delivery.priority == "urgent"
        assert not visit.is_overdue and visit.priority == "normal"
        assert feed.urgent == [delivery]
        assert feed.normal == [visit]
        assert feed.generated_at == now

    def test_activity_carries_customer_display(self, activity, make_order, customer):
        order = make_order(names=[], start=False)

        entry = activity.get_activity_feed().activities[0]

        assert entry.order_id == order.id
        assert entry.title == "Jane Smith"
        assert entry.customer.id == customer.id
        assert entry.customer.address == "12 Main St 4B, Austin, TX 78701"

    def test_only_open_work_is_listed(self, activity, lifecycle, make_order, finish_item, now):
        make_order()  # picked up
        cancelled = make_order(start=False)
        lifecycle.transition_order(cancelled.id, "cancelled")
        unscheduled = make_order(names=["Coat", "Hat"])
        finish_item(unscheduled.items[0].id)  # completed, no slot

        assert activity.get_activity_feed().activities == []

    def test_delivered_items_leave_the_feed(self, activity, lifecycle, book_delivery, now):
        item = book_delivery(now + timedelta(hours=4))
        lifecycle.transition_item(item.id, "delivered", {"actual_delivery": now})

        assert activity.get_activity_feed().activities == []

    def test_explicit_now_overrides_clock(self, activity, make_order, now):
        make_order(names=[], start=False, visit_offset=timedelta(hours=1))

        feed = activity.get_activity_feed(now + timedelta(hours=2))

        assert feed.activities[0].priority == "urgent"

    def test_each_category_is_capped(self, db, make_order, book_delivery, now):
        for hours in (5, 3, 4):
            make_order(names=[], start=False, visit_offset=timedelta(hours=hours))
        for hours in (6, 1, 2):
            book_delivery(now + timedelta(hours=hours))

        feed = ActivityService(db, limit=2, clock=lambda: now).get_activity_feed()

        pickups = [a.scheduled_at for a in feed.activities if a.kind == "pickup"]
        deliveries = [a.scheduled_at for a in feed.activities if a.kind == "delivery"]
        assert pickups == [now + timedelta(hours=3), now + timedelta(hours=4)]
        assert deliveries == [now + timedelta(hours=1), now + timedelta(hours=2)]
        assert len(feed.activities) == 4

    def test_deleted_customer_shows_placeholder(self, activity, directory, lifecycle, now):
        gone = directory.create_customer({"name": "Temporary Client"})
        order = lifecycle.create_order(gone.id, now + timedelta(hours=1))
        directory.delete_customer(gone.id)

        entry = activity.get_activity_feed().activities[0]

        assert entry.entity_id == order.id
        assert entry.customer == UNKNOWN_CUSTOMER
        assert entry.title == "Unknown customer"

    def test_customer_lookup_failure_does_not_sink_feed(self, activity, make_order, monkeypatch):
        make_order(names=[], start=False)

        def broken(self, customer_id):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(EntityStore, "get_customer", broken)

        feed = activity.get_activity_feed()

        assert len(feed.activities) == 1
        assert feed.activities[0].customer == UNKNOWN_CUSTOMER


def test_merge_breaks_ties_pickup_first(now):
    at = now + timedelta(hours=1)
    entries = [
        _activity("delivery", 2, at, now),
        _activity("pickup", 9, at, now),
        _activity("pickup", 3, at, now),
        _activity("delivery", 1, now - timedelta(hours=1), now),
    ]

    feed = merge_activities(entries, now)

    assert [(a.kind, a.entity_id) for a in feed.activities] == [
        ("delivery", 1),
        ("pickup", 3),
        ("pickup", 9),
        ("delivery", 2),
    ]
    assert [a.entity_id for a in feed.urgent] == [1]


def test_merge_empty(now):
    feed = merge_activities([], now)
    assert feed.activities == feed.urgent == feed.normal == []
