from datetime import datetime, timedelta, timezone

import pytest

from tailor_ops.services.database import DatabaseManager
from tailor_ops.services.financials import FinancialService
from tailor_ops.services.lifecycle import LifecycleService
from tailor_ops.services.store import DirectoryService

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db():
    """Fresh in-memory database per test"""
    manager = DatabaseManager("sqlite://")
    manager.initialize()
    manager.create_tables()
    yield manager
    manager.dispose()


@pytest.fixture
def directory(db):
    return DirectoryService(db)


@pytest.fixture
def lifecycle(db):
    return LifecycleService(db, auto_complete_orders=True, clock=lambda: NOW)


@pytest.fixture
def financials(db):
    return FinancialService(db)


@pytest.fixture
def customer(directory):
    return directory.create_customer({
        "name": "Jane Smith",
        "phone_number": "+15555550100",
        "address": {"street": "12 Main St", "apt": "4B", "city": "Austin", "state": "TX", "zip": "78701"},
        "data_points": ["Prefers evening pickups"],
    })


@pytest.fixture
def tailor(directory):
    return directory.create_tailor({"name": "Alice Johnson", "phone_number": "+15555550111"})


@pytest.fixture
def make_order(lifecycle, customer):
    """Create an order with the given item names, optionally picked up."""
    def _make(names=("Suit jacket",), prices=None, start=True, visit_offset=timedelta(hours=2)):
        order = lifecycle.create_order(customer.id, NOW + visit_offset)
        if names:
            prices = prices or [None] * len(names)
            order = lifecycle.add_items_to_order(
                order.id, [{"name": name, "price": price} for name, price in zip(names, prices)]
            )
        if start:
            order = lifecycle.transition_order(order.id, "inProgress", {"actual_visit": NOW})
        return order
    return _make


@pytest.fixture
def finish_item(lifecycle, tailor):
    """Walk an item from pendingTailor to completed."""
    def _finish(item_id, payout=400):
        lifecycle.transition_item(item_id, "inProgress", {"assigned_tailor_id": tailor.id, "tailor_payout": payout})
        return lifecycle.transition_item(item_id, "completed")
    return _finish
