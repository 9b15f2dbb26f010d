"""
Order and item statuses (closed sets) and their legal transition edges.

Each table is keyed by every member of its enum. A status added to an enum
without a row in its table fails at import time, so every transition site has
to be revisited.
"""

from enum import Enum
from typing import Dict, FrozenSet


class OrderStatus(str, Enum):
    INTENT = "intent"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ItemStatus(str, Enum):
    PENDING_TAILOR = "pendingTailor"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


ORDER_TERMINAL: FrozenSet[OrderStatus] = frozenset([
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
])

ITEM_TERMINAL: FrozenSet[ItemStatus] = frozenset([
    ItemStatus.DELIVERED,
    ItemStatus.CANCELLED,
])

# Orders accept new items only while open
ORDER_ACCEPTS_ITEMS: FrozenSet[OrderStatus] = frozenset([
    OrderStatus.INTENT,
    OrderStatus.IN_PROGRESS,
])

ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.INTENT: frozenset([OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED]),
    OrderStatus.IN_PROGRESS: frozenset([OrderStatus.COMPLETED, OrderStatus.CANCELLED]),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

ITEM_TRANSITIONS: Dict[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.PENDING_TAILOR: frozenset([ItemStatus.IN_PROGRESS, ItemStatus.CANCELLED]),
    ItemStatus.IN_PROGRESS: frozenset([ItemStatus.COMPLETED, ItemStatus.CANCELLED]),
    ItemStatus.COMPLETED: frozenset([ItemStatus.DELIVERED, ItemStatus.CANCELLED]),
    ItemStatus.DELIVERED: frozenset(),
    ItemStatus.CANCELLED: frozenset(),
}

# Item statuses that represent tailoring work and need an open order
ITEM_WORK_STATUSES: FrozenSet[ItemStatus] = frozenset([
    ItemStatus.IN_PROGRESS,
    ItemStatus.COMPLETED,
    ItemStatus.DELIVERED,
])


def _check_exhaustive(table: Dict, enum_cls) -> None:
    missing = set(enum_cls) - set(table)
    if missing:
        raise RuntimeError(f"No transition row for {enum_cls.__name__}: {sorted(m.value for m in missing)}")


_check_exhaustive(ORDER_TRANSITIONS, OrderStatus)
_check_exhaustive(ITEM_TRANSITIONS, ItemStatus)


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ORDER_TRANSITIONS[current]


def can_transition_item(current: ItemStatus, target: ItemStatus) -> bool:
    return target in ITEM_TRANSITIONS[current]
