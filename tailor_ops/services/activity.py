"""
Dashboard activity feed: scheduled pickups and deliveries merged into one
time-ordered list, tagged urgent when overdue.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..config import get_settings
from ..core.refs import ref_of, resolve
from ..core.schemas import (
    UNKNOWN_CUSTOMER,
    Activity,
    ActivityFeed,
    Address,
    CustomerSummary,
    to_utc,
    utcnow,
)
from .database import DatabaseManager
from .models import Customer, Item, Order
from .store import EntityStore

logger = logging.getLogger(__name__)

_KIND_RANK = {"pickup": 0, "delivery": 1}


def summarize_customer(customer: Optional[Customer]) -> CustomerSummary:
    if customer is None:
        return UNKNOWN_CUSTOMER
    address = Address.model_validate(customer.address).one_line() if customer.address else None
    return CustomerSummary(
        id=customer.id,
        name=customer.name,
        phone_number=customer.phone_number,
        address=address,
    )


def pickup_activity(order: Order, customer: CustomerSummary, now: datetime) -> Activity:
    scheduled_at = to_utc(order.scheduled_visit)
    overdue = scheduled_at < now
    return Activity(
        kind="pickup",
        entity_id=order.id,
        order_id=order.id,
        customer=customer,
        title=customer.name,
        subtitle=f"Pickup for order #{order.id}",
        scheduled_at=scheduled_at,
        is_overdue=overdue,
        priority="urgent" if overdue else "normal",
    )


def delivery_activity(item: Item, order: Order, customer: CustomerSummary, now: datetime) -> Activity:
    scheduled_at = to_utc(item.scheduled_delivery)
    overdue = scheduled_at < now
    return Activity(
        kind="delivery",
        entity_id=item.id,
        order_id=order.id,
        customer=customer,
        title=customer.name,
        subtitle=f"Deliver {item.name}",
        scheduled_at=scheduled_at,
        is_overdue=overdue,
        priority="urgent" if overdue else "normal",
    )


def merge_activities(activities: Iterable[Activity], now: datetime) -> ActivityFeed:
    """Sort everything by scheduled time, then derive the urgent/normal views."""
    ordered = sorted(activities, key=lambda a: (a.scheduled_at, _KIND_RANK[a.kind], a.entity_id))
    return ActivityFeed(
        generated_at=now,
        activities=ordered,
        urgent=[a for a in ordered if a.priority == "urgent"],
        normal=[a for a in ordered if a.priority == "normal"],
    )


class ActivityService:
    def __init__(
        self,
        db: DatabaseManager,
        limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.limit = limit if limit is not None else get_settings().ACTIVITY_LIMIT
        self.clock = clock

    def get_activity_feed(self, now: Optional[datetime] = None) -> ActivityFeed:
        now = to_utc(now) or self.clock()
        with self.db.session_scope() as session:
            store = EntityStore(session)
            # Both categories are capped the same way before the merge
            pickups = store.scheduled_pickups(self.limit)
            deliveries = store.scheduled_deliveries(self.limit)

            customers: Dict[Optional[int], CustomerSummary] = {}
            activities: List[Activity] = []
            for order in pickups:
                customer = self._customer_for(store, order, customers)
                activities.append(pickup_activity(order, customer, now))
            for item, order in deliveries:
                customer = self._customer_for(store, order, customers)
                activities.append(delivery_activity(item, order, customer, now))

        feed = merge_activities(activities, now)
        logger.info(
            f"Activity feed built: {len(pickups)} pickup(s), {len(deliveries)} delivery(ies), "
            f"{len(feed.urgent)} urgent"
        )
        return feed

    def _customer_for(
        self, store: EntityStore, order: Order, cache: Dict[Optional[int], CustomerSummary]
    ) -> CustomerSummary:
        if order.customer_id in cache:
            return cache[order.customer_id]
        try:
            customer = resolve(ref_of(order.customer_id), store.get_customer)
            summary = summarize_customer(customer)
        except (SQLAlchemyError, ValueError) as e:
            # Display enrichment only; a failed lookup must not sink the feed
            logger.warning(f"Could not load customer {order.customer_id} for order {order.id}: {e}")
            summary = UNKNOWN_CUSTOMER
        if summary is UNKNOWN_CUSTOMER:
            logger.debug(f"Order {order.id} references unknown customer {order.customer_id}")
        cache[order.customer_id] = summary
        return summary
