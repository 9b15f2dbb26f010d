"""
Order and item lifecycle engine.

Every public operation is one read-modify-write inside a single transaction.
Preconditions are checked before anything is mutated, and a failure rolls the
whole transaction back, so callers never observe a partial transition.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.orm.attributes import flag_modified

from ..config import get_settings
from ..core.exceptions import InvalidOperation, InvalidTransition, ValidationError
from ..core.schemas import (
    ItemInput,
    ItemOut,
    ItemTransitionArgs,
    OrderCreate,
    OrderOut,
    OrderTransitionArgs,
    ScheduleDeliveryRequest,
    parse_model,
    to_utc,
    utcnow,
)
from ..core.statuses import (
    ITEM_TERMINAL,
    ITEM_WORK_STATUSES,
    ORDER_ACCEPTS_ITEMS,
    ORDER_TERMINAL,
    ItemStatus,
    OrderStatus,
    can_transition_item,
    can_transition_order,
)
from .database import DatabaseManager
from .models import Item, Order
from .store import EntityStore

logger = logging.getLogger(__name__)


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ValidationError(f"Unknown {enum_cls.__name__} value: {value!r}") from e


class LifecycleService:
    def __init__(
        self,
        db: DatabaseManager,
        auto_complete_orders: Optional[bool] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        if auto_complete_orders is None:
            auto_complete_orders = get_settings().AUTO_COMPLETE_ORDERS
        self.auto_complete_orders = auto_complete_orders
        self.clock = clock

    # ------------------------------------------------------------------ orders

    def create_order(self, customer_id: int, scheduled_visit: Any, notes: Optional[str] = None) -> OrderOut:
        """Schedule a pickup; the order starts as an intent with no items."""
        payload = parse_model(
            OrderCreate,
            {"customer_id": customer_id, "scheduled_visit": scheduled_visit, "notes": notes},
        )
        with self.db.session_scope() as session:
            EntityStore(session).require_customer(payload.customer_id)
            order = Order(
                status=OrderStatus.INTENT,
                customer_id=payload.customer_id,
                scheduled_visit=to_utc(payload.scheduled_visit),
                notes=payload.notes,
            )
            session.add(order)
            session.flush()
            logger.info(f"Created order {order.id} for customer {payload.customer_id}")
            return OrderOut.model_validate(order)

    def get_order(self, order_id: int) -> OrderOut:
        with self.db.session_scope() as session:
            return OrderOut.model_validate(EntityStore(session).require_order(order_id))

    def list_orders(self, status: Any = None, customer_id: Optional[int] = None) -> list:
        """Orders newest first, optionally narrowed to one status or one customer."""
        status = _coerce(OrderStatus, status) if status is not None else None
        with self.db.session_scope() as session:
            orders = EntityStore(session).list_orders(status, customer_id=customer_id)
            return [OrderOut.model_validate(o) for o in orders]

    def transition_order(self, order_id: int, target_status: Any, args: Any = None) -> OrderOut:
        target = _coerce(OrderStatus, target_status)
        parsed = parse_model(OrderTransitionArgs, args or {})
        try:
            with self.db.session_scope() as session:
                order = EntityStore(session).require_order(order_id)
                self._apply_order_transition(order, target, parsed)
                session.flush()
                return OrderOut.model_validate(order)
        except (InvalidTransition, ValidationError) as e:
            logger.warning(f"Order {order_id} -> {target.value} rejected: {e.message}")
            raise

    def _apply_order_transition(self, order: Order, target: OrderStatus, args: OrderTransitionArgs) -> None:
        current = order.status
        if current is OrderStatus.COMPLETED and target is OrderStatus.COMPLETED:
            return
        if current in ORDER_TERMINAL:
            raise InvalidTransition(f"Order {order.id} is {current.value}; no further transitions are allowed")

        if target == current:
            self._check_order_replay(order, args)
            return

        if not can_transition_order(current, target):
            raise InvalidTransition(f"Order {order.id} cannot move from {current.value} to {target.value}")

        if target is OrderStatus.IN_PROGRESS:
            self._start_order(order, args)
        elif target is OrderStatus.CANCELLED:
            self._cancel_order(order, args)
        elif target is OrderStatus.COMPLETED:
            self._complete_order(order)
        else:
            raise InvalidTransition(f"Order {order.id} cannot move to {target.value}")

        logger.info(f"Order {order.id}: {current.value} -> {order.status.value}")

    def _check_order_replay(self, order: Order, args: OrderTransitionArgs) -> None:
        requested = to_utc(args.actual_visit)
        if order.status is OrderStatus.IN_PROGRESS and requested and requested != order.actual_visit:
            raise InvalidTransition(f"Order {order.id} was already picked up at {order.actual_visit.isoformat()}")

    def _start_order(self, order: Order, args: OrderTransitionArgs) -> None:
        if not order.items:
            raise InvalidTransition(f"Order {order.id} needs at least one item before pickup")
        order.actual_visit = to_utc(args.actual_visit) or self.clock()
        order.status = OrderStatus.IN_PROGRESS

    def _cancel_order(self, order: Order, args: OrderTransitionArgs) -> None:
        reason = (args.cancel_reason or "").strip()
        if order.status is OrderStatus.IN_PROGRESS and not reason:
            raise ValidationError("A cancellation reason is required once an order is in progress")
        order.cancel_reason = reason or None
        order.status = OrderStatus.CANCELLED
        for item in order.items:
            if item.status not in ITEM_TERMINAL:
                item.status = ItemStatus.CANCELLED

    def _complete_order(self, order: Order) -> None:
        if not order.items or any(item.status is not ItemStatus.DELIVERED for item in order.items):
            raise InvalidTransition(f"Order {order.id} has items that are not delivered")
        order.status = OrderStatus.COMPLETED

    def _touch_order(self, order: Order) -> None:
        # Rewrites the order row so its version moves with every child change;
        # concurrent writers on the same order then conflict at commit.
        order.updated_at = self.clock()
        flag_modified(order, "updated_at")

    def _maybe_complete_order(self, order: Order) -> None:
        if not self.auto_complete_orders or order.status is not OrderStatus.IN_PROGRESS:
            return
        if order.items and all(item.status is ItemStatus.DELIVERED for item in order.items):
            order.status = OrderStatus.COMPLETED
            logger.info(f"Order {order.id}: inProgress -> completed (all items delivered)")

    def add_items_to_order(self, order_id: int, items: Iterable[Any]) -> OrderOut:
        """Attach new items, appended in the order they were submitted."""
        inputs = [parse_model(ItemInput, item) for item in items]
        if not inputs:
            raise ValidationError("At least one item is required")

        with self.db.session_scope() as session:
            order = EntityStore(session).require_order(order_id)
            if order.status not in ORDER_ACCEPTS_ITEMS:
                logger.warning(f"Rejected adding items to {order.status.value} order {order_id}")
                raise InvalidOperation(f"Order {order_id} is {order.status.value}; items can no longer be added")

            for data in inputs:
                order.items.append(Item(
                    status=ItemStatus.PENDING_TAILOR,
                    name=data.name,
                    price=data.price,
                    action_points=list(data.action_points),
                    attached_images=list(data.attached_images),
                ))
            self._touch_order(order)
            session.flush()
            logger.info(f"Added {len(inputs)} item(s) to order {order_id}")
            return OrderOut.model_validate(order)

    # ------------------------------------------------------------------- items

    def get_item(self, item_id: int) -> ItemOut:
        with self.db.session_scope() as session:
            return ItemOut.model_validate(EntityStore(session).require_item(item_id))

    def list_items(self, status: Any = None, tailor_id: Optional[int] = None) -> list:
        status = _coerce(ItemStatus, status) if status is not None else None
        with self.db.session_scope() as session:
            items = EntityStore(session).list_items(status, assigned_tailor_id=tailor_id)
            return [ItemOut.model_validate(i) for i in items]

    def transition_item(self, item_id: int, target_status: Any, args: Any = None) -> ItemOut:
        target = _coerce(ItemStatus, target_status)
        parsed = parse_model(ItemTransitionArgs, args or {})
        try:
            with self.db.session_scope() as session:
                store = EntityStore(session)
                item = store.require_item(item_id)
                order = store.order_for_item(item)
                self._apply_item_transition(store, order, item, target, parsed)
                session.flush()
                return ItemOut.model_validate(item)
        except (InvalidTransition, InvalidOperation, ValidationError) as e:
            logger.warning(f"Item {item_id} -> {target.value} rejected: {e.message}")
            raise

    def _apply_item_transition(
        self, store: EntityStore, order: Order, item: Item, target: ItemStatus, args: ItemTransitionArgs
    ) -> None:
        current = item.status
        if target == current:
            self._check_item_replay(item, args)
            return

        if current in ITEM_TERMINAL:
            raise InvalidTransition(f"Item {item.id} is {current.value}; no further transitions are allowed")
        if target is ItemStatus.CANCELLED:
            raise InvalidOperation(f"Item {item.id} can only be cancelled together with its order")
        if not can_transition_item(current, target):
            raise InvalidTransition(f"Item {item.id} cannot move from {current.value} to {target.value}")
        if target in ITEM_WORK_STATUSES and order.status is not OrderStatus.IN_PROGRESS:
            raise InvalidOperation(f"Order {order.id} is {order.status.value}; item work requires an order in progress")

        if target is ItemStatus.IN_PROGRESS:
            self._assign_tailor(store, item, args)
        elif target is ItemStatus.COMPLETED:
            item.status = ItemStatus.COMPLETED
        elif target is ItemStatus.DELIVERED:
            self._deliver_item(item, args)
            self._maybe_complete_order(order)
        else:
            raise InvalidTransition(f"Item {item.id} cannot move to {target.value}")

        self._touch_order(order)

        logger.info(f"Item {item.id}: {current.value} -> {item.status.value}")

    def _check_item_replay(self, item: Item, args: ItemTransitionArgs) -> None:
        if item.status is ItemStatus.IN_PROGRESS:
            if args.assigned_tailor_id is not None and args.assigned_tailor_id != item.assigned_tailor_id:
                raise InvalidTransition(f"Item {item.id} is already assigned to tailor {item.assigned_tailor_id}")
            if args.tailor_payout is not None and args.tailor_payout != item.tailor_payout:
                raise InvalidTransition(f"Item {item.id} already has a payout; use the payout update instead")
        elif item.status is ItemStatus.DELIVERED:
            requested = to_utc(args.actual_delivery)
            if requested and requested != item.actual_delivery:
                raise InvalidTransition(
                    f"Item {item.id} was already delivered at {item.actual_delivery.isoformat()}"
                )

    def _assign_tailor(self, store: EntityStore, item: Item, args: ItemTransitionArgs) -> None:
        tailor_id = args.assigned_tailor_id if args.assigned_tailor_id is not None else item.assigned_tailor_id
        payout = args.tailor_payout if args.tailor_payout is not None else item.tailor_payout
        if tailor_id is None:
            raise ValidationError("A tailor must be assigned before work starts")
        if payout is None or payout <= 0:
            raise ValidationError("A positive tailor payout is required before work starts")
        store.require_tailor(tailor_id)
        item.assigned_tailor_id = tailor_id
        item.tailor_payout = payout
        item.status = ItemStatus.IN_PROGRESS

    def _deliver_item(self, item: Item, args: ItemTransitionArgs) -> None:
        delivered_at = to_utc(args.actual_delivery) or self.clock()
        item.actual_delivery = delivered_at
        if item.scheduled_delivery is None:
            item.scheduled_delivery = delivered_at
        item.status = ItemStatus.DELIVERED

    def schedule_delivery(self, item_id: int, scheduled_delivery: Any) -> ItemOut:
        """Set or move the delivery time of a finished item; status is unchanged."""
        payload = parse_model(ScheduleDeliveryRequest, {"scheduled_delivery": scheduled_delivery})

        with self.db.session_scope() as session:
            item = EntityStore(session).require_item(item_id)
            if item.status is not ItemStatus.COMPLETED:
                raise InvalidOperation(f"Item {item_id} is {item.status.value}; only completed items get a delivery slot")
            item.scheduled_delivery = to_utc(payload.scheduled_delivery)
            session.flush()
            logger.info(f"Item {item_id}: delivery scheduled for {item.scheduled_delivery.isoformat()}")
            return ItemOut.model_validate(item)

    def update_payout(self, item_id: int, tailor_payout: int) -> ItemOut:
        if tailor_payout is None or tailor_payout <= 0:
            raise ValidationError("Tailor payout must be a positive amount in cents")

        with self.db.session_scope() as session:
            item = EntityStore(session).require_item(item_id)
            if item.status not in (ItemStatus.IN_PROGRESS, ItemStatus.COMPLETED):
                raise InvalidOperation(f"Item {item_id} is {item.status.value}; payout cannot be changed")
            item.tailor_payout = tailor_payout
            session.flush()
            logger.info(f"Item {item_id}: payout set to {tailor_payout} cents")
            return ItemOut.model_validate(item)
