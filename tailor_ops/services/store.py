"""
Entity store: record lookups, filtered queries and relationship traversal,
plus the customer/tailor directory operations used by the admin forms.
"""

import logging
from typing import Any, List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import NotFound, StorageError
from ..core.schemas import (
    CustomerIn,
    CustomerOut,
    CustomerUpdate,
    TailorIn,
    TailorOut,
    TailorUpdate,
    parse_model,
)
from ..core.statuses import ItemStatus, OrderStatus
from .database import DatabaseManager
from .models import Customer, Item, Order, Tailor

logger = logging.getLogger(__name__)


class EntityStore:
    """Session-bound accessors; every call joins the caller's transaction."""

    def __init__(self, session: Session):
        self.session = session

    def get_customer(self, customer_id: int) -> Optional[Customer]:
        return self.session.get(Customer, customer_id)

    def require_customer(self, customer_id: int) -> Customer:
        customer = self.get_customer(customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found")
        return customer

    def get_tailor(self, tailor_id: int) -> Optional[Tailor]:
        return self.session.get(Tailor, tailor_id)

    def require_tailor(self, tailor_id: int) -> Tailor:
        tailor = self.get_tailor(tailor_id)
        if tailor is None:
            raise NotFound(f"Tailor {tailor_id} not found")
        return tailor

    def require_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id, options=[selectinload(Order.items)])
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def require_item(self, item_id: int) -> Item:
        item = self.session.get(Item, item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def order_for_item(self, item: Item) -> Order:
        order = self.session.get(Order, item.order_id, options=[selectinload(Order.items)])
        if order is None:
            raise StorageError(f"Item {item.id} has no owning order")
        return order

    def list_orders(
        self, status: Optional[OrderStatus] = None, customer_id: Optional[int] = None
    ) -> List[Order]:
        query = select(Order).options(selectinload(Order.items)).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            query = query.where(Order.status == status)
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
        return list(self.session.execute(query).scalars().all())

    def list_items(
        self, status: Optional[ItemStatus] = None, assigned_tailor_id: Optional[int] = None
    ) -> List[Item]:
        query = select(Item).order_by(Item.created_at.desc(), Item.id.desc())
        if status is not None:
            query = query.where(Item.status == status)
        if assigned_tailor_id is not None:
            query = query.where(Item.assigned_tailor_id == assigned_tailor_id)
        return list(self.session.execute(query).scalars().all())

    def scheduled_pickups(self, limit: Optional[int] = None) -> List[Order]:
        """Intent orders with a scheduled visit, earliest first."""
        query = (
            select(Order)
            .where(Order.status == OrderStatus.INTENT, Order.scheduled_visit.is_not(None))
            .order_by(Order.scheduled_visit.asc(), Order.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return list(self.session.execute(query).scalars().all())

    def scheduled_deliveries(self, limit: Optional[int] = None) -> List[Tuple[Item, Order]]:
        """Finished items awaiting delivery with their owning orders, earliest first."""
        query = (
            select(Item, Order)
            .join(Order, Item.order_id == Order.id)
            .where(Item.status == ItemStatus.COMPLETED, Item.scheduled_delivery.is_not(None))
            .order_by(Item.scheduled_delivery.asc(), Item.id.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [(item, order) for item, order in self.session.execute(query).all()]


class DirectoryService:
    """Customer and tailor records, one transaction per call."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def create_customer(self, data: Any) -> CustomerOut:
        payload = parse_model(CustomerIn, data)
        with self.db.session_scope() as session:
            customer = Customer(
                name=payload.name,
                phone_number=payload.phone_number,
                address=payload.address.model_dump() if payload.address else None,
                data_points=list(payload.data_points),
            )
            session.add(customer)
            session.flush()
            logger.info(f"Created customer {customer.id}")
            return CustomerOut.model_validate(customer)

    def update_customer(self, customer_id: int, data: Any) -> CustomerOut:
        payload = parse_model(CustomerUpdate, data)
        with self.db.session_scope() as session:
            customer = EntityStore(session).require_customer(customer_id)
            for field, value in payload.model_dump(exclude_unset=True).items():
                if field == "name" and value is None:
                    continue
                if field == "data_points" and value is None:
                    value = []
                setattr(customer, field, value)
            session.flush()
            return CustomerOut.model_validate(customer)

    def delete_customer(self, customer_id: int) -> None:
        # Orders keep the dangling id; readers tolerate it
        with self.db.session_scope() as session:
            customer = EntityStore(session).require_customer(customer_id)
            session.delete(customer)
            logger.info(f"Deleted customer {customer_id}")

    def get_customer(self, customer_id: int) -> CustomerOut:
        with self.db.session_scope() as session:
            return CustomerOut.model_validate(EntityStore(session).require_customer(customer_id))

    def list_customers(self) -> List[CustomerOut]:
        with self.db.session_scope() as session:
            rows = session.execute(select(Customer).order_by(Customer.name.asc())).scalars().all()
            return [CustomerOut.model_validate(row) for row in rows]

    def create_tailor(self, data: Any) -> TailorOut:
        payload = parse_model(TailorIn, data)
        with self.db.session_scope() as session:
            tailor = Tailor(
                name=payload.name,
                phone_number=payload.phone_number,
                address=payload.address.model_dump() if payload.address else None,
            )
            session.add(tailor)
            session.flush()
            logger.info(f"Created tailor {tailor.id}")
            return TailorOut.model_validate(tailor)

    def update_tailor(self, tailor_id: int, data: Any) -> TailorOut:
        payload = parse_model(TailorUpdate, data)
        with self.db.session_scope() as session:
            tailor = EntityStore(session).require_tailor(tailor_id)
            for field, value in payload.model_dump(exclude_unset=True).items():
                if field == "name" and value is None:
                    continue
                setattr(tailor, field, value)
            session.flush()
            return TailorOut.model_validate(tailor)

    def get_tailor(self, tailor_id: int) -> TailorOut:
        with self.db.session_scope() as session:
            return TailorOut.model_validate(EntityStore(session).require_tailor(tailor_id))

    def list_tailors(self) -> List[TailorOut]:
        with self.db.session_scope() as session:
            rows = session.execute(select(Tailor).order_by(Tailor.name.asc())).scalars().all()
            return [TailorOut.model_validate(row) for row in rows]
