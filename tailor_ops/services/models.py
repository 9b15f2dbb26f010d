"""
Database models for the tailor ops entity store
"""

from datetime import timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Enum as SQLEnum
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

from ..core.schemas import utcnow
from ..core.statuses import ItemStatus, OrderStatus

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, always hands back aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=True)
    address = Column(JSON, nullable=True)
    data_points = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Tailor(Base):
    __tablename__ = "tailors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=True)
    address = Column(JSON, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(
        SQLEnum(OrderStatus, values_callable=_enum_values, native_enum=False, length=32),
        nullable=False,
        default=OrderStatus.INTENT,
        index=True,
    )
    # Plain id: customers are deleted independently and may leave this dangling
    customer_id = Column(Integer, nullable=True, index=True)
    scheduled_visit = Column(UTCDateTime, nullable=True, index=True)
    actual_visit = Column(UTCDateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships (order owns its items, in submission order)
    items = relationship(
        "Item",
        order_by="Item.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    # Storage-only link to the owning order; not part of the item's public shape
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    status = Column(
        SQLEnum(ItemStatus, values_callable=_enum_values, native_enum=False, length=32),
        nullable=False,
        default=ItemStatus.PENDING_TAILOR,
        index=True,
    )
    name = Column(String(255), nullable=False)
    attached_images = Column(JSON, nullable=False, default=list)
    action_points = Column(JSON, nullable=False, default=list)
    assigned_tailor_id = Column(Integer, ForeignKey("tailors.id"), nullable=True, index=True)
    scheduled_delivery = Column(UTCDateTime, nullable=True, index=True)
    actual_delivery = Column(UTCDateTime, nullable=True)
    price = Column(Integer, nullable=True)
    tailor_payout = Column(Integer, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}
