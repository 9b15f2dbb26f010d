from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .statuses import ItemStatus, OrderStatus

M = TypeVar("M", bound=BaseModel)

US_STATES = frozenset([
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
    "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
    "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
    "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
    "DC", "PR", "GU", "VI", "AS", "MP",
])

# Leading integer, same acceptance as parseInt
_ZIP_RE = re.compile(r"^\s*[+-]?\d")


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a timestamp to an aware UTC instant; naive values are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_model(model_cls: Type[M], data: Any) -> M:
    """Coerce a mapping (or an instance) into ``model_cls``, raising our ValidationError."""
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(problems) from e


def format_cents(cents: Optional[int]) -> str:
    """Render integer cents for display, e.g. 1550 -> "$15.50"."""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) // 100:,}.{abs(cents) % 100:02d}"


class Address(BaseModel):
    street: str = Field(min_length=1)
    apt: Optional[str] = None
    city: str = Field(min_length=1)
    state: str
    zip: str

    @field_validator("zip")
    @classmethod
    def validate_zip(cls, value: str) -> str:
        if not _ZIP_RE.match(value):
            raise ValueError("Zip code must be a number")
        return value.strip()

    @field_validator("state")
    @classmethod
    def validate_state(cls, value: str) -> str:
        value = value.strip().upper()
        if value not in US_STATES:
            raise ValueError(f"Unknown state code: {value}")
        return value

    def one_line(self) -> str:
        street = f"{self.street} {self.apt}" if self.apt else self.street
        return f"{street}, {self.city}, {self.state} {self.zip}"


class CustomerIn(BaseModel):
    name: str = Field(min_length=1)
    phone_number: Optional[str] = None
    address: Optional[Address] = None
    data_points: List[str] = Field(default_factory=list)


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = None
    address: Optional[Address] = None
    data_points: Optional[List[str]] = None


class CustomerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone_number: Optional[str] = None
    address: Optional[Address] = None
    data_points: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TailorIn(BaseModel):
    name: str = Field(min_length=1)
    phone_number: Optional[str] = None
    address: Optional[Address] = None


class TailorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    phone_number: Optional[str] = None
    address: Optional[Address] = None


class TailorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone_number: Optional[str] = None
    address: Optional[Address] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderCreate(BaseModel):
    customer_id: int
    scheduled_visit: datetime
    notes: Optional[str] = None


class ItemInput(BaseModel):
    """One garment submitted for an order; always starts in pendingTailor."""

    name: str
    price: Optional[int] = Field(default=None, ge=0, description="quoted price in cents")
    action_points: List[str] = Field(default_factory=list)
    attached_images: List[str] = Field(default_factory=list, description="media ids")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Item name is required")
        return value

    @field_validator("action_points")
    @classmethod
    def drop_blank_points(cls, value: List[str]) -> List[str]:
        return [point.strip() for point in value if point and point.strip()]


class OrderTransitionArgs(BaseModel):
    actual_visit: Optional[datetime] = None
    cancel_reason: Optional[str] = None


class ItemTransitionArgs(BaseModel):
    assigned_tailor_id: Optional[int] = None
    tailor_payout: Optional[int] = None
    actual_delivery: Optional[datetime] = None


class OrderTransitionRequest(OrderTransitionArgs):
    status: OrderStatus


class ItemTransitionRequest(ItemTransitionArgs):
    status: ItemStatus


class ScheduleDeliveryRequest(BaseModel):
    scheduled_delivery: datetime


class PayoutRequest(BaseModel):
    tailor_payout: int


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: ItemStatus
    name: str
    attached_images: List[str] = Field(default_factory=list)
    action_points: List[str] = Field(default_factory=list)
    assigned_tailor_id: Optional[int] = None
    scheduled_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    price: Optional[int] = None
    tailor_payout: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: OrderStatus
    customer_id: Optional[int] = None
    scheduled_visit: Optional[datetime] = None
    actual_visit: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    notes: Optional[str] = None
    items: List[ItemOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FinancialSummary(BaseModel):
    customer_total: int = 0
    tailor_payout_total: int = 0
    net_profit: int = 0

    @property
    def customer_total_display(self) -> str:
        return format_cents(self.customer_total)

    @property
    def tailor_payout_total_display(self) -> str:
        return format_cents(self.tailor_payout_total)

    @property
    def net_profit_display(self) -> str:
        return format_cents(self.net_profit)


class CustomerSummary(BaseModel):
    id: Optional[int] = None
    name: str
    phone_number: Optional[str] = None
    address: Optional[str] = None


UNKNOWN_CUSTOMER = CustomerSummary(name="Unknown customer")


class Activity(BaseModel):
    kind: Literal["pickup", "delivery"]
    entity_id: int
    order_id: int
    customer: CustomerSummary
    title: str
    subtitle: str
    scheduled_at: datetime
    is_overdue: bool
    priority: Literal["urgent", "normal"]


class ActivityFeed(BaseModel):
    generated_at: datetime
    activities: List[Activity] = Field(default_factory=list)
    urgent: List[Activity] = Field(default_factory=list)
    normal: List[Activity] = Field(default_factory=list)
