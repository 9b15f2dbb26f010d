"""
Core domain definitions.

This module contains:
- Order and item status enums with their legal transitions
- The error taxonomy shared by every layer
- Reference resolution helpers
- Pydantic input/output schemas
"""

from .exceptions import (
    TailorOpsError,
    ValidationError,
    NotFound,
    InvalidTransition,
    InvalidOperation,
    StorageError,
)
from .statuses import OrderStatus, ItemStatus

__all__ = [
    'TailorOpsError',
    'ValidationError',
    'NotFound',
    'InvalidTransition',
    'InvalidOperation',
    'StorageError',
    'OrderStatus',
    'ItemStatus',
]
