"""
Cross-entity references.

A reference is either a bare id or an already loaded record. Business logic
never inspects the raw form: callers normalise with ``resolve`` first.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Loaded(Generic[T]):
    value: T


Ref = Union[int, Loaded[T]]


def ref_of(record_id: Optional[int], record: Optional[T] = None) -> Optional["Ref[T]"]:
    """Build a reference, preferring the loaded record when one is at hand."""
    if record is not None:
        return Loaded(record)
    return record_id


def resolve(ref: Optional["Ref[T]"], loader: Callable[[int], Optional[T]]) -> Optional[T]:
    """Normalise a reference to its record, loading by id when needed.

    Returns None for a missing reference or an id the loader cannot find.
    """
    if ref is None:
        return None
    if isinstance(ref, Loaded):
        return ref.value
    return loader(ref)
