"""Explicit three-state updates for optional columns.

A field update is one of:

* ``KEEP``: leave the stored value untouched (also what an absent key means)
* ``CLEAR``: store NULL
* ``SetTo(value)``: store ``value``
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Keep:
    pass


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class SetTo:
    value: Any


FieldUpdate = Keep | Clear | SetTo

KEEP = Keep()
CLEAR = Clear()


def from_value(value: Any) -> FieldUpdate:
    """Map a plain snapshot value to an update: ``None`` clears, anything else sets."""
    if isinstance(value, (Keep, Clear, SetTo)):
        return value
    if value is None:
        return CLEAR
    return SetTo(value)


def resolve(update: FieldUpdate, current: Any) -> Any:
    if isinstance(update, Keep):
        return current
    if isinstance(update, Clear):
        return None
    return update.value


def assignments(updates: Mapping[str, FieldUpdate]) -> dict[str, Any]:
    """Return column -> new value for every update that is not ``Keep``."""
    result: dict[str, Any] = {}
    for column, update in updates.items():
        if isinstance(update, Keep):
            continue
        result[column] = resolve(update, None)
    return result
