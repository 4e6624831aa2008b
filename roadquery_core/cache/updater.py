"""RoadQuery Updater - Direct Cache Write Actions.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Union


@dataclass(frozen=True)
class Replace:
    """Replace cached data with value.

    Attributes:
        value: New data (``None`` is written as-is)
    """

    value: Any


@dataclass(frozen=True)
class UpdateWith:
    """Replace cached data with fn(current data).

    Attributes:
        fn: Updater receiving the current data, or None if absent
    """

    fn: Callable[[Any], Any]


class NoOp:
    """Leave cached data untouched."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOOP"


NOOP = NoOp()

SetDataAction = Union[Replace, UpdateWith, NoOp]


def resolve_action(updater_or_value: Any) -> SetDataAction:
    """Turn a caller-supplied updater or value into an explicit action.

    Rules:
    - An existing action passes through unchanged
    - A callable becomes UpdateWith
    - None becomes NOOP
    - Anything else becomes Replace

    Args:
        updater_or_value: Updater function, value, or action

    Returns:
        SetDataAction
    """
    if isinstance(updater_or_value, (Replace, UpdateWith, NoOp)):
        return updater_or_value
    if callable(updater_or_value):
        return UpdateWith(updater_or_value)
    if updater_or_value is None:
        return NOOP
    return Replace(updater_or_value)


__all__ = [
    "Replace",
    "UpdateWith",
    "NoOp",
    "NOOP",
    "SetDataAction",
    "resolve_action",
]
