"""RoadQuery Fingerprint - Structural Query Key Canonicalization.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A raw query key identifies *what* data is cached. It is either a scalar or a
nested structure of scalars, sequences and string-keyed records:

    "todos"
    ["todos", 1]
    ["todos", {"status": "done", "page": 2}]

Canonicalization rules:

- Integral floats are normalized to ``int`` first, so ``1`` and ``1.0``
  (equal in Python) share a fingerprint, at top level and nested.
- ``str``, ``int`` and ``float`` (not ``bool``) map to ``str(key)``, so the
  scalar key ``1`` and the scalar key ``"1"`` share a fingerprint.
- Every other key is encoded as compact JSON with record fields sorted.
  Two records carrying the same fields in a different insertion order share
  a fingerprint. Tuples and lists encode identically.
- ``True`` and ``False`` are booleans, not numbers: they encode as ``true``
  and ``false`` and never collide with ``1`` or ``0``.
- Anything else (sets, arbitrary objects, non-string record keys, NaN and
  infinities) is rejected with ``QueryKeyError``.
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Mapping, Tuple, Union

RawKey = Union[
    str,
    int,
    float,
    bool,
    None,
    List[Any],
    Tuple[Any, ...],
    Dict[str, Any],
]


class QueryKeyError(TypeError):
    """Raised when a value cannot be used as a query key."""


def _canonical(value: Any, path: str) -> Any:
    """Walk a raw key, rejecting anything that is not key-shaped.

    Args:
        value: Key fragment
        path: Location of the fragment, for the error message

    Returns:
        Normalized fragment (lists for sequences, ints for integral floats)

    Raises:
        QueryKeyError: If the fragment is not a valid raw key
    """
    if value is None or isinstance(value, (str, bool)):
        return value

    if isinstance(value, int):
        return int(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            raise QueryKeyError(f"Non-finite number at {path}: {value!r}")
        return int(value) if value.is_integer() else value

    if isinstance(value, (list, tuple)):
        return [_canonical(item, f"{path}[{index}]") for index, item in enumerate(value)]

    if isinstance(value, Mapping):
        record = {}
        for name, item in value.items():
            if not isinstance(name, str):
                raise QueryKeyError(
                    f"Record field names must be strings, got {name!r} at {path}"
                )
            record[name] = _canonical(item, f"{path}.{name}")
        return record

    raise QueryKeyError(
        f"Unsupported query key part at {path}: {type(value).__name__}"
    )


def fingerprint(key: RawKey) -> str:
    """Map a raw query key to its stable string fingerprint.

    Args:
        key: Raw query key

    Returns:
        Fingerprint string

    Raises:
        QueryKeyError: If key is not a valid raw key

    Example:
        >>> fingerprint("todos")
        'todos'
        >>> fingerprint(["todos", {"b": 2, "a": 1.0}])
        '["todos",{"a":1,"b":2}]'
    """
    canonical = _canonical(key, "key")

    if isinstance(canonical, (str, int, float)) and not isinstance(canonical, bool):
        return str(canonical)

    return json.dumps(
        canonical,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def is_query_key(value: Any) -> bool:
    """Check whether value can be canonicalized.

    Args:
        value: Candidate key

    Returns:
        True if value is a valid raw key
    """
    try:
        _canonical(value, "key")
    except QueryKeyError:
        return False
    return True


__all__ = ["QueryKeyError", "RawKey", "fingerprint", "is_query_key"]
