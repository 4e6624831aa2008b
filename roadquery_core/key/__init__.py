"""Key module - Query key canonicalization."""

from roadquery_core.key.fingerprint import (
    QueryKeyError,
    RawKey,
    fingerprint,
    is_query_key,
)

__all__ = [
    "QueryKeyError",
    "RawKey",
    "fingerprint",
    "is_query_key",
]
