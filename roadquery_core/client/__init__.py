"""Client module - Cache-wide query operations."""

from roadquery_core.client.client import QueryClient

__all__ = ["QueryClient"]
