"""HTTP client for a remote RouteGrid service."""

from .http_store import HttpRowStore

__all__ = ["HttpRowStore"]
