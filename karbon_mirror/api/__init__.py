"""Karbon API transport."""

from .client import (
    KarbonAuthError,
    KarbonClient,
    KarbonConfigError,
    KarbonError,
    KarbonNotFound,
    KarbonRateLimitError,
    KarbonTimeoutError,
    ODataQuery,
    Page,
    get_client_factory,
)
from .pager import FetchResult, fetch_all

__all__ = [
    "KarbonAuthError",
    "KarbonClient",
    "KarbonConfigError",
    "KarbonError",
    "KarbonNotFound",
    "KarbonRateLimitError",
    "KarbonTimeoutError",
    "ODataQuery",
    "Page",
    "get_client_factory",
    "FetchResult",
    "fetch_all",
]
