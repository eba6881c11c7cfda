"""
Timemap API Python Client

A Python wrapper for the Wayback Machine timemap endpoint.
"""

from .timemap_api import (
    TimemapClient,
    TimemapQuery,
    TimemapRecord,
    TimemapResponse,
    TimemapError,
    MatchType,
    OutputFormat,
    search,
)

__all__ = [
    "TimemapClient",
    "TimemapQuery",
    "TimemapRecord",
    "TimemapResponse",
    "TimemapError",
    "MatchType",
    "OutputFormat",
    "search",
]
