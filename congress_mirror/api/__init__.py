"""Congress.gov API access: HTTP client, decode contracts, pagination."""

from .client import CongressClient
from .pagination import PageWalker

__all__ = ["CongressClient", "PageWalker"]
