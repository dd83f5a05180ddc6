"""
Cursor pagination over a single Congress.gov collection endpoint.

Each page envelope carries `pagination.next` with the URL of the following
page; the walk ends when it is absent.
"""

import logging
import time
from typing import Callable, Iterator

import requests

from ..errors import PartialFetchError
from .payloads import Collection, extract_items

logger = logging.getLogger(__name__)


class PageWalker:
    """
    Lazy iterator over the raw items of one collection.

    Pages are requested only as the consumer advances, so stopping early
    costs nothing. A non-throttle failure ends the walk quietly: the items
    already yielded stand, and `partial` records a PartialFetchError with
    the count. ThrottledError from the fetch function propagates once its
    in-place retries are exhausted.

    Usage:
        walker = PageWalker(fetch, "https://api.congress.gov/v3/bill/119?limit=250", BILL_LIST)
        for item in walker:
            ...
        if walker.partial:
            ...
    """

    def __init__(
        self,
        fetch: Callable[[str], dict],
        start_url: str,
        collection: Collection,
        page_delay: float = 0.25,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetch = fetch
        self.start_url = start_url
        self.collection = collection
        self.page_delay = page_delay
        self._sleep = sleep
        self.collected = 0
        self.pages = 0
        self.partial: PartialFetchError | None = None

    def __iter__(self) -> Iterator[dict]:
        # Restartable: each iteration begins again at start_url.
        self.collected = 0
        self.pages = 0
        self.partial = None
        url: str | None = self.start_url

        while url:
            if self.pages and self.page_delay:
                self._sleep(self.page_delay)
            try:
                payload = self.fetch(url)
            except (requests.RequestException, ValueError) as exc:
                self.partial = PartialFetchError(url, self.collected, exc)
                logger.warning(
                    "%s pagination stopped after %d items: %s",
                    self.collection.name,
                    self.collected,
                    exc,
                )
                return
            self.pages += 1

            for item in extract_items(payload, self.collection):
                self.collected += 1
                yield item

            url = (payload.get("pagination") or {}).get("next")

    def all(self) -> list[dict]:
        return list(self)
