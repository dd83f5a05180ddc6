"""
Congress.gov v3 HTTP client.

Every request carries the API key and `format=json` as query parameters.
Status 429 is raised as ThrottledError so the rate-limit guard can decide
between an in-place retry and a batch cooldown; 5xx responses are retried
by the session adapter.
"""

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import BASE_API_URL
from ..errors import ThrottledError
from ..resilience.rate_limiter import RateLimiter
from .payloads import ApiModel, Detail, decode_detail

logger = logging.getLogger(__name__)

USER_AGENT = "congress-mirror/0.4"


def _build_session() -> requests.Session:
    """Session with retry on transient server errors (not 429)."""
    session = requests.Session()
    retry = Retry(
        total=3,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["HEAD", "GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json", "User-Agent": USER_AGENT})
    return session


def _retry_after(response: requests.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


class CongressClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_API_URL,
        timeout: int = 30,
        limiter: RateLimiter | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.limiter = limiter
        self.session = session or _build_session()

    def url(self, path: str) -> str:
        """Absolute URL for an API path such as `/bill/119`."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def get_json(self, url: str, params: dict[str, Any] | None = None) -> dict:
        """
        GET a JSON document.

        Raises:
            ThrottledError: upstream answered 429
            requests.HTTPError: any other non-success status
            requests.RequestException: transport failure
        """
        if self.limiter is not None:
            self.limiter.acquire()

        query = {"api_key": self.api_key, "format": "json"}
        if params:
            query.update(params)

        response = self.session.get(url, params=query, timeout=self.timeout)
        if response.status_code == 429:
            raise ThrottledError(url, _retry_after(response))
        response.raise_for_status()
        return response.json()

    def get_detail(self, url: str, detail: Detail) -> ApiModel | None:
        return decode_detail(self.get_json(url), detail)
