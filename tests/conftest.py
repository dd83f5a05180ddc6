import copy
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import pytest
import requests

# Ensure project root is on sys.path so `import congress_mirror` works from any CWD/import mode.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROJECT_ROOT_STR = str(PROJECT_ROOT)
if PROJECT_ROOT_STR not in sys.path:
    sys.path.insert(0, PROJECT_ROOT_STR)

from congress_mirror.api.client import CongressClient  # noqa: E402
from congress_mirror.config import DEFAULT_FAMILIES, SyncSettings  # noqa: E402
from congress_mirror.errors import ThrottledError  # noqa: E402

BASE = "https://api.test/v3"


@pytest.fixture(autouse=True)
def use_test_db(tmp_path, monkeypatch):
    """Use a temporary database for each test."""
    import congress_mirror.db as db_module
    import congress_mirror.db.core as db_core

    # Ensure we use SQLite and not Postgres
    monkeypatch.delenv("DATABASE_URL", raising=False)

    test_db = tmp_path / "test_congress.db"
    monkeypatch.setattr(db_core, "DB_PATH", test_db)
    monkeypatch.setattr(db_module, "DB_PATH", test_db)

    db_module.init_db()

    import sqlite3

    con = sqlite3.connect(test_db, timeout=30)
    mode = con.execute("PRAGMA journal_mode").fetchone()[0]
    con.close()
    assert mode == "wal", f"Expected WAL journal mode, got {mode}"

    yield


# ── fake upstream ───────────────────────────────────────────────


def route_key(url: str) -> str:
    """Normalize a URL for routing: drop paging-size, format and key params."""
    parsed = urlparse(url)
    query = sorted(
        (k, v) for k, v in parse_qsl(parsed.query) if k not in ("limit", "format", "api_key")
    )
    return urlunparse(parsed._replace(query=urlencode(query)))


class FakeCongressClient(CongressClient):
    """
    Serves canned payloads by URL.

    `throttle(path, times)` makes the next `times` requests to a path
    answer 429; `fail(path)` makes it answer 500 until cleared.
    """

    def __init__(self):
        super().__init__("test-key", base_url=BASE, session=MagicMock())
        self.routes: dict[str, dict] = {}
        self.calls: list[str] = []
        self.throttles: dict[str, int] = {}
        self.failures: set[str] = set()
        self._lock = threading.Lock()
        self._bills: list[dict] = []
        self._members: list[dict] = []
        self._committees: list[dict] = []
        self.add(f"/bill/{119}", {"bills": self._bills, "pagination": {"count": 0}})

    def _key(self, path_or_url: str) -> str:
        url = path_or_url if path_or_url.startswith("http") else self.url(path_or_url)
        return route_key(url)

    def add(self, path_or_url: str, payload: dict) -> None:
        self.routes[self._key(path_or_url)] = payload

    def throttle(self, path_or_url: str, times: int = 1) -> None:
        self.throttles[self._key(path_or_url)] = times

    def fail(self, path_or_url: str) -> None:
        self.failures.add(self._key(path_or_url))

    def calls_to(self, path_or_url: str) -> int:
        key = self._key(path_or_url)
        return sum(1 for call in self.calls if call == key)

    def get_json(self, url, params=None):
        key = route_key(url)
        with self._lock:
            self.calls.append(key)
            remaining = self.throttles.get(key, 0)
            if remaining:
                self.throttles[key] = remaining - 1
                raise ThrottledError(url)
        if key in self.failures:
            raise requests.HTTPError(f"500 Server Error for url: {url}")
        if key not in self.routes:
            raise requests.HTTPError(f"404 Client Error for url: {url}")
        return copy.deepcopy(self.routes[key])

    # ── builders ──

    def _sub(self, base_path: str, name: str, key: str, items) -> dict:
        path = f"{base_path}/{name}"
        self.add(path, {key: items, "pagination": {"count": len(items)}})
        return {"count": len(items), "url": self.url(path)}

    def add_bill(
        self,
        congress: int = 119,
        bill_type: str = "hr",
        number: int = 1234,
        title: str = "Veterans Housing Act",
        sponsor: str | None = "S000001",
        actions: list | None = None,
        cosponsors: list | None = None,
        titles: list | None = None,
        related: list | None = None,
        subjects: list | None = None,
        summaries: list | None = None,
        committees: list | None = None,
        text_versions: list | None = None,
        **extra,
    ) -> dict:
        base_path = f"/bill/{congress}/{bill_type}/{number}"
        detail = {
            "congress": congress,
            "type": bill_type.upper(),
            "number": str(number),
            "title": title,
            "introducedDate": "2025-03-01",
            "originChamber": "House",
            "originChamberCode": "H",
            "policyArea": {"name": "Armed Forces and National Security"},
            "latestAction": {"actionDate": "2025-03-02", "text": "Referred to committee."},
            "sponsors": [{"bioguideId": sponsor, "isByRequest": "N"}] if sponsor else [],
        }
        detail.update(extra)
        if actions is not None:
            detail["actions"] = self._sub(base_path, "actions", "actions", actions)
        if cosponsors is not None:
            detail["cosponsors"] = self._sub(base_path, "cosponsors", "cosponsors", cosponsors)
        if titles is not None:
            detail["titles"] = self._sub(base_path, "titles", "titles", titles)
        if related is not None:
            detail["relatedBills"] = self._sub(base_path, "relatedbills", "relatedBills", related)
        if summaries is not None:
            detail["summaries"] = self._sub(base_path, "summaries", "summaries", summaries)
        if committees is not None:
            detail["committees"] = self._sub(base_path, "committees", "committees", committees)
        if text_versions is not None:
            detail["textVersions"] = self._sub(base_path, "text", "textVersions", text_versions)
        if subjects is not None:
            path = f"{base_path}/subjects"
            self.add(path, {"subjects": {"legislativeSubjects": subjects}, "pagination": {}})
            detail["subjects"] = {"count": len(subjects), "url": self.url(path)}

        self.add(base_path, {"bill": detail})
        self._bills.append(
            {
                "congress": congress,
                "type": bill_type.upper(),
                "number": str(number),
                "title": title,
                "url": self.url(base_path) + "?format=json",
            }
        )
        return detail

    def add_member(self, bioguide_id: str, listed: bool = False, **fields) -> dict:
        detail = {
            "bioguideId": bioguide_id,
            "firstName": fields.pop("firstName", "Pat"),
            "lastName": fields.pop("lastName", "Example"),
            "directOrderName": fields.pop("directOrderName", "Pat Example"),
            "currentMember": True,
        }
        detail.update(fields)
        self.add(f"/member/{bioguide_id}", {"member": detail})
        if listed:
            if not self._members:
                self.add("/member/congress/119", {"members": self._members, "pagination": {}})
            self._members.append(
                {"bioguideId": bioguide_id, "url": self.url(f"/member/{bioguide_id}")}
            )
        return detail

    def add_committee(
        self,
        system_code: str,
        name: str,
        chamber: str | None = "House",
        parent: str | None = None,
        detail: dict | None = None,
    ) -> dict:
        path = f"/committee/{(chamber or 'joint').lower()}/{system_code}"
        item = {
            "systemCode": system_code,
            "name": name,
            "chamber": chamber,
            "committeeTypeCode": "Standing",
            "url": self.url(path),
        }
        if parent:
            item["parent"] = {"systemCode": parent, "name": f"{parent} parent"}
        if not self._committees:
            self.add("/committee/119", {"committees": self._committees, "pagination": {}})
        self._committees.append(item)
        payload = {"systemCode": system_code, "isCurrent": True, "history": []}
        payload.update(detail or {})
        self.add(path, {"committee": payload})
        return item


@pytest.fixture
def fake_client():
    return FakeCongressClient()


@pytest.fixture
def settings():
    """Run settings with pacing disabled and small batches."""
    families = {name: fam for name, fam in DEFAULT_FAMILIES.items()}
    return SyncSettings(
        api_key="test-key",
        congress=119,
        base_url=BASE,
        page_delay=0,
        page_retry_delay=0,
        families=families,
    )


@pytest.fixture
def no_sleep():
    return MagicMock(name="sleep")
