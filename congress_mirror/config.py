"""
Run configuration.

Settings come from environment variables; per-family batch tuning can be
overridden from config/sync.yaml, validated against
schemas/sync_config.schema.json.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml
from jsonschema import ValidationError, validate

from .errors import ConfigurationError
from .secrets import get_api_key

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = ROOT / "config" / "sync.yaml"
CONFIG_SCHEMA_PATH = ROOT / "schemas" / "sync_config.schema.json"

BASE_API_URL = "https://api.congress.gov/v3"
FAMILIES = ("bills", "members", "committees")


@dataclass(frozen=True)
class FamilySettings:
    """Batching and throttle policy for one entity family."""

    batch_size: int
    cooldown_seconds: float
    batch_pause_seconds: float = 1.0
    max_cooldowns: int = 3


DEFAULT_FAMILIES = {
    "bills": FamilySettings(batch_size=15, cooldown_seconds=3601, batch_pause_seconds=2.0),
    "members": FamilySettings(batch_size=50, cooldown_seconds=10, batch_pause_seconds=1.0),
    "committees": FamilySettings(batch_size=25, cooldown_seconds=3601, batch_pause_seconds=1.0),
}


@dataclass(frozen=True)
class SyncSettings:
    api_key: str
    congress: int
    base_url: str = BASE_API_URL
    freshness_days: float = 7.0
    page_delay: float = 0.25
    page_retry_delay: float = 5.0
    page_retry_attempts: int = 3
    requests_per_hour: int = 5000
    families: dict[str, FamilySettings] = field(default_factory=lambda: dict(DEFAULT_FAMILIES))

    def family(self, name: str) -> FamilySettings:
        try:
            return self.families[name]
        except KeyError:
            raise ConfigurationError("family", f"unknown entity family {name!r}") from None


def _env_number(name: str, default, cast=float):
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(name, f"expected a number, got {raw!r}") from None


def load_family_overrides(config_path: Path = CONFIG_PATH) -> dict[str, FamilySettings]:
    """Merge YAML family overrides onto the defaults."""
    families = dict(DEFAULT_FAMILIES)
    if not config_path.exists():
        return families
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    if CONFIG_SCHEMA_PATH.exists():
        try:
            schema = json.loads(CONFIG_SCHEMA_PATH.read_text(encoding="utf-8"))
            validate(instance=data, schema=schema)
        except ValidationError as exc:
            raise ConfigurationError(str(config_path), exc.message) from exc

    for name, overrides in (data.get("families") or {}).items():
        if name not in families:
            raise ConfigurationError(str(config_path), f"unknown entity family {name!r}")
        families[name] = replace(families[name], **overrides)
        logger.debug("Family %s overridden from %s: %s", name, config_path, overrides)
    return families


def load_settings(congress: int | None = None, api_key: str | None = None) -> SyncSettings:
    """
    Build SyncSettings from the environment.

    Raises ConfigurationError before any network activity when the target
    congress or API key is missing or a numeric setting does not parse.
    """
    if congress is None:
        congress = _env_number("CONGRESS_NUMBER", None, cast=int)
    if congress is None:
        raise ConfigurationError("CONGRESS_NUMBER", "no target congress configured")
    if congress <= 0:
        raise ConfigurationError("CONGRESS_NUMBER", f"must be positive, got {congress}")

    config_path = Path(os.environ.get("SYNC_CONFIG_PATH") or CONFIG_PATH)

    return SyncSettings(
        api_key=api_key or get_api_key(),
        congress=congress,
        base_url=os.environ.get("CONGRESS_API_BASE_URL", BASE_API_URL).rstrip("/"),
        freshness_days=_env_number("SYNC_FRESHNESS_DAYS", 7.0),
        page_delay=_env_number("SYNC_PAGE_DELAY_MS", 250, cast=int) / 1000,
        requests_per_hour=_env_number("SYNC_REQUESTS_PER_HOUR", 5000, cast=int),
        families=load_family_overrides(config_path),
    )
