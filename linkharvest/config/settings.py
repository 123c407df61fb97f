"""Loading of harvester settings from YAML, `.env` and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "harvester.yaml"
DEFAULT_TARGET_URL_TEMPLATE = "https://www.redgifs.com/niches/{query}?order={order}"
TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Raised when the harvester configuration cannot be used."""


@dataclass
class BrowserSettings:
    headless: bool = True
    viewport_width: int = 1200
    viewport_height: int = 800
    navigation_timeout_ms: int = 30000
    selector_timeout_ms: int = 30000
    evaluate_timeout_ms: int = 120000
    scroll_delay_ms: int = 100
    scroll_step: int = 100


@dataclass
class SessionSettings:
    """Timing and sizing knobs applied to every harvesting session."""

    batch_size: int = 400
    category_batch_size: int = 40
    recycle_every: int = 100
    cycle_delay_seconds: float = 5.0
    idle_delay_seconds: float = 5.0
    max_session_seconds: float | None = 30.0
    cancel_grace_seconds: float = 10.0
    max_cycles: int | None = None
    target_url_template: str = DEFAULT_TARGET_URL_TEMPLATE
    browser: BrowserSettings = field(default_factory=BrowserSettings)

    def batch_size_for(self, category: str | None) -> int:
        return self.category_batch_size if category else self.batch_size


@dataclass
class HarvestSettings:
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "askeladd"
    collection: str = "waitforplot"
    accept_prefix: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    ws_public_url: str = "ws://localhost:3000/ws"
    session: SessionSettings = field(default_factory=SessionSettings)


def load_harvester_config(config_path: str | Path) -> Dict[str, Any]:
    """Load the YAML configuration file and return its top-level mapping."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Harvester configuration not found at {config_path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("harvester.yaml must define a mapping at the top level.")
    return data


def bool_env(name: str, config_value: bool | None) -> Tuple[bool, bool]:
    """Resolve a boolean setting prioritising the environment variable `name`."""
    env_value = os.getenv(name)
    if env_value is not None:
        return env_value.strip().lower() in TRUTHY, True
    return bool(config_value), False


def resolve_mongo_url(config_value: str | None = None) -> str:
    mongo_url = os.getenv("MONGO_URL") or os.getenv("MONGO_URI")
    return mongo_url or config_value or "mongodb://localhost:27017"


def load_settings(config_path: str | Path | None = None) -> HarvestSettings:
    """Build :class:`HarvestSettings` from `.env`, the YAML file and the environment.

    The file is located via ``config_path``, then ``HARVEST_CONFIG``, then the
    bundled ``configs/harvester.yaml``. A missing default file is not an error;
    the dataclass defaults apply.
    """
    load_dotenv()

    explicit = config_path or os.getenv("HARVEST_CONFIG")
    path = Path(explicit) if explicit else DEFAULT_CONFIG_PATH
    if explicit or path.exists():
        data = load_harvester_config(path)
    else:
        data = {}

    mongo = _section(data, "mongo")
    server = _section(data, "server")

    settings = HarvestSettings(
        mongo_url=resolve_mongo_url(mongo.get("url")),
        db_name=os.getenv("HARVEST_DB") or mongo.get("db") or HarvestSettings.db_name,
        collection=os.getenv("HARVEST_COLLECTION") or mongo.get("collection") or HarvestSettings.collection,
        accept_prefix=os.getenv("HARVEST_ACCEPT_PREFIX") or mongo.get("accept_prefix") or None,
        host=str(server.get("host", HarvestSettings.host)),
        port=_as_int(server.get("port", HarvestSettings.port), "server.port"),
        ws_public_url=str(server.get("ws_public_url", HarvestSettings.ws_public_url)),
        session=_session_settings(data),
    )
    return settings


def _session_settings(data: Mapping[str, Any]) -> SessionSettings:
    section = _section(data, "session")
    browser_section = _section(data, "browser")
    defaults = SessionSettings()

    headless, _ = bool_env("HARVEST_HEADLESS", browser_section.get("headless", True))
    browser = BrowserSettings(
        headless=headless,
        viewport_width=_as_int(browser_section.get("viewport_width", 1200), "browser.viewport_width"),
        viewport_height=_as_int(browser_section.get("viewport_height", 800), "browser.viewport_height"),
        navigation_timeout_ms=_as_int(
            browser_section.get("navigation_timeout_ms", 30000), "browser.navigation_timeout_ms"
        ),
        selector_timeout_ms=_as_int(
            browser_section.get("selector_timeout_ms", 30000), "browser.selector_timeout_ms"
        ),
        evaluate_timeout_ms=_as_int(
            browser_section.get("evaluate_timeout_ms", 120000), "browser.evaluate_timeout_ms"
        ),
        scroll_delay_ms=_as_int(browser_section.get("scroll_delay_ms", 100), "browser.scroll_delay_ms"),
        scroll_step=_as_int(browser_section.get("scroll_step", 100), "browser.scroll_step"),
    )

    max_seconds: Any = os.getenv("HARVEST_MAX_SESSION_SECONDS")
    if max_seconds is None:
        max_seconds = section.get("max_session_seconds", defaults.max_session_seconds)

    settings = SessionSettings(
        batch_size=_as_int(section.get("batch_size", defaults.batch_size), "session.batch_size"),
        category_batch_size=_as_int(
            section.get("category_batch_size", defaults.category_batch_size), "session.category_batch_size"
        ),
        recycle_every=_as_int(section.get("recycle_every", defaults.recycle_every), "session.recycle_every"),
        cycle_delay_seconds=_as_float(
            section.get("cycle_delay_seconds", defaults.cycle_delay_seconds), "session.cycle_delay_seconds"
        ),
        idle_delay_seconds=_as_float(
            section.get("idle_delay_seconds", defaults.idle_delay_seconds), "session.idle_delay_seconds"
        ),
        max_session_seconds=_optional_seconds(max_seconds),
        cancel_grace_seconds=_as_float(
            section.get("cancel_grace_seconds", defaults.cancel_grace_seconds), "session.cancel_grace_seconds"
        ),
        target_url_template=str(data.get("target_url_template") or DEFAULT_TARGET_URL_TEMPLATE),
        browser=browser,
    )
    for name in ("batch_size", "category_batch_size", "recycle_every"):
        if getattr(settings, name) < 1:
            raise ConfigError(f"session.{name} must be a positive integer.")
    return settings


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"`{name}` section must be a mapping.")
    return value


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc


def _optional_seconds(value: Any) -> float | None:
    """Return ``None`` (unbounded) for empty or non-positive durations."""
    if value in (None, ""):
        return None
    seconds = _as_float(value, "max_session_seconds")
    return seconds if seconds > 0 else None
