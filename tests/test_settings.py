"""Smoke tests for configuration loading."""
from __future__ import annotations

from pathlib import Path

import pytest

from linkharvest.config.settings import DEFAULT_CONFIG_PATH, ConfigError, load_settings

ENV_VARS = [
    "MONGO_URL",
    "MONGO_URI",
    "HARVEST_DB",
    "HARVEST_COLLECTION",
    "HARVEST_ACCEPT_PREFIX",
    "HARVEST_CONFIG",
    "HARVEST_MAX_SESSION_SECONDS",
    "HARVEST_HEADLESS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("linkharvest.config.settings.load_dotenv", lambda: False)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "harvester.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_bundled_config_loads() -> None:
    assert DEFAULT_CONFIG_PATH.exists()
    settings = load_settings(DEFAULT_CONFIG_PATH)
    assert settings.session.batch_size == 400
    assert settings.session.category_batch_size == 40
    assert settings.session.recycle_every == 100
    assert settings.session.max_session_seconds == 30
    assert settings.session.browser.viewport_width == 1200
    assert settings.session.browser.evaluate_timeout_ms == 120000


def test_yaml_values_are_applied(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
mongo:
  url: mongodb://db:27017
  db: harvest
  collection: links
  accept_prefix: https://files.
session:
  batch_size: 10
  cycle_delay_seconds: 0.05
  max_session_seconds: 0
target_url_template: "https://example.com/{query}?sort={order}"
""",
    )
    settings = load_settings(path)

    assert settings.mongo_url == "mongodb://db:27017"
    assert (settings.db_name, settings.collection) == ("harvest", "links")
    assert settings.accept_prefix == "https://files."
    assert settings.session.batch_size == 10
    assert settings.session.cycle_delay_seconds == 0.05
    assert settings.session.max_session_seconds is None
    assert settings.session.target_url_template == "https://example.com/{query}?sort={order}"


def test_environment_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, "mongo:\n  url: mongodb://file:27017\n  db: filedb\n")
    monkeypatch.setenv("MONGO_URI", "mongodb://env:27017")
    monkeypatch.setenv("HARVEST_DB", "envdb")
    monkeypatch.setenv("HARVEST_MAX_SESSION_SECONDS", "12.5")
    monkeypatch.setenv("HARVEST_HEADLESS", "no")

    settings = load_settings(path)

    assert settings.mongo_url == "mongodb://env:27017"
    assert settings.db_name == "envdb"
    assert settings.session.max_session_seconds == 12.5
    assert settings.session.browser.headless is False


def test_harvest_config_env_selects_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, "server:\n  port: 8888\n")
    monkeypatch.setenv("HARVEST_CONFIG", str(path))
    assert load_settings().port == 8888


def test_invalid_batch_size_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "session:\n  batch_size: 0\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_non_mapping_section_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "session: [1, 2]\n")
    with pytest.raises(ConfigError):
        load_settings(path)


def test_missing_explicit_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "text, name",
    [
        ("session:\n  cycle_delay_seconds: soon\n", "session.cycle_delay_seconds"),
        ("session:\n  cancel_grace_seconds: [1]\n", "session.cancel_grace_seconds"),
        ("session:\n  max_session_seconds: forever\n", "max_session_seconds"),
    ],
)
def test_non_numeric_durations_are_rejected(tmp_path: Path, text: str, name: str) -> None:
    path = _write(tmp_path, text)
    with pytest.raises(ConfigError, match=name):
        load_settings(path)


def test_evaluate_timeout_is_independent_of_navigation(tmp_path: Path) -> None:
    path = _write(tmp_path, "browser:\n  navigation_timeout_ms: 5000\n  evaluate_timeout_ms: 90000\n")
    browser = load_settings(path).session.browser
    assert (browser.navigation_timeout_ms, browser.evaluate_timeout_ms) == (5000, 90000)
