from __future__ import annotations

from pathlib import Path

import pytest

from linkharvest.config.settings import load_settings
from linkharvest.ui import cli

from fakes import FakeLauncher, fake_collection


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("MONGO_URL", "MONGO_URI", "HARVEST_DB", "HARVEST_COLLECTION", "HARVEST_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("linkharvest.config.settings.load_dotenv", lambda: False)
    path = tmp_path / "harvester.yaml"
    path.write_text(
        "mongo:\n  url: mongodb://fake\n  db: test_db\n  collection: links\n"
        "session:\n  cycle_delay_seconds: 0\n  idle_delay_seconds: 0\n",
        encoding="utf-8",
    )
    return path


def test_harvest_command_runs_one_session(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launcher = FakeLauncher([["a", "b"], ["b", "c"]])
    monkeypatch.setattr(cli, "playwright_launcher", lambda _settings: launcher)

    code = cli.main(["--config", str(config_file), "harvest", "plot", "--category", "plot", "--cycles", "2"])

    assert code == 0
    assert fake_collection().links() == ["a", "b", "c"]
    assert launcher.browsers[0].close_calls == 1


def test_harvest_command_reports_failure(config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    launcher = FakeLauncher([], selector_found=False)
    monkeypatch.setattr(cli, "playwright_launcher", lambda _settings: launcher)

    assert cli.main(["--config", str(config_file), "harvest", "plot"]) == 1


def test_harvest_command_leaves_loaded_settings_untouched(
    config_file: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = load_settings(config_file)
    monkeypatch.setattr(cli, "load_settings", lambda _path: settings)
    launcher = FakeLauncher([["a"]])
    monkeypatch.setattr(cli, "playwright_launcher", lambda _settings: launcher)

    assert cli.main(["harvest", "plot", "--cycles", "1"]) == 0
    assert settings.session.max_cycles is None
    assert launcher.polls == 1
