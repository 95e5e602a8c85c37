"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from pilestore.config import (
    ConfigError,
    ConfigManager,
    PileConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".pilestore" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "pilestore configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, PileConfig)
    assert config.library.path is None


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"watch": {"queue_size": 64}, "storage": {"indent": 2}})

    env = {"PILESTORE__WATCH__POLLING_INTERVAL_SECONDS": "0.5", "PILESTORE__STORAGE__INDENT": "4"}
    cli = {"watch.polling_interval_seconds": 0.25}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.watch.queue_size == 64
    # Environment overrides the file; CLI overrides the environment.
    assert config.storage.indent == 4
    assert config.watch.polling_interval_seconds == pytest.approx(0.25)


def test_set_library_path_keeps_other_overrides(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"watch": {"use_polling": True}})

    manager.set_library_path(tmp_path / "notes-library")

    config = manager.load(include_env=False)
    assert config.library.path == str((tmp_path / "notes-library").resolve())
    assert config.watch.use_polling is True


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"watch": {"debounce": 3}})

    with pytest.raises(ConfigError):
        manager.load(include_env=False)


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(PileConfig())

    assert flat["PILESTORE__LIBRARY__PATH"] == "null"
    assert flat["PILESTORE__WATCH__QUEUE_SIZE"] == "1024"
    assert flat["PILESTORE__STORAGE__ASYNC_WRITES"] == "True"


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=PileConfig(),
            file_overrides={"watch": {"polling_interval_seconds": 0}},
        )
