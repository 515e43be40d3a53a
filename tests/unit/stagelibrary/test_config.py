from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from stagehub.core.config import StageHubConfig, get_config


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STAGEHUB_RUNTIME_DIR", str(tmp_path / "runtime"))
    monkeypatch.setenv("STAGEHUB_LIBS_EXTRA_DIR", str(tmp_path / "extras"))
    monkeypatch.setenv("STAGEHUB_ENGINE_VERSION", "4.1.0")
    monkeypatch.setenv("STAGEHUB_DOWNLOAD_TIMEOUT", "30")

    config = StageHubConfig()

    assert config.runtime_dir == tmp_path / "runtime"
    assert config.libs_extra_dir == tmp_path / "extras"
    assert config.engine_version == "4.1.0"
    assert config.download_timeout == 30


def test_empty_directory_setting_means_unset(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STAGEHUB_RESOURCES_DIR", "")

    config = StageHubConfig(runtime_dir=tmp_path)
    tree = config.to_directory_tree()

    assert config.resources_dir is None
    assert tree.resources_dir is None
    assert tree.stage_libs_dir == tmp_path / "stage-libs"
    assert tree.lock_dir == tmp_path / ".locks"


def test_log_level_is_normalised() -> None:
    assert StageHubConfig(log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        StageHubConfig(log_level="chatty")


def test_get_config_caches_until_reload(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr("stagehub.core.config._config", None)
    monkeypatch.setenv("STAGEHUB_ENGINE_VERSION", "1.0.0")
    first = get_config()

    monkeypatch.setenv("STAGEHUB_ENGINE_VERSION", "2.0.0")
    assert get_config() is first
    assert get_config(force_reload=True).engine_version == "2.0.0"
