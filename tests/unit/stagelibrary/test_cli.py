from __future__ import annotations

import json
import tarfile
from pathlib import Path

import pytest
import yaml

from stagehub.cli.stagelibs import main

SNAPSHOT = {
    "stages": [
        {"name": "jdbc_origin", "version": "3", "library": "jdbc-lib", "hideStage": []},
        {"name": "jdbc_origin", "version": "3", "library": "jdbc-lib-new", "hideStage": []},
    ],
    "loadedStageLibraries": [{"name": "jdbc-lib", "label": "JDBC", "version": "1.0.0"}],
}


@pytest.fixture
def env(monkeypatch, tmp_path: Path) -> Path:
    registry_file = tmp_path / "registry.yaml"
    registry_file.write_text(yaml.safe_dump(SNAPSHOT), encoding="utf-8")

    monkeypatch.setattr("stagehub.core.config._config", None)
    monkeypatch.setenv("STAGEHUB_RUNTIME_DIR", str(tmp_path / "runtime"))
    monkeypatch.setenv("STAGEHUB_LIBS_EXTRA_DIR", str(tmp_path / "extras"))
    monkeypatch.setenv("STAGEHUB_RESOURCES_DIR", str(tmp_path / "resources"))
    monkeypatch.setenv("STAGEHUB_EXTERNAL_RESOURCES_DIR", str(tmp_path / "external"))
    monkeypatch.setenv("STAGEHUB_REGISTRY_FILE", str(registry_file))
    return tmp_path


def test_definitions_compact(env, capsys) -> None:
    main(["definitions", "--schema-version", "2"])

    payload = json.loads(capsys.readouterr().out)
    assert list(payload["stageDefinitionMap"]) == ["jdbc_origin::3"]
    assert len(payload["stageDefinitionMinimalList"]) == 2


def test_loaded(env, capsys) -> None:
    main(["loaded"])
    assert "jdbc-lib" in capsys.readouterr().out


def test_install_duplicate_reports_error_code(env, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["install", "jdbc-lib"])

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Error [REST_1002]" in out
    assert "1.0.0" in out


def test_invalid_identifier_reports_error_code(env, capsys) -> None:
    with pytest.raises(SystemExit):
        main(["uninstall", "../etc"])
    assert "Error [REST_1005]" in capsys.readouterr().out


def test_extras_upload_list_delete(env, capsys) -> None:
    driver = env / "mysql.jar"
    driver.write_bytes(b"driver")

    main(["extras-upload", "jdbc-lib", str(driver)])
    main(["extras-list"])
    out = capsys.readouterr().out
    assert "mysql.jar" in out
    assert (env / "extras" / "jdbc-lib" / "lib" / "mysql.jar").read_bytes() == b"driver"

    main(["extras-delete", "jdbc-lib", "mysql.jar"])
    assert "Deleted 1 file(s)." in capsys.readouterr().out


def test_export_resources(env, capsys) -> None:
    (env / "external").mkdir()
    (env / "external" / "hosts").write_bytes(b"127.0.0.1")
    output = env / "out.tar.gz"

    main(["export-resources", str(output)])

    with tarfile.open(output, "r:gz") as tf:
        assert tf.getnames() == ["hosts"]


def test_no_command_prints_help(env) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
