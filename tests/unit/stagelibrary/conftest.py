from __future__ import annotations

import io
import shutil
import tarfile
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from stagehub.core.stagelibrary.exceptions import DownloadError
from stagehub.core.stagelibrary.layout import RuntimeDirectoryTree
from stagehub.core.stagelibrary.models import (
    RepositoryManifest,
    StageDefinition,
    StageLibraryDefinition,
    StageLibraryManifestEntry,
)
from stagehub.core.stagelibrary.registry import StaticStageLibraryRegistry

REPO = "https://repo.example.com/stage-libs"


def make_tar_gz(path: Path, members: Dict[str, bytes]) -> Path:
    """Write a .tar.gz whose members are given as name -> content"""
    with tarfile.open(path, "w:gz") as tf:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return path


class FakeDownloader:
    """Serves archives from local files instead of HTTP"""

    def __init__(self, archives: Optional[Dict[str, Path]] = None, delay: float = 0.0):
        self.archives = dict(archives or {})
        self.delay = delay
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def download(self, url, target_path, expected_sha256=None, progress_callback=None):
        with self._lock:
            self.calls.append(url)
        if self.delay:
            time.sleep(self.delay)
        if url not in self.archives:
            raise DownloadError(f"Download failed: 404 for {url}", url)
        shutil.copyfile(self.archives[url], target_path)
        return "0" * 64

    def close(self):
        pass


def stage(name: str, version: str, library: str, hide=None, **extra) -> StageDefinition:
    return StageDefinition(
        name=name,
        version=version,
        library=library,
        label=name.title(),
        type="SOURCE",
        hide_stage=hide or [],
        **extra,
    )


def manifest_entry(library_id: str, version: str, min_engine: Optional[str] = None,
                   max_engine: Optional[str] = None) -> StageLibraryManifestEntry:
    return StageLibraryManifestEntry(
        stage_lib_id=library_id,
        stage_lib_label=library_id.replace("-", " ").title(),
        stage_lib_version=version,
        stage_lib_file=f"{REPO}/{library_id}-{version}.tgz",
        stage_lib_min_engine_version=min_engine,
        stage_lib_max_engine_version=max_engine,
    )


@pytest.fixture
def tree(tmp_path: Path) -> RuntimeDirectoryTree:
    runtime_dir = tmp_path / "runtime"
    (runtime_dir / "stage-libs").mkdir(parents=True)
    return RuntimeDirectoryTree(
        runtime_dir=runtime_dir,
        libs_extra_dir=tmp_path / "libs-extras",
        resources_dir=tmp_path / "resources",
        user_libs_dir=tmp_path / "user-libs",
        external_resources_dir=tmp_path / "external-resources",
    )


@pytest.fixture
def manifests() -> List[RepositoryManifest]:
    return [
        RepositoryManifest(
            repo_url=REPO,
            stage_libraries=[
                manifest_entry("jdbc-lib", "1.0.0", min_engine="3.0.0"),
                manifest_entry("jdbc-lib", "1.2.0", min_engine="3.0.0"),
                manifest_entry("jdbc-lib", "2.0.0", min_engine="5.0.0"),
                manifest_entry("kafka-lib", "3.1.0"),
                manifest_entry("legacy-lib", "0.9.0", max_engine="2.9.9"),
            ],
        )
    ]


@pytest.fixture
def registry(manifests) -> StaticStageLibraryRegistry:
    return StaticStageLibraryRegistry(
        stages=[
            stage("jdbc_origin", "3", "jdbc-lib"),
            stage("hdfs_target", "2", "hdp-lib", hide=["FIELD_PROCESSOR"]),
            stage("hdfs_target", "2", "cdp-lib", hide=["FIELD_PROCESSOR"]),
            stage("error_to_file", "1", "basic-lib", hide=["ERROR_STAGE"]),
        ],
        pipeline={"name": "pipeline", "configDefinitions": []},
        pipeline_fragment={"name": "fragment"},
        services=[{"provides": "DataFormatParserService", "version": 1}],
        pipeline_rules={"name": "rules"},
        rules_el_metadata={"elFunctionDefinitions": ["time:now"]},
        el_function_catalog={"str:trim": {"name": "str:trim"}},
        el_constant_catalog={"NULL": {"name": "NULL"}},
        runtime_config_keys=["runtime.conf.key"],
        legacy_stage_libs=["old-lib"],
        event_definitions=[{"name": "file-closed"}],
        loaded_libraries=[
            StageLibraryDefinition(name="basic-lib", label="Basic", version="3.22.0"),
            StageLibraryDefinition(name="jdbc-lib", label="JDBC", version="1.0.0"),
        ],
        repository_manifests=manifests,
    )


@pytest.fixture
def tar_gz(tmp_path: Path):
    """Factory writing archives under a dedicated directory"""
    archives_dir = tmp_path / "archives"
    archives_dir.mkdir()

    def factory(name: str, members: Dict[str, bytes]) -> Path:
        return make_tar_gz(archives_dir / name, members)

    return factory


@pytest.fixture
def fake_downloader():
    """The FakeDownloader class, for tests that configure their own"""
    return FakeDownloader


@pytest.fixture
def make_stage():
    return stage
