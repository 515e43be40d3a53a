"""Runtime directory layout for stage libraries and their extras"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from stagehub.core.stagelibrary.exceptions import (
    ExternalResourcesDirNotConfiguredError,
    ExtrasDirNotConfiguredError,
)

# Installed libraries live under <runtime_dir>/stage-libs/<library_id>
STAGE_LIBS_DIR = "stage-libs"
# Per-library extras: <libs_extra_dir>/<library_id>/lib and .../etc
EXTRAS_JARS_DIR = "lib"
EXTRAS_CONF_DIR = "etc"
# Placeholder that keeps an otherwise empty directory packaged; never listed
EMPTY_FILE = ".empty"
LOCKS_DIR = ".locks"


@dataclass(frozen=True)
class RuntimeDirectoryTree:
    """Root directories owned by the stage library manager.

    Passed explicitly into every component instead of being read from
    process-wide state, so tests can point it at a temporary directory.
    """
    runtime_dir: Path
    libs_extra_dir: Optional[Path] = None
    resources_dir: Optional[Path] = None
    user_libs_dir: Optional[Path] = None
    external_resources_dir: Optional[Path] = None
    locks_dir: Optional[Path] = None

    @property
    def stage_libs_dir(self) -> Path:
        return self.runtime_dir / STAGE_LIBS_DIR

    @property
    def lock_dir(self) -> Path:
        return self.locks_dir or (self.runtime_dir / LOCKS_DIR)

    def library_dir(self, library_id: str) -> Path:
        """Install directory of a library (id must already be validated)"""
        return self.stage_libs_dir / library_id

    def require_extras_dir(self) -> Path:
        if not self.libs_extra_dir or not str(self.libs_extra_dir).strip():
            raise ExtrasDirNotConfiguredError("libs_extra_dir")
        return self.libs_extra_dir

    def require_resources_dir(self) -> Path:
        if not self.resources_dir or not str(self.resources_dir).strip():
            raise ExtrasDirNotConfiguredError("resources_dir")
        return self.resources_dir

    def require_external_resources_dir(self) -> Path:
        if not self.external_resources_dir or not str(self.external_resources_dir).strip():
            raise ExternalResourcesDirNotConfiguredError()
        return self.external_resources_dir

    def extras_jars_dir(self, library_id: str) -> Path:
        return self.require_extras_dir() / library_id / EXTRAS_JARS_DIR

    def extras_conf_dir(self, library_id: str) -> Path:
        return self.require_extras_dir() / library_id / EXTRAS_CONF_DIR
