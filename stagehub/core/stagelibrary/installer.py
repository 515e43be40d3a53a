"""Installer for stage library archives"""

import logging
import shutil
import tarfile
import tempfile
import uuid
import zipfile
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, List, Optional, Tuple

from stagehub.core.stagelibrary.downloader import LibraryDownloader
from stagehub.core.stagelibrary.exceptions import (
    AlreadyInstalledError,
    StageLibraryError,
    StageLibraryIOError,
)
from stagehub.core.stagelibrary.layout import STAGE_LIBS_DIR, RuntimeDirectoryTree
from stagehub.core.stagelibrary.models import InstallResult, StageLibraryManifestEntry
from stagehub.core.stagelibrary.registry import StageLibraryRegistry
from stagehub.core.stagelibrary.repository import RepositoryResolver, split_library_id
from stagehub.core.stagelibrary.validator import IdentifierValidator
from stagehub.core.utils.filelock import LibraryLock

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"


def _normalize_member_name(name: str) -> str:
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name.rstrip("/")


def _detect_root(names: Iterable[str], library_id: str) -> str:
    """Archive prefix holding the library: 'stage-libs/<id>', '<id>' or ''"""
    names = [n for n in names if n]
    for prefix in (f"{STAGE_LIBS_DIR}/{library_id}", library_id):
        if any(n == prefix or n.startswith(prefix + "/") for n in names):
            return prefix
    return ""


def _relative_member_path(name: str, root: str) -> Optional[str]:
    """Path of an archive member below root, None for members to skip"""
    if not name:
        return None
    if not root:
        return name
    if name == root or root.startswith(name + "/"):
        return None
    if not name.startswith(root + "/"):
        return None
    return name[len(root) + 1:]


def _safe_target(target_dir: Path, relative_path: str, member: str) -> Path:
    """Resolve an archive member below target_dir, rejecting escapes"""
    parts = PurePosixPath(relative_path).parts
    if ".." in parts:
        raise StageLibraryIOError(f"Path traversal detected in archive: {member}", member)
    if PurePosixPath(relative_path).is_absolute():
        raise StageLibraryIOError(f"Absolute path detected in archive: {member}", member)

    target_path = target_dir / relative_path
    try:
        target_path.resolve().relative_to(target_dir.resolve())
    except ValueError:
        raise StageLibraryIOError(f"Archive extraction would escape target directory: {member}", member)
    return target_path


class StageLibraryInstaller:
    """Installs stage libraries resolved from the repository manifests.

    Libraries are never upgraded in place: a library that is loaded or whose
    directory exists must be uninstalled first.
    """

    def __init__(
        self,
        tree: RuntimeDirectoryTree,
        registry: StageLibraryRegistry,
        engine_version: Optional[str],
        downloader: Optional[LibraryDownloader] = None,
        downloader_factory: Optional[Callable[[], LibraryDownloader]] = None,
    ):
        """
        Initialize installer

        Args:
            tree: Runtime directory layout
            registry: Registry providing loaded libraries and manifests
            engine_version: Version of the running engine
            downloader: Shared downloader to fetch archives with
            downloader_factory: Creates a downloader per install call when
                no shared one is given (closed after the call)
        """
        self.tree = tree
        self.registry = registry
        self.engine_version = engine_version
        self.downloader = downloader
        self.downloader_factory = downloader_factory or LibraryDownloader

    def check_not_installed(self, library_id: str) -> None:
        """
        Fail if a library is loaded or its directory already exists

        The directory check covers libraries installed since the engine last
        started, which the registry does not list yet.

        Raises:
            AlreadyInstalledError: If the library is present
        """
        loaded = next(
            (lib for lib in self.registry.get_loaded_stage_libraries() if lib.name == library_id),
            None,
        )
        library_dir = self.tree.library_dir(library_id)
        if loaded is not None or library_dir.exists():
            version = loaded.version if loaded is not None else None
            logger.warning(f"Stage library already installed: {library_id} ({version or 'Unknown'})")
            raise AlreadyInstalledError(library_id, version)

    def install(self, requested_ids: Iterable[str], with_stage_lib_version: bool = False) -> List[InstallResult]:
        """
        Install stage libraries

        Every id is checked for duplicates and resolved before anything is
        downloaded. Libraries are then installed one at a time; a failure
        stops the run but leaves earlier libraries installed.

        Args:
            requested_ids: Library ids ('<libId>:<version>' when
                with_stage_lib_version is set)
            with_stage_lib_version: Whether ids carry an explicit version

        Returns:
            One InstallResult per installed library

        Raises:
            InvalidIdentifierError: If a library id is unsafe
            AlreadyInstalledError: If a library is already present
            LibraryNotFoundError: If a library has no manifest entry
            StageLibraryIOError: If download or extraction fails
        """
        requested_ids = list(requested_ids)
        for requested_id in requested_ids:
            library_id, _ = split_library_id(requested_id, with_stage_lib_version)
            IdentifierValidator.require_valid(library_id)
            self.check_not_installed(library_id)

        resolver = RepositoryResolver(self.registry.get_repository_manifest_list(), self.engine_version)
        entries = resolver.resolve_entries(requested_ids, with_stage_lib_version)

        downloader = self.downloader or self.downloader_factory()
        results = []
        try:
            for requested_id, entry in entries.items():
                library_id, _ = split_library_id(requested_id, with_stage_lib_version)
                with LibraryLock(self.tree.lock_dir, library_id):
                    # Re-check under the lock: another caller may have won the race
                    self.check_not_installed(library_id)
                    install_dir = self._install_library(library_id, entry, downloader)

                results.append(InstallResult(
                    library_id=library_id,
                    version=entry.stage_lib_version,
                    url=entry.stage_lib_file,
                    install_dir=install_dir,
                ))
        finally:
            if self.downloader is None:
                downloader.close()

        return results

    def _install_library(
        self,
        library_id: str,
        entry: StageLibraryManifestEntry,
        downloader: LibraryDownloader,
    ) -> Path:
        install_dir = self.tree.library_dir(library_id)
        staging_dir = self.tree.stage_libs_dir / f"{STAGING_PREFIX}{library_id}-{uuid.uuid4().hex[:8]}"

        logger.info(f"Installing stage library {library_id} {entry.stage_lib_version or ''} from {entry.stage_lib_file}")

        try:
            with tempfile.TemporaryDirectory(prefix="stagehub_lib_") as temp_dir:
                # Format is detected from the content, not the URL
                archive_path = Path(temp_dir) / f"{library_id}.archive"

                downloader.download(
                    url=entry.stage_lib_file,
                    target_path=archive_path,
                    expected_sha256=entry.stage_lib_file_sha256,
                )
                self.extract_archive(archive_path, staging_dir, library_id)

            staging_dir.rename(install_dir)

        except StageLibraryError:
            self._cleanup(staging_dir)
            raise
        except Exception as e:
            self._cleanup(staging_dir)
            raise StageLibraryIOError(f"Failed to install stage library {library_id}: {e}", str(install_dir)) from e

        logger.info(f"Stage library installed: {library_id} -> {install_dir}")
        return install_dir

    @staticmethod
    def _cleanup(staging_dir: Path) -> None:
        if staging_dir.exists():
            try:
                shutil.rmtree(staging_dir)
            except OSError as e:
                logger.warning(f"Failed to clean up {staging_dir}: {e}")

    def extract_archive(self, archive_path: Path, target_dir: Path, library_id: str) -> None:
        """
        Extract a library archive (.tar.gz, .tgz or .zip) into target_dir

        A leading 'stage-libs/<id>/' or '<id>/' directory is stripped.

        Raises:
            StageLibraryIOError: If the archive is invalid or unsafe
        """
        logger.debug(f"Extracting {archive_path.name} to {target_dir}")
        target_dir.mkdir(parents=True, exist_ok=True)

        try:
            if zipfile.is_zipfile(archive_path):
                with zipfile.ZipFile(archive_path, "r") as zf:
                    self._extract_members(self._zip_members(zf), target_dir, library_id)
            elif tarfile.is_tarfile(archive_path):
                with tarfile.open(archive_path, "r:*") as tf:
                    self._extract_members(self._tar_members(tf), target_dir, library_id)
            else:
                raise StageLibraryIOError(f"Unsupported archive format: {archive_path.name}", str(archive_path))
        except StageLibraryError:
            raise
        except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
            raise StageLibraryIOError(f"Failed to extract {archive_path.name}: {e}", str(archive_path)) from e

    @staticmethod
    def _zip_members(zf: zipfile.ZipFile) -> List[Tuple[str, bool, object]]:
        return [(info.filename, info.is_dir(), lambda info=info: zf.open(info)) for info in zf.infolist()]

    @staticmethod
    def _tar_members(tf: tarfile.TarFile) -> List[Tuple[str, bool, object]]:
        members = []
        for info in tf.getmembers():
            if info.isdir():
                members.append((info.name, True, None))
            elif info.isfile():
                members.append((info.name, False, lambda info=info: tf.extractfile(info)))
            else:
                raise StageLibraryIOError(f"Unsupported archive member (link or device): {info.name}", info.name)
        return members

    def _extract_members(self, members, target_dir: Path, library_id: str) -> None:
        normalized = [(_normalize_member_name(name), is_dir, opener) for name, is_dir, opener in members]
        root = _detect_root((name for name, _, _ in normalized), library_id)

        for name, is_dir, opener in normalized:
            relative_path = _relative_member_path(name, root)
            if relative_path is None:
                continue

            target_path = _safe_target(target_dir, relative_path, name)
            if is_dir:
                target_path.mkdir(parents=True, exist_ok=True)
                continue

            target_path.parent.mkdir(parents=True, exist_ok=True)
            with opener() as source, open(target_path, "wb") as target:
                shutil.copyfileobj(source, target)
