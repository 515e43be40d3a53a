"""Export of a directory tree as a single .tar.gz archive"""

import logging
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Iterator

from stagehub.core.stagelibrary.exceptions import StageLibraryIOError
from stagehub.core.stagelibrary.layout import RuntimeDirectoryTree

logger = logging.getLogger(__name__)

EXTERNAL_RESOURCES_ARCHIVE = "externalResources.tar.gz"
STAGING_PREFIX = "externalResources"
CHUNK_SIZE = 64 * 1024


def create_tar_gz(source_dir: Path, dest_file: Path) -> None:
    """Write source_dir's subtree to dest_file, member names relative to source_dir"""
    with tarfile.open(dest_file, "w:gz") as tf:
        for path in sorted(source_dir.rglob("*")):
            tf.add(path, arcname=path.relative_to(source_dir).as_posix(), recursive=False)


class ArchiveExporter:
    """Snapshots directories into archives staged in fresh temp directories"""

    def __init__(self, tree: RuntimeDirectoryTree):
        self.tree = tree

    def export(self, source_dir: Path, archive_name: str = EXTERNAL_RESOURCES_ARCHIVE) -> Path:
        """
        Archive a directory tree

        Args:
            source_dir: Directory to archive (an absent directory yields an
                empty archive)
            archive_name: File name of the archive

        Returns:
            Path of the archive inside a new staging directory; release it
            with cleanup() once streamed

        Raises:
            StageLibraryIOError: If the archive cannot be written
        """
        source_dir = Path(source_dir)
        staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))
        archive_path = staging_dir / archive_name

        logger.info(f"Exporting {source_dir} to {archive_path}")
        try:
            if source_dir.is_dir():
                create_tar_gz(source_dir, archive_path)
            else:
                logger.warning(f"Export source does not exist, writing empty archive: {source_dir}")
                with tarfile.open(archive_path, "w:gz"):
                    pass
        except (OSError, tarfile.TarError) as e:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise StageLibraryIOError(f"Failed to export {source_dir}: {e}", str(source_dir)) from e

        return archive_path

    def export_external_resources(self) -> Path:
        """
        Archive the external resources directory

        Raises:
            ExtrasDirNotConfiguredError: If the extras directory is not set
            ExternalResourcesDirNotConfiguredError: If the external
                resources directory is not set
        """
        self.tree.require_extras_dir()
        return self.export(self.tree.require_external_resources_dir())

    @staticmethod
    def iter_archive(archive_path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the archive's bytes as the consumer pulls them"""
        with open(archive_path, "rb") as f:
            for block in iter(lambda: f.read(chunk_size), b""):
                yield block

    @staticmethod
    def cleanup(archive_path: Path) -> None:
        """Remove the staging directory of an exported archive"""
        staging_dir = Path(archive_path).parent
        if staging_dir.name.startswith(STAGING_PREFIX):
            shutil.rmtree(staging_dir, ignore_errors=True)
