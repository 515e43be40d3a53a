"""Extras store: auxiliary files of stage libraries and engine resources

Layout under the extras base directory::

    <libs_extra_dir>/<library_id>/lib/   drivers and jars
    <libs_extra_dir>/<library_id>/etc/   configuration files

Engine-wide resources live directly in the resources directory. Target paths
are always rebuilt from library id and file name; the absolute path carried
by a listed descriptor is never used for writes or deletes.
"""

import io
import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Union

from stagehub.core.stagelibrary.exceptions import DirectoryCreateError, StageLibraryIOError
from stagehub.core.stagelibrary.layout import EMPTY_FILE, RuntimeDirectoryTree
from stagehub.core.stagelibrary.models import ExtrasDescriptor
from stagehub.core.stagelibrary.validator import IdentifierValidator

logger = logging.getLogger(__name__)


class ExtrasStore:
    """Lists, uploads and deletes extras and resource files"""

    def __init__(self, tree: RuntimeDirectoryTree):
        self.tree = tree

    # ============================================
    # Listing
    # ============================================

    def _walk(
        self,
        directory: Path,
        library_id: Optional[str],
        recursive: bool,
        relative_to: Optional[Path],
        out: List[ExtrasDescriptor],
    ) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            # Symlinked directories are listed, never followed
            if recursive and entry.is_dir() and not entry.is_symlink():
                self._walk(entry, library_id, recursive, relative_to, out)
                continue
            if entry.name == EMPTY_FILE:
                continue
            file_name = entry.relative_to(relative_to).as_posix() if relative_to else entry.name
            out.append(ExtrasDescriptor(
                id=str(entry.absolute()),
                library_id=library_id,
                file_name=file_name,
            ))

    def list_flat(self, directory: Path, library_id: Optional[str] = None) -> List[ExtrasDescriptor]:
        """Top-level entries of a directory, empty when it does not exist"""
        directory = Path(directory)
        results: List[ExtrasDescriptor] = []
        if directory.is_dir():
            self._walk(directory, library_id, False, None, results)
        return results

    def list_recursive(
        self,
        directory: Path,
        library_id: Optional[str] = None,
        relative_names: bool = False,
    ) -> List[ExtrasDescriptor]:
        """
        Files at every depth below a directory

        Args:
            directory: Directory to walk
            library_id: Library the files belong to (None for engine-wide)
            relative_names: Report file names relative to directory instead
                of bare names
        """
        directory = Path(directory)
        results: List[ExtrasDescriptor] = []
        if directory.is_dir():
            self._walk(directory, library_id, True, directory if relative_names else None, results)
        return results

    def list_library_extras(
        self,
        library_ids: Iterable[str],
        library_id: Optional[str] = None,
    ) -> List[ExtrasDescriptor]:
        """
        Extras of the given libraries

        Args:
            library_ids: Libraries to report (duplicates are ignored)
            library_id: Only report this library when set

        Raises:
            ExtrasDirNotConfiguredError: If the extras directory is not set
            InvalidIdentifierError: If library_id is unsafe
        """
        base = self.tree.require_extras_dir()
        if library_id:
            IdentifierValidator.require_valid(library_id)

        extras: List[ExtrasDescriptor] = []
        seen = set()
        for lib in library_ids:
            if lib in seen or (library_id and lib != library_id):
                continue
            seen.add(lib)
            if not IdentifierValidator.validate(lib) or not (base / lib).exists():
                continue
            extras.extend(self.list_flat(self.tree.extras_jars_dir(lib), lib))
            extras.extend(self.list_flat(self.tree.extras_conf_dir(lib), lib))
        return extras

    def list_resources(self) -> List[ExtrasDescriptor]:
        """Engine-wide resource files at every depth, named relative to the resources dir"""
        return self.list_recursive(self.tree.require_resources_dir(), None, relative_names=True)

    def list_user_libraries(self) -> List[ExtrasDescriptor]:
        """Top-level entries of the user libraries directory"""
        if not self.tree.user_libs_dir:
            return []
        return self.list_flat(self.tree.user_libs_dir, None)

    # ============================================
    # Upload / delete
    # ============================================

    def _target_path(self, library_id: Optional[str], file_name: str) -> Path:
        if library_id is None:
            relative_path = IdentifierValidator.require_valid_relative_path(file_name)
            return self.tree.require_resources_dir() / relative_path

        IdentifierValidator.require_valid(library_id)
        IdentifierValidator.require_valid_file_name(file_name)
        return self.tree.extras_jars_dir(library_id) / file_name

    def upload(
        self,
        library_id: Optional[str],
        file_name: str,
        stream: Union[BinaryIO, bytes],
    ) -> ExtrasDescriptor:
        """
        Store an extras file, replacing any file with the same name

        Args:
            library_id: Owning library, None for an engine-wide resource
            file_name: Name of the file
            stream: Binary content

        Returns:
            Descriptor of the stored file

        Raises:
            ExtrasDirNotConfiguredError: If the target base dir is not set
            InvalidIdentifierError: If library_id or file_name is unsafe
            DirectoryCreateError: If the parent directory cannot be created
            StageLibraryIOError: If writing the file fails
        """
        target = self._target_path(library_id, file_name)
        parent = target.parent
        if not parent.is_dir():
            try:
                parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create directory {parent}: {e}")
                raise DirectoryCreateError(str(parent)) from e

        if isinstance(stream, (bytes, bytearray)):
            stream = io.BytesIO(stream)

        try:
            with open(target, "wb") as out:
                shutil.copyfileobj(stream, out)
        except OSError as e:
            raise StageLibraryIOError(f"Failed to write {target}: {e}", str(target)) from e

        logger.info(f"Uploaded {'resource' if library_id is None else 'extras file'}: {target}")
        return ExtrasDescriptor(id=str(target.absolute()), library_id=library_id, file_name=file_name)

    def upload_resource(self, file_name: str, stream: Union[BinaryIO, bytes]) -> ExtrasDescriptor:
        return self.upload(None, file_name, stream)

    def delete(self, descriptors: Iterable[ExtrasDescriptor]) -> List[str]:
        """
        Delete extras files, ignoring ones that do not exist

        Returns:
            Paths that were removed

        Raises:
            InvalidIdentifierError: If a library id or file name is unsafe
            StageLibraryIOError: If a delete fails
        """
        descriptors = list(descriptors)
        targets = [self._target_path(d.library_id, d.file_name) for d in descriptors]

        removed = []
        for target in targets:
            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                else:
                    target.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StageLibraryIOError(f"Failed to delete {target}: {e}", str(target)) from e

            removed.append(str(target))
            logger.info(f"Deleted: {target}")
        return removed

    def delete_resources(self, descriptors: Iterable[ExtrasDescriptor]) -> List[str]:
        """Delete engine-wide resource files (library ids on descriptors are ignored)"""
        return self.delete(
            ExtrasDescriptor(id=d.id, library_id=None, file_name=d.file_name) for d in descriptors
        )
