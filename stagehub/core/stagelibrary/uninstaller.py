"""Uninstaller for stage libraries"""

import logging
import shutil
from typing import Iterable, List

from stagehub.core.stagelibrary.exceptions import StageLibraryIOError
from stagehub.core.stagelibrary.layout import RuntimeDirectoryTree
from stagehub.core.stagelibrary.validator import IdentifierValidator
from stagehub.core.utils.filelock import LibraryLock

logger = logging.getLogger(__name__)


class StageLibraryUninstaller:
    """Removes installed stage library directories.

    Whether a library is still used by a running pipeline is the engine's
    concern; this only deletes files.
    """

    def __init__(self, tree: RuntimeDirectoryTree):
        self.tree = tree

    def uninstall(self, library_ids: Iterable[str]) -> List[str]:
        """
        Uninstall stage libraries

        All ids are validated before anything is deleted. A library whose
        directory does not exist is skipped.

        Args:
            library_ids: Library ids to remove

        Returns:
            Ids whose directory was removed

        Raises:
            InvalidIdentifierError: If any id is unsafe
            StageLibraryIOError: If a directory cannot be removed
        """
        library_ids = [IdentifierValidator.require_valid(library_id) for library_id in library_ids]

        removed = []
        for library_id in library_ids:
            library_dir = self.tree.library_dir(library_id)
            if not library_dir.exists():
                logger.debug(f"Stage library not installed, nothing to remove: {library_id}")
                continue

            with LibraryLock(self.tree.lock_dir, library_id):
                logger.info(f"Uninstalling stage library: {library_id} from {library_dir}")
                try:
                    shutil.rmtree(library_dir)
                except FileNotFoundError:
                    continue
                except OSError as e:
                    raise StageLibraryIOError(
                        f"Failed to uninstall stage library {library_id}: {e}", str(library_dir)
                    ) from e

            removed.append(library_id)
            logger.info(f"Stage library uninstalled: {library_id}")

        return removed
