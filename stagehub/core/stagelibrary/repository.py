"""Repository manifest lookup for stage library downloads"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from packaging.version import InvalidVersion, Version

from stagehub.core.stagelibrary.exceptions import LibraryNotFoundError
from stagehub.core.stagelibrary.models import RepositoryManifest, StageLibraryManifestEntry

logger = logging.getLogger(__name__)

# Separator between library id and version when a version is requested
LIBRARY_VERSION_SEPARATOR = ":"

_NUMERIC_PREFIX = re.compile(r"^\d+(\.\d+)*")


def parse_version(value: Optional[str]) -> Optional[Version]:
    """Parse an engine or library version, ignoring suffixes like -SNAPSHOT"""
    if not value:
        return None
    match = _NUMERIC_PREFIX.match(value.strip())
    if not match:
        return None
    try:
        return Version(match.group(0))
    except InvalidVersion:
        return None


def split_library_id(requested_id: str, with_stage_lib_version: bool) -> Tuple[str, Optional[str]]:
    """Split '<libId>:<version>' into its parts when versions are requested"""
    if with_stage_lib_version and LIBRARY_VERSION_SEPARATOR in requested_id:
        library_id, version = requested_id.split(LIBRARY_VERSION_SEPARATOR, 1)
        return library_id, version or None
    return requested_id, None


def is_compatible(entry: StageLibraryManifestEntry, engine_version: Optional[str]) -> bool:
    """Check the entry's engine version bounds against the running engine"""
    engine = parse_version(engine_version)
    if engine is None:
        return True

    minimum = parse_version(entry.stage_lib_min_engine_version)
    if minimum is not None and engine < minimum:
        return False

    maximum = parse_version(entry.stage_lib_max_engine_version)
    if maximum is not None and engine > maximum:
        return False

    return True


class RepositoryResolver:
    """Resolves requested library ids to download locations"""

    def __init__(self, manifests: Iterable[RepositoryManifest], engine_version: Optional[str]):
        self.manifests = list(manifests)
        self.engine_version = engine_version

    def _candidates(self, library_id: str, version: Optional[str]) -> List[StageLibraryManifestEntry]:
        candidates = []
        for manifest in self.manifests:
            for entry in manifest.stage_libraries:
                if entry.stage_lib_id != library_id:
                    continue
                if version is not None and entry.stage_lib_version != version:
                    continue
                if not is_compatible(entry, self.engine_version):
                    logger.debug(
                        f"Skipping {library_id} {entry.stage_lib_version}: "
                        f"not compatible with engine {self.engine_version}"
                    )
                    continue
                candidates.append(entry)
        return candidates

    def resolve_entry(self, requested_id: str, with_stage_lib_version: bool = False) -> StageLibraryManifestEntry:
        """
        Find the manifest entry to install for one requested id

        Without an explicit version the highest compatible version wins;
        manifests are searched in order, so the first of equal versions is
        kept.

        Raises:
            LibraryNotFoundError: If no compatible entry exists
        """
        library_id, version = split_library_id(requested_id, with_stage_lib_version)
        candidates = self._candidates(library_id, version)
        if not candidates:
            raise LibraryNotFoundError(requested_id, self.engine_version)

        best = candidates[0]
        for entry in candidates[1:]:
            current = parse_version(entry.stage_lib_version)
            chosen = parse_version(best.stage_lib_version)
            if current is not None and (chosen is None or current > chosen):
                best = entry
        return best

    def resolve_entries(
        self,
        requested_ids: Iterable[str],
        with_stage_lib_version: bool = False,
    ) -> Dict[str, StageLibraryManifestEntry]:
        """Resolve every requested id, failing on the first unknown one"""
        return {
            requested_id: self.resolve_entry(requested_id, with_stage_lib_version)
            for requested_id in requested_ids
        }

    def resolve(self, requested_ids: Iterable[str], with_stage_lib_version: bool = False) -> Dict[str, str]:
        """
        Map each requested id to the URL of its library archive

        Args:
            requested_ids: Library ids, '<libId>:<version>' when
                with_stage_lib_version is set
            with_stage_lib_version: Whether ids carry an explicit version

        Returns:
            Dict of requested id -> archive URL

        Raises:
            LibraryNotFoundError: If any id has no compatible manifest entry
        """
        entries = self.resolve_entries(requested_ids, with_stage_lib_version)
        return {requested_id: entry.stage_lib_file for requested_id, entry in entries.items()}


def resolve(
    manifests: Iterable[RepositoryManifest],
    engine_version: Optional[str],
    requested_ids: Iterable[str],
    with_stage_lib_version: bool = False,
) -> Dict[str, str]:
    """Shortcut for ``RepositoryResolver(manifests, engine_version).resolve(...)``"""
    return RepositoryResolver(manifests, engine_version).resolve(requested_ids, with_stage_lib_version)
