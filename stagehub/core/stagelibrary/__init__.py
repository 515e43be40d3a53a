"""Stage library management

Registry view and on-disk lifecycle of pluggable stage libraries.

Core principles:
1. Catalog reads never touch the filesystem and take no locks
2. Every library id and file name is validated before it reaches a path
3. A library is installed once; re-installing requires an uninstall first
4. Deletes of missing files or libraries are no-ops

Components:
- catalog: Definition catalog aggregation (schema 1 and compact schema 2)
- repository: Manifest lookup of library download URLs
- installer: Duplicate check, download and staged extraction
- uninstaller: Library directory removal
- extras: Extras and resource files (list, upload, delete)
- archive: External resources export
- validator: Identifier validation
- models: Pydantic data models
- exceptions: Custom exceptions
"""

from stagehub.core.stagelibrary.exceptions import (
    AlreadyInstalledError,
    DirectoryCreateError,
    DownloadError,
    ExternalResourcesDirNotConfiguredError,
    ExtrasDirNotConfiguredError,
    InvalidIdentifierError,
    LibraryNotFoundError,
    StageLibraryError,
    StageLibraryErrorCode,
    StageLibraryIOError,
)
from stagehub.core.stagelibrary.models import (
    ClasspathResult,
    CompactCatalog,
    ConnectionDefinition,
    ConnectionsCatalog,
    ConnectionVerifierDefinition,
    DefinitionCatalog,
    ExtrasDescriptor,
    HideStageType,
    InstallResult,
    RepositoryManifest,
    StageDefinition,
    StageDefinitionMinimal,
    StageLibraryDefinition,
    StageLibraryInfo,
    StageLibraryManifestEntry,
    VerboseCatalog,
)
from stagehub.core.stagelibrary.layout import RuntimeDirectoryTree
from stagehub.core.stagelibrary.validator import IdentifierValidator
from stagehub.core.stagelibrary.registry import StageLibraryRegistry, StaticStageLibraryRegistry
from stagehub.core.stagelibrary.catalog import CatalogAggregator, build_catalog
from stagehub.core.stagelibrary.repository import RepositoryResolver
from stagehub.core.stagelibrary.downloader import LibraryDownloader
from stagehub.core.stagelibrary.installer import StageLibraryInstaller
from stagehub.core.stagelibrary.uninstaller import StageLibraryUninstaller
from stagehub.core.stagelibrary.extras import ExtrasStore
from stagehub.core.stagelibrary.archive import ArchiveExporter

__all__ = [
    # Exceptions
    "StageLibraryError",
    "StageLibraryErrorCode",
    "InvalidIdentifierError",
    "AlreadyInstalledError",
    "LibraryNotFoundError",
    "ExtrasDirNotConfiguredError",
    "ExternalResourcesDirNotConfiguredError",
    "DirectoryCreateError",
    "StageLibraryIOError",
    "DownloadError",
    # Models
    "ClasspathResult",
    "CompactCatalog",
    "ConnectionDefinition",
    "ConnectionsCatalog",
    "ConnectionVerifierDefinition",
    "DefinitionCatalog",
    "ExtrasDescriptor",
    "HideStageType",
    "InstallResult",
    "RepositoryManifest",
    "StageDefinition",
    "StageDefinitionMinimal",
    "StageLibraryDefinition",
    "StageLibraryInfo",
    "StageLibraryManifestEntry",
    "VerboseCatalog",
    # Components
    "RuntimeDirectoryTree",
    "IdentifierValidator",
    "StageLibraryRegistry",
    "StaticStageLibraryRegistry",
    "CatalogAggregator",
    "build_catalog",
    "RepositoryResolver",
    "LibraryDownloader",
    "StageLibraryInstaller",
    "StageLibraryUninstaller",
    "ExtrasStore",
    "ArchiveExporter",
]
