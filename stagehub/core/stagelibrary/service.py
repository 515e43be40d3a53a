"""Stage library service

One entry point per stage library operation, wiring the components to a
configuration and a registry. Transport layers (REST, CLI) call into this.
"""

import logging
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Union

from stagehub.core.config import StageHubConfig, get_config
from stagehub.core.stagelibrary.archive import ArchiveExporter
from stagehub.core.stagelibrary.catalog import CatalogAggregator
from stagehub.core.stagelibrary.downloader import LibraryDownloader
from stagehub.core.stagelibrary.extras import ExtrasStore
from stagehub.core.stagelibrary.installer import StageLibraryInstaller
from stagehub.core.stagelibrary.models import (
    ClasspathResult,
    ConnectionsCatalog,
    DefinitionCatalog,
    ExtrasDescriptor,
    HideStageType,
    InstallResult,
    RepositoryManifest,
    StageLibraryInfo,
)
from stagehub.core.stagelibrary.registry import StageLibraryRegistry
from stagehub.core.stagelibrary.uninstaller import StageLibraryUninstaller

logger = logging.getLogger(__name__)


class StageLibraryService:
    """Facade over catalog, install, extras and export operations"""

    def __init__(
        self,
        registry: StageLibraryRegistry,
        config: Optional[StageHubConfig] = None,
        downloader: Optional[LibraryDownloader] = None,
    ):
        self.registry = registry
        self.config = config or get_config()
        self.tree = self.config.to_directory_tree()

        self.catalog = CatalogAggregator(registry)
        self.installer = StageLibraryInstaller(
            self.tree,
            registry,
            self.config.engine_version,
            downloader=downloader,
            downloader_factory=lambda: LibraryDownloader(
                max_retries=self.config.download_max_retries,
                timeout=self.config.download_timeout,
                max_size=self.config.download_max_size,
            ),
        )
        self.uninstaller = StageLibraryUninstaller(self.tree)
        self.extras = ExtrasStore(self.tree)
        self.exporter = ArchiveExporter(self.tree)

    # ============================================
    # Definitions
    # ============================================

    def get_definitions(
        self,
        hide_stage: Optional[Union[str, HideStageType]] = None,
        schema_version: Optional[str] = None,
    ) -> DefinitionCatalog:
        return self.catalog.build_catalog(hide_stage, schema_version)

    def get_connections(self) -> ConnectionsCatalog:
        return self.catalog.build_connections()

    # ============================================
    # Libraries
    # ============================================

    def get_libraries(self) -> List[RepositoryManifest]:
        """Repository manifests known to the registry"""
        return self.registry.get_repository_manifest_list()

    def get_loaded_libraries(self) -> List[StageLibraryInfo]:
        return [
            StageLibraryInfo(name=lib.name, label=lib.label)
            for lib in self.registry.get_loaded_stage_libraries()
        ]

    def install_libraries(
        self,
        library_ids: Iterable[str],
        with_stage_lib_version: bool = False,
    ) -> List[InstallResult]:
        return self.installer.install(library_ids, with_stage_lib_version)

    def uninstall_libraries(self, library_ids: Iterable[str]) -> List[str]:
        return self.uninstaller.uninstall(library_ids)

    def classpath_health(self) -> List[ClasspathResult]:
        return self.registry.validate_stage_lib_classpath()

    # ============================================
    # Extras and resources
    # ============================================

    def get_extras(self, library_id: Optional[str] = None) -> List[ExtrasDescriptor]:
        """Extras of the libraries providing the currently loaded stages"""
        libraries = [stage.library for stage in self.registry.get_stages()]
        return self.extras.list_library_extras(libraries, library_id)

    def install_extras(self, library_id: str, file_name: str, stream: Union[BinaryIO, bytes]) -> ExtrasDescriptor:
        self.tree.require_extras_dir()
        return self.extras.upload(library_id, file_name, stream)

    def delete_extras(self, descriptors: Iterable[ExtrasDescriptor]) -> List[str]:
        self.tree.require_extras_dir()
        return self.extras.delete(descriptors)

    def get_user_libraries(self) -> List[ExtrasDescriptor]:
        return self.extras.list_user_libraries()

    def get_resources(self) -> List[ExtrasDescriptor]:
        if not self.tree.resources_dir:
            return []
        return self.extras.list_resources()

    def upload_resource(self, file_name: str, stream: Union[BinaryIO, bytes]) -> ExtrasDescriptor:
        return self.extras.upload_resource(file_name, stream)

    def delete_resources(self, descriptors: Iterable[ExtrasDescriptor]) -> List[str]:
        return self.extras.delete_resources(descriptors)

    def download_external_resources(self) -> Path:
        """Archive of the external resources directory, see ArchiveExporter.cleanup"""
        return self.exporter.export_external_resources()
