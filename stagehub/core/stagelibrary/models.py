"""Data models for stage library definitions and lifecycle"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Base model serialised with camelCase keys"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict using the wire field names"""
        return self.model_dump(by_alias=True, mode="json")


class HideStageType(str, Enum):
    """Tags a stage can carry to be hidden from the regular palette"""
    FIELD_PROCESSOR = "FIELD_PROCESSOR"
    ERROR_STAGE = "ERROR_STAGE"
    STATS_AGGREGATOR_STAGE = "STATS_AGGREGATOR_STAGE"
    LIFECYCLE_STAGE = "LIFECYCLE_STAGE"


# ============================================
# Definitions
# ============================================

class StageDefinitionMinimal(_CamelModel):
    """Minimal projection of a stage definition"""
    name: str
    version: str
    library: str
    library_label: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None


class StageDefinition(_CamelModel):
    """Stage definition contributed by a stage library.

    Only the fields the catalog logic reads are declared; everything else the
    registry provides (configs, icons, services, ...) is carried as-is.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    version: str
    library: str
    library_label: Optional[str] = None
    label: Optional[str] = None
    type: Optional[str] = None
    hide_stage: List[HideStageType] = Field(default_factory=list)

    @property
    def key(self) -> str:
        """Identity of the stage across libraries: name::version"""
        return f"{self.name}::{self.version}"

    def to_minimal(self) -> StageDefinitionMinimal:
        return StageDefinitionMinimal(
            name=self.name,
            version=self.version,
            library=self.library,
            library_label=self.library_label,
            label=self.label,
            type=self.type,
        )


class ConnectionVerifierDefinition(_CamelModel):
    """Verifier stage able to test a connection type"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    verifier_class: str
    verifier_connection_field_name: Optional[str] = None
    verifier_connection_selection_field_name: Optional[str] = None
    verifier_type: Optional[str] = None
    library: Optional[str] = None


class ConnectionDefinition(_CamelModel):
    """Connection definition contributed by a stage library"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: str
    label: Optional[str] = None
    library: Optional[str] = None
    version: Optional[str] = None


class ConnectionDefinitionEntry(ConnectionDefinition):
    """Connection definition joined with the verifiers for its type"""
    verifier_definitions: List[ConnectionVerifierDefinition] = Field(default_factory=list)


class ConnectionsCatalog(_CamelModel):
    connections: List[ConnectionDefinitionEntry] = Field(default_factory=list)


class ElCatalog(_CamelModel):
    """Expression language function and constant catalogs"""
    el_function_definitions: Any = Field(default_factory=dict)
    el_constant_definitions: Any = Field(default_factory=dict)


class _CatalogBase(_CamelModel):
    stages: List[StageDefinition] = Field(default_factory=list)
    pipeline: List[Dict[str, Any]] = Field(default_factory=list)
    pipeline_fragment: List[Dict[str, Any]] = Field(default_factory=list)
    services: List[Dict[str, Any]] = Field(default_factory=list)
    pipeline_rules: List[Dict[str, Any]] = Field(default_factory=list)
    rules_el_metadata: Any = Field(default_factory=dict)
    el_catalog: ElCatalog = Field(default_factory=ElCatalog)
    runtime_configs: List[str] = Field(default_factory=list)
    legacy_stage_libs: List[str] = Field(default_factory=list)
    event_definitions: List[Dict[str, Any]] = Field(default_factory=list)


class VerboseCatalog(_CatalogBase):
    """Schema 1: every stage definition listed in full"""
    schema_version: Literal["1"] = Field(default="1", exclude=True)


class CompactCatalog(_CatalogBase):
    """Schema 2: stages deduplicated by name::version"""
    schema_version: Literal["2"] = "2"
    stage_definition_minimal_list: List[StageDefinitionMinimal] = Field(default_factory=list)
    stage_definition_map: Dict[str, StageDefinition] = Field(default_factory=dict)

    @field_validator("stages")
    @classmethod
    def validate_stages_empty(cls, v: List[StageDefinition]) -> List[StageDefinition]:
        if v:
            raise ValueError("Compact catalog carries stages in stageDefinitionMap only")
        return v


DefinitionCatalog = Union[VerboseCatalog, CompactCatalog]


# ============================================
# Libraries and repository manifest
# ============================================

class StageLibraryDefinition(_CamelModel):
    """Descriptor of a loaded stage library"""
    name: str
    label: Optional[str] = None
    version: Optional[str] = None


class StageLibraryInfo(_CamelModel):
    """Id and label of a loaded stage library"""
    name: str
    label: Optional[str] = None


class StageLibraryManifestEntry(_CamelModel):
    """Downloadable artifact of one stage library version"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    stage_lib_id: str
    stage_lib_label: Optional[str] = None
    stage_lib_version: Optional[str] = None
    stage_lib_file: str = Field(description="URL of the library archive")
    stage_lib_file_sha256: Optional[str] = None
    stage_lib_min_engine_version: Optional[str] = None
    stage_lib_max_engine_version: Optional[str] = None


class RepositoryManifest(_CamelModel):
    """Repository manifest listing the libraries it serves"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    repo_url: Optional[str] = None
    stage_libraries: List[StageLibraryManifestEntry] = Field(default_factory=list)


class InstallResult(_CamelModel):
    """Outcome of installing one stage library"""
    library_id: str
    version: Optional[str] = None
    url: str
    install_dir: Path


# ============================================
# Extras and classpath health
# ============================================

class ExtrasDescriptor(_CamelModel):
    """Auxiliary file of a library (or engine-wide when library_id is None).

    ``id`` is the absolute path at listing time and is advisory only: deletes
    rebuild the target from library_id and file_name.
    """
    id: Optional[str] = None
    library_id: Optional[str] = None
    file_name: str


class ClasspathResult(_CamelModel):
    """Classpath health of one stage library, forwarded from the validator"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    is_valid: bool = True
    unparseable_paths: List[str] = Field(default_factory=list)
    collisions: Dict[str, List[str]] = Field(default_factory=dict)
