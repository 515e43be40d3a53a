"""Definition catalog aggregation

Collects every definition kind exposed by the registry into one payload.
Schema version "2" replaces the stage list with a minimal list plus a map
keyed by ``name::version``: the same stage is often packaged in several
libraries and listing each copy in full inflates the response.
"""

import logging
from typing import Dict, List, Optional, Union

from stagehub.core.stagelibrary.models import (
    CompactCatalog,
    ConnectionDefinitionEntry,
    ConnectionsCatalog,
    DefinitionCatalog,
    ElCatalog,
    HideStageType,
    StageDefinition,
    VerboseCatalog,
)
from stagehub.core.stagelibrary.registry import StageLibraryRegistry

logger = logging.getLogger(__name__)

COMPACT_SCHEMA_VERSION = "2"

# Keys of the EL catalog payload
RULES_EL_METADATA = "rulesElMetadata"
EL_FUNCTION_DEFS = "elFunctionDefinitions"
EL_CONSTANT_DEFS = "elConstantDefinitions"


def parse_hide_stage(value: Optional[Union[str, HideStageType]]) -> Optional[HideStageType]:
    """Convert a raw hideStage query value, None when absent"""
    if value is None or value == "":
        return None
    if isinstance(value, HideStageType):
        return value
    try:
        return HideStageType(value.strip().upper())
    except ValueError:
        valid = ", ".join(t.value for t in HideStageType)
        raise ValueError(f"Invalid hideStage value '{value}'. Must be one of: {valid}")


def build_stage_definition_map(stages: List[StageDefinition]) -> Dict[str, StageDefinition]:
    """Index stages by name::version, keeping the first occurrence of each key"""
    stage_map: Dict[str, StageDefinition] = {}
    for stage in stages:
        if stage.key not in stage_map:
            stage_map[stage.key] = stage
    return stage_map


class CatalogAggregator:
    """Builds the definition catalog from a registry snapshot"""

    def __init__(self, registry: StageLibraryRegistry):
        self.registry = registry

    def build_catalog(
        self,
        hide_stage: Optional[Union[str, HideStageType]] = None,
        schema_version: Optional[str] = None,
    ) -> DefinitionCatalog:
        """
        Assemble the definitions payload

        Args:
            hide_stage: Only keep stages tagged with this hide type
            schema_version: "2" selects the compact shape, anything else the
                verbose one. The compact minimal list and map are both built
                from the hide-filtered stages.

        Returns:
            VerboseCatalog or CompactCatalog
        """
        hide_filter = parse_hide_stage(hide_stage)
        registry = self.registry

        stages = registry.get_stages()
        if hide_filter is not None:
            stages = [s for s in stages if hide_filter in s.hide_stage]

        common = dict(
            pipeline=[registry.get_pipeline()],
            pipeline_fragment=[registry.get_pipeline_fragment()],
            services=registry.get_service_definitions(),
            pipeline_rules=[registry.get_pipeline_rules()],
            rules_el_metadata=registry.get_rules_el_metadata(),
            el_catalog=ElCatalog(
                el_function_definitions=registry.get_el_function_catalog(),
                el_constant_definitions=registry.get_el_constant_catalog(),
            ),
            runtime_configs=registry.get_runtime_config_keys(),
            legacy_stage_libs=registry.get_legacy_stage_libs(),
            event_definitions=registry.get_event_definitions(),
        )

        if schema_version == COMPACT_SCHEMA_VERSION:
            stage_map = build_stage_definition_map(stages)
            logger.debug(
                f"Compact catalog: {len(stages)} stage definitions, {len(stage_map)} unique"
            )
            return CompactCatalog(
                stages=[],
                stage_definition_minimal_list=[s.to_minimal() for s in stages],
                stage_definition_map=stage_map,
                **common,
            )

        return VerboseCatalog(stages=stages, **common)

    def build_connections(self) -> ConnectionsCatalog:
        """Connection definitions joined with the verifiers of their type"""
        entries = []
        for connection in self.registry.get_connections():
            verifiers = self.registry.get_connection_verifiers(connection.type)
            entries.append(ConnectionDefinitionEntry(
                **connection.model_dump(),
                verifier_definitions=verifiers,
            ))
        return ConnectionsCatalog(connections=entries)


def build_catalog(
    registry: StageLibraryRegistry,
    hide_stage: Optional[Union[str, HideStageType]] = None,
    schema_version: Optional[str] = None,
) -> DefinitionCatalog:
    """Shortcut for ``CatalogAggregator(registry).build_catalog(...)``"""
    return CatalogAggregator(registry).build_catalog(hide_stage, schema_version)
