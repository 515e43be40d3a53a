"""Stage library registry interface

The registry that discovers and loads stage libraries lives in the engine;
this package only reads from it. ``StaticStageLibraryRegistry`` is a snapshot
implementation used by the CLI and the tests.
"""

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

import yaml

from stagehub.core.stagelibrary.models import (
    ClasspathResult,
    ConnectionDefinition,
    ConnectionVerifierDefinition,
    RepositoryManifest,
    StageDefinition,
    StageLibraryDefinition,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class StageLibraryRegistry(Protocol):
    """Read accessors the stage library manager needs from the engine"""

    def get_stages(self) -> List[StageDefinition]: ...

    def get_pipeline(self) -> Dict[str, Any]: ...

    def get_pipeline_fragment(self) -> Dict[str, Any]: ...

    def get_service_definitions(self) -> List[Dict[str, Any]]: ...

    def get_pipeline_rules(self) -> Dict[str, Any]: ...

    def get_rules_el_metadata(self) -> Any: ...

    def get_el_function_catalog(self) -> Any: ...

    def get_el_constant_catalog(self) -> Any: ...

    def get_runtime_config_keys(self) -> List[str]: ...

    def get_legacy_stage_libs(self) -> List[str]: ...

    def get_event_definitions(self) -> List[Dict[str, Any]]: ...

    def get_connections(self) -> List[ConnectionDefinition]: ...

    def get_connection_verifiers(self, connection_type: str) -> List[ConnectionVerifierDefinition]: ...

    def get_loaded_stage_libraries(self) -> List[StageLibraryDefinition]: ...

    def get_repository_manifest_list(self) -> List[RepositoryManifest]: ...

    def validate_stage_lib_classpath(self) -> List[ClasspathResult]: ...


class StaticStageLibraryRegistry:
    """Registry backed by an in-memory snapshot.

    Accessors return deep copies taken under a lock, so callers always see a
    consistent point-in-time view even while ``update`` replaces entries.
    """

    def __init__(
        self,
        stages: Optional[List[StageDefinition]] = None,
        pipeline: Optional[Dict[str, Any]] = None,
        pipeline_fragment: Optional[Dict[str, Any]] = None,
        services: Optional[List[Dict[str, Any]]] = None,
        pipeline_rules: Optional[Dict[str, Any]] = None,
        rules_el_metadata: Any = None,
        el_function_catalog: Any = None,
        el_constant_catalog: Any = None,
        runtime_config_keys: Optional[List[str]] = None,
        legacy_stage_libs: Optional[List[str]] = None,
        event_definitions: Optional[List[Dict[str, Any]]] = None,
        connections: Optional[List[ConnectionDefinition]] = None,
        connection_verifiers: Optional[Dict[str, List[ConnectionVerifierDefinition]]] = None,
        loaded_libraries: Optional[List[StageLibraryDefinition]] = None,
        repository_manifests: Optional[List[RepositoryManifest]] = None,
        classpath_validator: Optional[Callable[[], List[ClasspathResult]]] = None,
    ):
        self._lock = threading.RLock()
        self._state: Dict[str, Any] = {
            "stages": list(stages or []),
            "pipeline": dict(pipeline or {}),
            "pipeline_fragment": dict(pipeline_fragment or {}),
            "services": list(services or []),
            "pipeline_rules": dict(pipeline_rules or {}),
            "rules_el_metadata": rules_el_metadata if rules_el_metadata is not None else {},
            "el_function_catalog": el_function_catalog if el_function_catalog is not None else {},
            "el_constant_catalog": el_constant_catalog if el_constant_catalog is not None else {},
            "runtime_config_keys": list(runtime_config_keys or []),
            "legacy_stage_libs": list(legacy_stage_libs or []),
            "event_definitions": list(event_definitions or []),
            "connections": list(connections or []),
            "connection_verifiers": dict(connection_verifiers or {}),
            "loaded_libraries": list(loaded_libraries or []),
            "repository_manifests": list(repository_manifests or []),
        }
        self._classpath_validator = classpath_validator

    def _get(self, key: str) -> Any:
        with self._lock:
            return copy.deepcopy(self._state[key])

    def update(self, **values: Any) -> None:
        """Replace snapshot entries atomically"""
        with self._lock:
            for key, value in values.items():
                if key not in self._state:
                    raise KeyError(f"Unknown registry entry: {key}")
                self._state[key] = value

    def get_stages(self) -> List[StageDefinition]:
        return self._get("stages")

    def get_pipeline(self) -> Dict[str, Any]:
        return self._get("pipeline")

    def get_pipeline_fragment(self) -> Dict[str, Any]:
        return self._get("pipeline_fragment")

    def get_service_definitions(self) -> List[Dict[str, Any]]:
        return self._get("services")

    def get_pipeline_rules(self) -> Dict[str, Any]:
        return self._get("pipeline_rules")

    def get_rules_el_metadata(self) -> Any:
        return self._get("rules_el_metadata")

    def get_el_function_catalog(self) -> Any:
        return self._get("el_function_catalog")

    def get_el_constant_catalog(self) -> Any:
        return self._get("el_constant_catalog")

    def get_runtime_config_keys(self) -> List[str]:
        return self._get("runtime_config_keys")

    def get_legacy_stage_libs(self) -> List[str]:
        return self._get("legacy_stage_libs")

    def get_event_definitions(self) -> List[Dict[str, Any]]:
        return self._get("event_definitions")

    def get_connections(self) -> List[ConnectionDefinition]:
        return self._get("connections")

    def get_connection_verifiers(self, connection_type: str) -> List[ConnectionVerifierDefinition]:
        with self._lock:
            return copy.deepcopy(self._state["connection_verifiers"].get(connection_type, []))

    def get_loaded_stage_libraries(self) -> List[StageLibraryDefinition]:
        return self._get("loaded_libraries")

    def get_repository_manifest_list(self) -> List[RepositoryManifest]:
        return self._get("repository_manifests")

    def validate_stage_lib_classpath(self) -> List[ClasspathResult]:
        if self._classpath_validator is None:
            return [
                ClasspathResult(name=lib.name, is_valid=True)
                for lib in self.get_loaded_stage_libraries()
            ]
        return list(self._classpath_validator())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticStageLibraryRegistry":
        """
        Build a registry from a snapshot dict (camelCase keys, as exported
        by the engine)

        Args:
            data: Snapshot dictionary

        Returns:
            StaticStageLibraryRegistry instance
        """
        el_catalog = data.get("elCatalog") or {}
        verifiers = {
            conn_type: [ConnectionVerifierDefinition.model_validate(v) for v in items]
            for conn_type, items in (data.get("connectionVerifiers") or {}).items()
        }
        classpath = [ClasspathResult.model_validate(r) for r in data.get("classpathHealth") or []]

        return cls(
            stages=[StageDefinition.model_validate(s) for s in data.get("stages") or []],
            pipeline=data.get("pipeline") or {},
            pipeline_fragment=data.get("pipelineFragment") or {},
            services=data.get("services") or [],
            pipeline_rules=data.get("pipelineRules") or {},
            rules_el_metadata=data.get("rulesElMetadata") or {},
            el_function_catalog=el_catalog.get("elFunctionDefinitions") or {},
            el_constant_catalog=el_catalog.get("elConstantDefinitions") or {},
            runtime_config_keys=data.get("runtimeConfigs") or [],
            legacy_stage_libs=data.get("legacyStageLibs") or [],
            event_definitions=data.get("eventDefinitions") or [],
            connections=[ConnectionDefinition.model_validate(c) for c in data.get("connections") or []],
            connection_verifiers=verifiers,
            loaded_libraries=[
                StageLibraryDefinition.model_validate(lib) for lib in data.get("loadedStageLibraries") or []
            ],
            repository_manifests=[
                RepositoryManifest.model_validate(m) for m in data.get("repositoryManifests") or []
            ],
            classpath_validator=(lambda: classpath) if classpath else None,
        )

    @classmethod
    def from_file(cls, path: Path) -> "StaticStageLibraryRegistry":
        """
        Load a registry snapshot from a YAML or JSON file

        Args:
            path: Path to the snapshot file

        Returns:
            StaticStageLibraryRegistry instance
        """
        path = Path(path)
        logger.info(f"Loading stage library registry snapshot: {path}")

        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Registry snapshot must be a mapping: {path}")

        return cls.from_dict(data)
