from __future__ import annotations

import pytest

from stagehub.core.stagelibrary.catalog import (
    EL_CONSTANT_DEFS,
    EL_FUNCTION_DEFS,
    RULES_EL_METADATA,
    CatalogAggregator,
    build_catalog,
    build_stage_definition_map,
    parse_hide_stage,
)
from stagehub.core.stagelibrary.models import (
    CompactCatalog,
    ConnectionDefinition,
    ConnectionVerifierDefinition,
    HideStageType,
    VerboseCatalog,
)
from stagehub.core.stagelibrary.registry import StaticStageLibraryRegistry


def _non_stage_fields(payload: dict) -> dict:
    keys = [
        "pipeline", "pipelineFragment", "services", "pipelineRules", RULES_EL_METADATA,
        "elCatalog", "runtimeConfigs", "legacyStageLibs", "eventDefinitions",
    ]
    return {k: payload[k] for k in keys}


def test_verbose_catalog_payload_shape(registry) -> None:
    catalog = build_catalog(registry)
    assert isinstance(catalog, VerboseCatalog)

    payload = catalog.to_payload()
    assert [s["name"] for s in payload["stages"]] == [
        "jdbc_origin", "hdfs_target", "hdfs_target", "error_to_file",
    ]
    assert payload["pipeline"] == [{"name": "pipeline", "configDefinitions": []}]
    assert payload["pipelineFragment"] == [{"name": "fragment"}]
    assert payload["pipelineRules"] == [{"name": "rules"}]
    assert payload["services"] == [{"provides": "DataFormatParserService", "version": 1}]
    assert payload[RULES_EL_METADATA] == {"elFunctionDefinitions": ["time:now"]}
    assert payload["elCatalog"] == {
        EL_FUNCTION_DEFS: {"str:trim": {"name": "str:trim"}},
        EL_CONSTANT_DEFS: {"NULL": {"name": "NULL"}},
    }
    assert payload["runtimeConfigs"] == ["runtime.conf.key"]
    assert payload["legacyStageLibs"] == ["old-lib"]
    assert payload["eventDefinitions"] == [{"name": "file-closed"}]
    assert "schemaVersion" not in payload
    assert "stageDefinitionMap" not in payload
    assert "stageDefinitionMinimalList" not in payload


def test_stage_payload_uses_wire_names_and_keeps_extra_fields(registry, make_stage) -> None:
    registry.update(stages=[make_stage("s", "1", "lib-a", hide=["ERROR_STAGE"], configDefinitions=[{"name": "c"}])])
    stage = build_catalog(registry).to_payload()["stages"][0]
    assert stage["hideStage"] == ["ERROR_STAGE"]
    assert stage["library"] == "lib-a"
    assert stage["configDefinitions"] == [{"name": "c"}]


@pytest.mark.parametrize("schema_version", [None, "1", "3", "", "02"])
def test_other_schema_versions_yield_verbose_shape(registry, schema_version) -> None:
    catalog = build_catalog(registry, schema_version=schema_version)
    assert isinstance(catalog, VerboseCatalog)
    assert len(catalog.stages) == 4


def test_compact_catalog_deduplicates_first_seen_wins(registry) -> None:
    catalog = build_catalog(registry, schema_version="2")
    assert isinstance(catalog, CompactCatalog)
    assert catalog.stages == []

    payload = catalog.to_payload()
    assert payload["schemaVersion"] == "2"
    assert payload["stages"] == []
    assert set(payload["stageDefinitionMap"]) == {"jdbc_origin::3", "hdfs_target::2", "error_to_file::1"}
    # hdfs_target is packaged in hdp-lib and cdp-lib; the first occurrence is kept
    assert payload["stageDefinitionMap"]["hdfs_target::2"]["library"] == "hdp-lib"
    assert [(m["name"], m["library"]) for m in payload["stageDefinitionMinimalList"]] == [
        ("jdbc_origin", "jdbc-lib"),
        ("hdfs_target", "hdp-lib"),
        ("hdfs_target", "cdp-lib"),
        ("error_to_file", "basic-lib"),
    ]


def test_stage_definition_map_keeps_exactly_one_entry_per_key(make_stage) -> None:
    stages = [make_stage("dup", "1", f"lib-{i}") for i in range(5)] + [make_stage("dup", "2", "lib-x")]
    stage_map = build_stage_definition_map(stages)
    assert list(stage_map) == ["dup::1", "dup::2"]
    assert stage_map["dup::1"] is stages[0]


def test_compact_catalog_rejects_verbose_stages(make_stage) -> None:
    with pytest.raises(ValueError):
        CompactCatalog(stages=[make_stage("s", "1", "lib")])


def test_hide_stage_filter_only_touches_stages(registry) -> None:
    unfiltered = build_catalog(registry).to_payload()
    filtered = build_catalog(registry, hide_stage="FIELD_PROCESSOR").to_payload()

    assert [s["library"] for s in filtered["stages"]] == ["hdp-lib", "cdp-lib"]
    assert _non_stage_fields(filtered) == _non_stage_fields(unfiltered)


def test_hide_stage_filter_applies_before_compact_transform(registry) -> None:
    catalog = build_catalog(registry, hide_stage=HideStageType.ERROR_STAGE, schema_version="2")
    assert list(catalog.stage_definition_map) == ["error_to_file::1"]
    assert len(catalog.stage_definition_minimal_list) == 1


def test_parse_hide_stage() -> None:
    assert parse_hide_stage(None) is None
    assert parse_hide_stage("") is None
    assert parse_hide_stage("lifecycle_stage") == HideStageType.LIFECYCLE_STAGE
    with pytest.raises(ValueError):
        parse_hide_stage("NOT_A_TYPE")


def test_catalog_reads_a_snapshot(registry, make_stage) -> None:
    aggregator = CatalogAggregator(registry)
    before = aggregator.build_catalog()
    registry.update(stages=[make_stage("new_stage", "1", "new-lib")])
    after = aggregator.build_catalog()

    assert len(before.stages) == 4
    assert [s.name for s in after.stages] == ["new_stage"]


def test_build_connections_joins_verifiers() -> None:
    registry = StaticStageLibraryRegistry(
        connections=[
            ConnectionDefinition(type="STREAMSETS_JDBC", label="JDBC", library="jdbc-lib", version="1"),
            ConnectionDefinition(type="STREAMSETS_KAFKA", label="Kafka", library="kafka-lib", version="2"),
        ],
        connection_verifiers={
            "STREAMSETS_JDBC": [
                ConnectionVerifierDefinition(
                    verifier_class="com.example.JdbcVerifier",
                    verifier_connection_field_name="connection",
                    library="jdbc-lib",
                )
            ]
        },
    )

    payload = CatalogAggregator(registry).build_connections().to_payload()
    jdbc, kafka = payload["connections"]
    assert jdbc["type"] == "STREAMSETS_JDBC"
    assert jdbc["verifierDefinitions"][0]["verifierClass"] == "com.example.JdbcVerifier"
    assert jdbc["verifierDefinitions"][0]["verifierConnectionFieldName"] == "connection"
    assert kafka["verifierDefinitions"] == []
