from __future__ import annotations

from datetime import UTC, datetime

from ecosystem_core.execution.models import Artifact, Evidence, ExecutionGraph
from ecosystem_core.execution.spans import (
    attach_artifact,
    attach_evidence,
    complete_span,
    create_agent_span,
    create_core_span,
    create_repo_span,
)
from ecosystem_core.execution.validator import (
    is_valid_execution_graph,
    validate_execution_graph,
)


def _rules(graph: ExecutionGraph) -> list[str]:
    return [failure.rule for failure in validate_execution_graph(graph)]


def _valid_spans(ids):
    core = create_core_span("ecosystem-core", id_generator=ids)
    repo = create_repo_span("marketplace", core.span_id, id_generator=ids)
    agent = create_agent_span("marketplace-agent", "list_artifacts", repo.span_id, id_generator=ids)
    return core, repo, agent


def test_complete_hierarchy_is_valid(ids) -> None:
    core, repo, agent = _valid_spans(ids)
    graph = ExecutionGraph(spans=[complete_span(core), complete_span(repo), complete_span(agent)])

    assert validate_execution_graph(graph) == []
    assert is_valid_execution_graph(graph) is True


def test_empty_graph_requires_core_span_and_stops() -> None:
    failures = validate_execution_graph(ExecutionGraph())

    assert len(failures) == 1
    assert failures[0].rule == "core_span_required"
    assert failures[0].span_id == "graph"


def test_graph_without_core_reports_only_core_required(ids) -> None:
    # The orphaned repo would otherwise trip valid_parent_reference.
    graph = ExecutionGraph(spans=[create_repo_span("marketplace", "gone", id_generator=ids)])

    assert _rules(graph) == ["core_span_required"]


def test_core_only_graph_needs_repo_children(ids) -> None:
    core = create_core_span("ecosystem-core", id_generator=ids)

    failures = validate_execution_graph(ExecutionGraph(spans=[core]))

    assert [failure.rule for failure in failures] == ["core_must_have_repo_children"]
    assert failures[0].span_id == core.span_id
    assert "ecosystem-core" in failures[0].message


def test_repo_without_agent_children(ids) -> None:
    core = create_core_span("ecosystem-core", id_generator=ids)
    repo = create_repo_span("analytics", core.span_id, id_generator=ids)

    failures = validate_execution_graph(ExecutionGraph(spans=[core, repo]))

    assert [failure.rule for failure in failures] == ["repo_must_have_agent_children"]
    assert failures[0].span_id == repo.span_id


def test_orphan_parent_reference(ids) -> None:
    core, repo, agent = _valid_spans(ids)
    orphan = create_repo_span("benchmark", "missing-parent", id_generator=ids)

    failures = validate_execution_graph(ExecutionGraph(spans=[core, repo, agent, orphan]))

    assert [failure.rule for failure in failures] == ["valid_parent_reference"]
    assert failures[0].span_id == orphan.span_id
    assert "missing-parent" in failures[0].message


def test_core_span_may_reference_external_parent(ids) -> None:
    core = create_core_span("ecosystem-core", "engine-span-42", id_generator=ids)
    repo = create_repo_span("marketplace", core.span_id, id_generator=ids)
    agent = create_agent_span("marketplace-agent", "search", repo.span_id, id_generator=ids)

    assert is_valid_execution_graph(ExecutionGraph(spans=[core, repo, agent]))


def test_self_referencing_span() -> None:
    core = create_core_span("ecosystem-core", id_generator=lambda: "loop")
    core = core.model_copy(update={"parent_span_id": "loop"})

    assert "no_self_reference" in _rules(ExecutionGraph(spans=[core]))


def test_empty_evidence_value_is_rejected(ids) -> None:
    core, repo, agent = _valid_spans(ids)
    agent = attach_evidence(agent, Evidence(type="id", value="", description="nothing"))
    repo = attach_evidence(repo, Evidence(type="uri", value="   ", description="blank"))

    failures = validate_execution_graph(ExecutionGraph(spans=[core, repo, agent]))

    assert [failure.rule for failure in failures] == [
        "evidence_must_be_verifiable",
        "evidence_must_be_verifiable",
    ]
    assert {failure.span_id for failure in failures} == {repo.span_id, agent.span_id}


def test_artifact_without_id_is_rejected(ids) -> None:
    core, repo, agent = _valid_spans(ids)
    artifact = Artifact(
        id="", type="report", name="Unnamed", produced_at=datetime(2024, 1, 1, tzinfo=UTC)
    )
    agent = attach_artifact(agent, artifact)

    assert _rules(ExecutionGraph(spans=[core, repo, agent])) == ["artifact_must_have_id"]


def test_all_violations_are_reported(ids) -> None:
    core = create_core_span("ecosystem-core", id_generator=ids)
    second_core = create_core_span("secondary", id_generator=ids)
    repo = create_repo_span("analytics", core.span_id, id_generator=ids)
    stray_agent = create_agent_span("ghost", "noop", "nowhere", id_generator=ids)
    stray_agent = attach_evidence(stray_agent, Evidence(type="id", value=""))

    rules = _rules(ExecutionGraph(spans=[core, second_core, repo, stray_agent]))

    assert sorted(rules) == sorted(
        [
            "repo_must_have_agent_children",
            "core_must_have_repo_children",
            "valid_parent_reference",
            "evidence_must_be_verifiable",
        ]
    )


def test_validation_does_not_modify_graph(ids) -> None:
    core = create_core_span("ecosystem-core", id_generator=ids)
    graph = ExecutionGraph(spans=[core])
    before = graph.model_dump()

    validate_execution_graph(graph)

    assert graph.model_dump() == before


def test_evidence_failures_are_reported_before_artifact_failures(ids) -> None:
    core, repo, agent = _valid_spans(ids)
    blank_artifact = Artifact(
        id=" ", type="report", name="Blank", produced_at=datetime(2024, 1, 1, tzinfo=UTC)
    )
    repo = attach_artifact(repo, blank_artifact)
    agent = attach_evidence(agent, Evidence(type="hash", value=""))

    rules = _rules(ExecutionGraph(spans=[core, repo, agent]))

    assert rules == ["evidence_must_be_verifiable", "artifact_must_have_id"]
