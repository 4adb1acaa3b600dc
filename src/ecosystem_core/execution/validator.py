"""Structural validation of execution graphs.

A graph is valid only when every level of the core -> repo -> agent hierarchy is
present. Validation is pure and may run on a partial graph mid-execution.
"""

from __future__ import annotations

from collections import defaultdict

from .models import GRAPH_SPAN_ID, ExecutionGraph, ExecutionSpan, ValidationFailure

CORE_SPAN_REQUIRED = "core_span_required"
CORE_MUST_HAVE_REPO_CHILDREN = "core_must_have_repo_children"
REPO_MUST_HAVE_AGENT_CHILDREN = "repo_must_have_agent_children"
VALID_PARENT_REFERENCE = "valid_parent_reference"
NO_SELF_REFERENCE = "no_self_reference"
EVIDENCE_MUST_BE_VERIFIABLE = "evidence_must_be_verifiable"
ARTIFACT_MUST_HAVE_ID = "artifact_must_have_id"


def validate_execution_graph(graph: ExecutionGraph) -> list[ValidationFailure]:
    """Return every invariant violation in the graph; empty means valid."""
    failures: list[ValidationFailure] = []
    span_ids = {span.span_id for span in graph.spans}
    children_by_parent: dict[str, list[ExecutionSpan]] = defaultdict(list)
    for span in graph.spans:
        if span.parent_span_id:
            children_by_parent[span.parent_span_id].append(span)

    core_spans = [span for span in graph.spans if span.kind == "core"]
    if not core_spans:
        # Nothing else is meaningful without a root.
        return [
            ValidationFailure(
                span_id=GRAPH_SPAN_ID,
                rule=CORE_SPAN_REQUIRED,
                message="Execution graph must contain at least one core-level span",
            )
        ]

    for core_span in core_spans:
        repo_children = [
            child for child in children_by_parent[core_span.span_id] if child.kind == "repo"
        ]
        if not repo_children:
            failures.append(
                ValidationFailure(
                    span_id=core_span.span_id,
                    rule=CORE_MUST_HAVE_REPO_CHILDREN,
                    message=f'Core span "{core_span.name}" has no repo-level child spans',
                )
            )

        for repo_span in repo_children:
            if not any(child.kind == "agent" for child in children_by_parent[repo_span.span_id]):
                failures.append(
                    ValidationFailure(
                        span_id=repo_span.span_id,
                        rule=REPO_MUST_HAVE_AGENT_CHILDREN,
                        message=f'Repo span "{repo_span.name}" has no agent-level child spans',
                    )
                )

    for span in graph.spans:
        # Core spans may point at a parent owned by the calling engine.
        if span.kind != "core" and span.parent_span_id not in span_ids:
            failures.append(
                ValidationFailure(
                    span_id=span.span_id,
                    rule=VALID_PARENT_REFERENCE,
                    message=(
                        f'Span "{span.name}" references non-existent parent_span_id '
                        f'"{span.parent_span_id}"'
                    ),
                )
            )

    for span in graph.spans:
        if span.parent_span_id == span.span_id:
            failures.append(
                ValidationFailure(
                    span_id=span.span_id,
                    rule=NO_SELF_REFERENCE,
                    message=f'Span "{span.name}" references itself as parent',
                )
            )

    for span in graph.spans:
        for evidence in span.evidence:
            if not evidence.value.strip():
                failures.append(
                    ValidationFailure(
                        span_id=span.span_id,
                        rule=EVIDENCE_MUST_BE_VERIFIABLE,
                        message=f'Span "{span.name}" has evidence with empty value',
                    )
                )

    for span in graph.spans:
        for artifact in span.artifacts:
            if not artifact.id.strip():
                failures.append(
                    ValidationFailure(
                        span_id=span.span_id,
                        rule=ARTIFACT_MUST_HAVE_ID,
                        message=f'Span "{span.name}" has artifact without stable identifier',
                    )
                )

    return failures


def is_valid_execution_graph(graph: ExecutionGraph) -> bool:
    return not validate_execution_graph(graph)
