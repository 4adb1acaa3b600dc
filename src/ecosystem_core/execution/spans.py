"""Span factories and lifecycle transitions.

Every function returns a new span value; the input span is never modified.
Callers that keep spans in a collection replace the old entry by span_id.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TypeVar
from uuid import uuid4

from pydantic import JsonValue

from .models import AgentSpan, Artifact, CoreSpan, Evidence, ExecutionSpan, RepoSpan

logger = logging.getLogger(__name__)

IdGenerator = Callable[[], str]
SpanT = TypeVar("SpanT", bound=ExecutionSpan)


def generate_span_id() -> str:
    """Random 128-bit identifier formatted as a UUID."""
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def create_core_span(
    name: str,
    parent_span_id: str | None = None,
    *,
    id_generator: IdGenerator | None = None,
) -> CoreSpan:
    """Create a running core span.

    parent_span_id is None for a true root, or an opaque id owned by the calling
    engine outside this graph.
    """
    span = CoreSpan(
        span_id=(id_generator or generate_span_id)(),
        parent_span_id=parent_span_id,
        name=name,
        start_time=utc_now(),
    )
    logger.debug("Created core span span_id=%s name=%s", span.span_id, name)
    return span


def create_repo_span(
    repo_name: str,
    parent_span_id: str,
    *,
    id_generator: IdGenerator | None = None,
) -> RepoSpan:
    span = RepoSpan(
        span_id=(id_generator or generate_span_id)(),
        parent_span_id=parent_span_id,
        name=f"repo:{repo_name}",
        repo_name=repo_name,
        start_time=utc_now(),
    )
    logger.debug(
        "Created repo span span_id=%s repo=%s parent=%s", span.span_id, repo_name, parent_span_id
    )
    return span


def create_agent_span(
    agent_name: str,
    operation: str,
    parent_span_id: str,
    *,
    id_generator: IdGenerator | None = None,
) -> AgentSpan:
    span = AgentSpan(
        span_id=(id_generator or generate_span_id)(),
        parent_span_id=parent_span_id,
        name=f"agent:{agent_name}:{operation}",
        agent_name=agent_name,
        operation=operation,
        start_time=utc_now(),
    )
    logger.debug(
        "Created agent span span_id=%s agent=%s operation=%s parent=%s",
        span.span_id,
        agent_name,
        operation,
        parent_span_id,
    )
    return span


def complete_span(span: SpanT) -> SpanT:
    # Completing twice only re-stamps end_time.
    _ensure_transition(span, "completed")
    return _detached(span).model_copy(update={"status": "completed", "end_time": utc_now()})


def fail_span(span: SpanT, reasons: Sequence[str]) -> SpanT:
    if isinstance(reasons, str):
        raise TypeError("Failure reasons must be a sequence of strings, not a single string")
    _ensure_transition(span, "failed")
    fresh = _detached(span)
    return fresh.model_copy(
        update={
            "status": "failed",
            "end_time": utc_now(),
            "failure_reasons": (*fresh.failure_reasons, *reasons),
        }
    )


def attach_artifact(span: SpanT, artifact: Artifact) -> SpanT:
    fresh = _detached(span)
    return fresh.model_copy(update={"artifacts": (*fresh.artifacts, artifact)})


def attach_evidence(span: SpanT, evidence: Evidence) -> SpanT:
    fresh = _detached(span)
    return fresh.model_copy(update={"evidence": (*fresh.evidence, evidence)})


def _detached(span: SpanT) -> SpanT:
    # Deep copy so metadata and artifact content are never shared between versions.
    return span.model_copy(deep=True)


def _ensure_transition(span: ExecutionSpan, status: str) -> None:
    if span.status != "running" and span.status != status:
        raise ValueError(
            f"Span {span.span_id} is already {span.status} and cannot become {status}"
        )


def build_artifact(
    artifact_id: str,
    artifact_type: str,
    name: str,
    content: JsonValue = None,
    produced_at: datetime | None = None,
) -> Artifact:
    """Artifact stamped with the current time unless produced_at is given."""
    return Artifact(
        id=artifact_id,
        type=artifact_type,
        name=name,
        content=content,
        produced_at=produced_at or utc_now(),
    )
