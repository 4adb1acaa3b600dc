"""Pydantic models for the execution graph.

Terms used in this file:
- Span: one timed, statused node in the graph (core, repo or agent level).
- Evidence: an explicit id/hash/uri proving an action happened. Never inferred.
- Artifact: an output object owned by the span that produced it.
- Frozen model: a model whose fields cannot be reassigned; updates produce a copy.

Hierarchy every graph must satisfy:

    Core (this engine)
      └─ Repo (collaborator invoked)
          └─ Agent (operation executed)
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

SpanKind = Literal["core", "repo", "agent"]
SpanStatus = Literal["running", "completed", "failed"]
EvidenceType = Literal["id", "hash", "uri"]

# Sentinel span_id used for graph-level validation failures.
GRAPH_SPAN_ID = "graph"


class FrozenModel(BaseModel):
    """Base model for immutable records."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class Artifact(FrozenModel):
    """Output object attached at the lowest span that produced it."""

    # Stable identifier; an empty id is reported by the validator.
    id: str
    # plan, mapping, config, export, report, ...
    type: str
    name: str
    content: JsonValue = None
    produced_at: datetime


class Evidence(FrozenModel):
    """Machine-checkable pointer to proof that an action occurred."""

    type: EvidenceType
    value: str
    # What this evidence proves.
    description: str = ""


class ExecutionSpan(FrozenModel):
    """Common fields of every span kind."""

    span_id: str
    # None only for a root core span with no calling engine.
    parent_span_id: str | None = None
    kind: SpanKind
    name: str
    status: SpanStatus = "running"
    start_time: datetime
    end_time: datetime | None = None
    artifacts: tuple[Artifact, ...] = ()
    evidence: tuple[Evidence, ...] = ()
    failure_reasons: tuple[str, ...] = ()
    metadata: dict[str, JsonValue] = Field(default_factory=dict)


class CoreSpan(ExecutionSpan):
    kind: Literal["core"] = "core"


class RepoSpan(ExecutionSpan):
    kind: Literal["repo"] = "repo"
    # Which collaborator was invoked.
    repo_name: str


class AgentSpan(ExecutionSpan):
    kind: Literal["agent"] = "agent"
    agent_name: str
    operation: str


AnySpan = Annotated[CoreSpan | RepoSpan | AgentSpan, Field(discriminator="kind")]


class ExecutionGraph(BaseModel):
    """All spans of one operation, in append order."""

    spans: list[AnySpan] = Field(default_factory=list)

    def get(self, span_id: str) -> ExecutionSpan | None:
        return next((span for span in self.spans if span.span_id == span_id), None)

    def children_of(self, span_id: str) -> list[ExecutionSpan]:
        return [span for span in self.spans if span.parent_span_id == span_id]

    def core_spans(self) -> list[CoreSpan]:
        return [span for span in self.spans if isinstance(span, CoreSpan)]


class ValidationFailure(BaseModel):
    """One structural invariant violation."""

    span_id: str
    rule: str
    message: str


class InvocationContext(BaseModel):
    """Handed to a collaborator so it can parent the spans it builds itself."""

    parent_span_id: str
    core_span_id: str


class RepoExecutionResult(BaseModel):
    """What an instrumentation-aware collaborator returns."""

    spans: list[AnySpan] = Field(default_factory=list)
    repo_span_id: str
    result: Any = None


class CoreExecutionResult(BaseModel):
    """Terminal payload of every wrapped operation, returned on success and failure."""

    success: bool
    core_span_id: str
    execution_graph: ExecutionGraph
    validation_failures: list[ValidationFailure] = Field(default_factory=list)
    # Core-level reasons; empty on success.
    failure_reasons: list[str] = Field(default_factory=list)
    # Domain payload, None when the operation failed.
    result: Any = None
