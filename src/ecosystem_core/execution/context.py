"""Single-owner builder for one logical operation's span tree."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any, cast

from pydantic import TypeAdapter

from .models import (
    AgentSpan,
    AnySpan,
    Artifact,
    CoreExecutionResult,
    CoreSpan,
    Evidence,
    ExecutionGraph,
    ExecutionSpan,
    InvocationContext,
    RepoExecutionResult,
    RepoSpan,
)
from .spans import (
    IdGenerator,
    attach_artifact,
    attach_evidence,
    complete_span,
    create_agent_span,
    create_core_span,
    create_repo_span,
    fail_span,
)
from .validator import validate_execution_graph

logger = logging.getLogger(__name__)

_SPAN_ADAPTER = TypeAdapter(AnySpan)


class ContextFinalizedError(RuntimeError):
    """Raised when a finalized context is used again."""


class ExecutionContext:
    """Collect core, repo and agent spans and assemble the final result.

    Usage:
        ctx = ExecutionContext("ecosystem-core", parent_span_id)
        repo = ctx.start_repo_span("marketplace")
        agent = ctx.start_agent_span(repo.span_id, "marketplace-agent", "list_artifacts")
        ctx.complete_agent_span(agent.span_id)
        ctx.complete_repo_span(repo.span_id)
        result = ctx.finalize(payload)

    A context is never shared between concurrent operations, so it holds no lock.
    """

    def __init__(
        self,
        core_name: str,
        parent_span_id: str | None = None,
        *,
        id_generator: IdGenerator | None = None,
    ) -> None:
        self._id_generator = id_generator
        self._spans: list[ExecutionSpan] = []
        self._index: dict[str, int] = {}
        self._finalized = False
        core_span = create_core_span(core_name, parent_span_id, id_generator=id_generator)
        self._core_span_id = core_span.span_id
        self._append(core_span)

    @property
    def core_span_id(self) -> str:
        return self._core_span_id

    @property
    def core_span(self) -> CoreSpan:
        return cast(CoreSpan, self._spans[self._index[self._core_span_id]])

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def spans(self) -> list[ExecutionSpan]:
        """Snapshot of the spans recorded so far, in append order."""
        return list(self._spans)

    def get_span(self, span_id: str) -> ExecutionSpan:
        index = self._index.get(span_id)
        if index is None:
            raise KeyError(f"Span {span_id} does not exist in this context")
        return self._spans[index]

    def graph(self) -> ExecutionGraph:
        return ExecutionGraph(spans=list(self._spans))

    def get_invocation_context(self) -> InvocationContext:
        return InvocationContext(
            parent_span_id=self._core_span_id,
            core_span_id=self._core_span_id,
        )

    def start_repo_span(self, repo_name: str) -> RepoSpan:
        self._ensure_open()
        span = create_repo_span(repo_name, self._core_span_id, id_generator=self._id_generator)
        self._append(span)
        return span

    def start_agent_span(self, repo_span_id: str, agent_name: str, operation: str) -> AgentSpan:
        self._ensure_open()
        parent = self.get_span(repo_span_id)
        if parent.kind != "repo":
            raise ValueError(
                f"Agent spans must be parented to a repo span; {repo_span_id} is {parent.kind}"
            )
        span = create_agent_span(
            agent_name, operation, repo_span_id, id_generator=self._id_generator
        )
        self._append(span)
        return span

    def complete_repo_span(self, span_id: str) -> None:
        self._update(span_id, complete_span, kind="repo")

    def fail_repo_span(self, span_id: str, reasons: Sequence[str]) -> None:
        self._update(span_id, lambda span: fail_span(span, reasons), kind="repo")

    def complete_agent_span(self, span_id: str) -> None:
        self._update(span_id, complete_span, kind="agent")

    def fail_agent_span(self, span_id: str, reasons: Sequence[str]) -> None:
        self._update(span_id, lambda span: fail_span(span, reasons), kind="agent")

    def attach_artifact_to_span(self, span_id: str, artifact: Artifact) -> None:
        self._update(span_id, lambda span: attach_artifact(span, artifact))

    def attach_evidence_to_span(self, span_id: str, evidence: Evidence) -> None:
        self._update(span_id, lambda span: attach_evidence(span, evidence))

    def ingest_repo_spans(self, spans: Iterable[AnySpan]) -> None:
        """Append spans built by a collaborator verbatim.

        No renaming and no re-parenting: dangling parents surface in validation.
        The whole batch is checked before anything is recorded.
        """
        self._ensure_open()
        batch = [_SPAN_ADAPTER.validate_python(span) for span in spans]
        seen: set[str] = set()
        for span in batch:
            if span.span_id in self._index or span.span_id in seen:
                raise ValueError(f"Span {span.span_id} is already recorded in this context")
            seen.add(span.span_id)
        for span in batch:
            self._append(span)

    def ingest_repo_result(self, repo_result: RepoExecutionResult) -> Any:
        self.ingest_repo_spans(repo_result.spans)
        return repo_result.result

    def finalize(self, result: Any = None) -> CoreExecutionResult:
        """Validate the graph, settle the core span and return the full result.

        Runs exactly once per context.
        """
        self._ensure_open()
        validation_failures = validate_execution_graph(self.graph())

        failure_reasons = [f"[{failure.rule}] {failure.message}" for failure in validation_failures]
        failed_children = sum(
            1
            for span in self._spans
            if span.span_id != self._core_span_id and span.status == "failed"
        )
        if failed_children:
            failure_reasons.append(f"{failed_children} child span(s) failed")

        success = not failure_reasons
        if success:
            self._update(self._core_span_id, complete_span)
        else:
            self._update(self._core_span_id, lambda span: fail_span(span, failure_reasons))
        self._finalized = True

        logger.info(
            "Finalized core span span_id=%s name=%s success=%s spans=%d "
            "validation_failures=%d failed_children=%d",
            self._core_span_id,
            self.core_span.name,
            success,
            len(self._spans),
            len(validation_failures),
            failed_children,
        )
        return CoreExecutionResult(
            success=success,
            core_span_id=self._core_span_id,
            execution_graph=self.graph(),
            validation_failures=validation_failures,
            failure_reasons=list(failure_reasons),
            result=result,
        )

    def _append(self, span: ExecutionSpan) -> None:
        self._index[span.span_id] = len(self._spans)
        self._spans.append(span)

    def _update(
        self,
        span_id: str,
        updater: Callable[[ExecutionSpan], ExecutionSpan],
        *,
        kind: str | None = None,
    ) -> None:
        self._ensure_open()
        current = self.get_span(span_id)
        if kind is not None and current.kind != kind:
            raise ValueError(f"Span {span_id} is a {current.kind} span, expected {kind}")
        updated = updater(current)
        self._spans[self._index[span_id]] = updated
        logger.debug(
            "Updated span span_id=%s kind=%s status=%s", span_id, updated.kind, updated.status
        )

    def _ensure_open(self) -> None:
        if self._finalized:
            raise ContextFinalizedError(
                f"Execution context for core span {self._core_span_id} is already finalized"
            )
