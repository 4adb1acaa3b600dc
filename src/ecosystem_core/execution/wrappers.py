"""Operation wrappers: run collaborator calls inside a fully instrumented context.

This is the only layer that catches collaborator exceptions. Callers always get a
CoreExecutionResult back, with the complete execution graph, win or lose.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from .context import ExecutionContext
from .models import CoreExecutionResult, Evidence
from .spans import IdGenerator

logger = logging.getLogger(__name__)

OperationFn = Callable[[], Awaitable[Any]]
Aggregator = Callable[[list[Any]], Any]


@dataclass(frozen=True)
class RepoOperation:
    """One collaborator call inside a multi-repo operation."""

    repo_name: str
    agent_name: str
    operation: str
    fn: OperationFn


@dataclass(frozen=True)
class _OpenPair:
    op: RepoOperation
    repo_span_id: str
    agent_span_id: str


async def execute_with_spans(
    core_name: str,
    parent_span_id: str | None,
    repo_name: str,
    agent_name: str,
    operation: str,
    fn: OperationFn,
    *,
    id_generator: IdGenerator | None = None,
) -> CoreExecutionResult:
    """Wrap one collaborator call as core -> repo -> agent."""
    ctx = ExecutionContext(core_name, parent_span_id, id_generator=id_generator)
    pair = _open_pair(ctx, RepoOperation(repo_name, agent_name, operation, fn))

    operation_result: Any = None
    try:
        operation_result = await fn()
    except Exception as exc:  # noqa: BLE001
        _record_failure(ctx, pair, exc)
    else:
        _record_success(ctx, pair)

    return ctx.finalize(operation_result)


async def execute_multi_repo_with_spans(
    core_name: str,
    parent_span_id: str | None,
    repos: Sequence[RepoOperation],
    aggregator: Aggregator,
    *,
    concurrent: bool = False,
    id_generator: IdGenerator | None = None,
) -> CoreExecutionResult:
    """Wrap several collaborator calls under one core span.

    A failing collaborator does not stop the others. The aggregator only runs when
    every collaborator succeeded; otherwise the payload is None.

    Sequential mode awaits each call before opening the next pair. Concurrent mode
    opens every pair up front, awaits all calls together, then records outcomes in
    invocation order, so span order is the same in both modes.
    """
    ctx = ExecutionContext(core_name, parent_span_id, id_generator=id_generator)
    results: list[Any] = []
    has_failure = False

    if concurrent:
        pairs = [_open_pair(ctx, op) for op in repos]
        outcomes = await asyncio.gather(*(_run(pair.op) for pair in pairs), return_exceptions=True)
        for pair, outcome in zip(pairs, outcomes):
            if isinstance(outcome, Exception):
                has_failure = True
                _record_failure(ctx, pair, outcome)
                results.append(None)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                _record_success(ctx, pair)
                results.append(outcome)
    else:
        for op in repos:
            pair = _open_pair(ctx, op)
            try:
                outcome = await op.fn()
            except Exception as exc:  # noqa: BLE001
                has_failure = True
                _record_failure(ctx, pair, exc)
                results.append(None)
            else:
                _record_success(ctx, pair)
                results.append(outcome)

    payload: Any = None
    if not has_failure:
        try:
            payload = aggregator(results)
        except Exception as exc:  # noqa: BLE001
            # No extra spans for aggregation failures; the payload stays empty.
            logger.warning(
                "Aggregator failed core_span_id=%s error=%s", ctx.core_span_id, _error_message(exc)
            )

    return ctx.finalize(payload)


async def _run(op: RepoOperation) -> Any:
    return await op.fn()


def _open_pair(ctx: ExecutionContext, op: RepoOperation) -> _OpenPair:
    repo_span = ctx.start_repo_span(op.repo_name)
    agent_span = ctx.start_agent_span(repo_span.span_id, op.agent_name, op.operation)
    return _OpenPair(op=op, repo_span_id=repo_span.span_id, agent_span_id=agent_span.span_id)


def _record_success(ctx: ExecutionContext, pair: _OpenPair) -> None:
    op = pair.op
    ctx.attach_evidence_to_span(
        pair.agent_span_id,
        Evidence(
            type="id",
            value=f"{op.repo_name}:{op.operation}:{pair.agent_span_id}",
            description=f"Completed {op.operation} via {op.agent_name}",
        ),
    )
    ctx.complete_agent_span(pair.agent_span_id)
    ctx.complete_repo_span(pair.repo_span_id)


def _record_failure(ctx: ExecutionContext, pair: _OpenPair, exc: Exception) -> None:
    op = pair.op
    message = _error_message(exc)
    logger.warning(
        "Collaborator failed repo=%s agent=%s operation=%s error=%s",
        op.repo_name,
        op.agent_name,
        op.operation,
        message,
    )
    ctx.fail_agent_span(pair.agent_span_id, [message])
    ctx.fail_repo_span(pair.repo_span_id, [f'Agent "{op.agent_name}" failed: {message}'])


def _error_message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
