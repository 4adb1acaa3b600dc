"""Span-emitting facade over collaborator clients.

Each bound collaborator is an object whose async methods are operations. Every
call through the facade returns a CoreExecutionResult carrying the collaborator's
payload in ``result`` plus the full core -> repo -> agent graph.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from ecosystem_core.config.settings import Settings, get_settings

from .models import CoreExecutionResult
from .spans import IdGenerator
from .wrappers import (
    Aggregator,
    OperationFn,
    RepoOperation,
    execute_multi_repo_with_spans,
    execute_with_spans,
)


@dataclass(frozen=True)
class RepoBinding:
    repo_name: str
    agent_name: str
    client: Any


@dataclass(frozen=True)
class RepoCall:
    repo_name: str
    operation: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class InstrumentedClient:
    """Route collaborator calls through the operation wrappers."""

    def __init__(
        self,
        bindings: Iterable[RepoBinding],
        *,
        core_name: str | None = None,
        parent_span_id: str | None = None,
        concurrent: bool | None = None,
        id_generator: IdGenerator | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.bindings = {binding.repo_name: binding for binding in bindings}
        self.core_name = core_name or settings.core_name
        self.parent_span_id = (
            parent_span_id if parent_span_id is not None else settings.resolved_parent_span_id()
        )
        self.concurrent = (
            settings.multi_repo_mode == "concurrent" if concurrent is None else concurrent
        )
        self.id_generator = id_generator
        logging.getLogger("ecosystem_core").setLevel(settings.log_level)

    @property
    def repo_names(self) -> list[str]:
        return sorted(self.bindings)

    async def invoke(
        self, repo_name: str, operation: str, *args: Any, **kwargs: Any
    ) -> CoreExecutionResult:
        op = self._resolve(RepoCall(repo_name, operation, args, kwargs))
        return await execute_with_spans(
            self.core_name,
            self.parent_span_id,
            op.repo_name,
            op.agent_name,
            op.operation,
            op.fn,
            id_generator=self.id_generator,
        )

    async def coordinate(
        self, calls: Sequence[RepoCall], aggregator: Aggregator
    ) -> CoreExecutionResult:
        # Resolve everything first so a bad call fails before any context opens.
        operations = [self._resolve(call) for call in calls]
        return await execute_multi_repo_with_spans(
            self.core_name,
            self.parent_span_id,
            operations,
            aggregator,
            concurrent=self.concurrent,
            id_generator=self.id_generator,
        )

    def _resolve(self, call: RepoCall) -> RepoOperation:
        binding = self.bindings.get(call.repo_name)
        if binding is None:
            raise KeyError(f"Unknown repo: {call.repo_name}")
        method = getattr(binding.client, call.operation, None)
        if not callable(method):
            raise AttributeError(
                f"Repo '{call.repo_name}' client has no operation '{call.operation}'"
            )
        return RepoOperation(
            repo_name=binding.repo_name,
            agent_name=binding.agent_name,
            operation=call.operation,
            fn=_bind(method, call.args, call.kwargs),
        )


def _bind(
    method: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> OperationFn:
    async def call() -> Any:
        return await method(*args, **kwargs)

    return call
