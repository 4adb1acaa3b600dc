"""Execution span instrumentation and graph validation."""

from ecosystem_core.execution.context import ContextFinalizedError, ExecutionContext
from ecosystem_core.execution.instrumented import InstrumentedClient, RepoBinding, RepoCall
from ecosystem_core.execution.models import (
    AgentSpan,
    Artifact,
    CoreExecutionResult,
    CoreSpan,
    Evidence,
    ExecutionGraph,
    ExecutionSpan,
    InvocationContext,
    RepoExecutionResult,
    RepoSpan,
    ValidationFailure,
)
from ecosystem_core.execution.spans import (
    attach_artifact,
    attach_evidence,
    build_artifact,
    complete_span,
    create_agent_span,
    create_core_span,
    create_repo_span,
    fail_span,
    generate_span_id,
)
from ecosystem_core.execution.validator import is_valid_execution_graph, validate_execution_graph
from ecosystem_core.execution.wrappers import (
    RepoOperation,
    execute_multi_repo_with_spans,
    execute_with_spans,
)

__all__ = [
    "AgentSpan",
    "Artifact",
    "ContextFinalizedError",
    "CoreExecutionResult",
    "CoreSpan",
    "Evidence",
    "ExecutionContext",
    "ExecutionGraph",
    "ExecutionSpan",
    "InstrumentedClient",
    "InvocationContext",
    "RepoBinding",
    "RepoCall",
    "RepoExecutionResult",
    "RepoOperation",
    "RepoSpan",
    "ValidationFailure",
    "attach_artifact",
    "attach_evidence",
    "build_artifact",
    "complete_span",
    "create_agent_span",
    "create_core_span",
    "create_repo_span",
    "execute_multi_repo_with_spans",
    "execute_with_spans",
    "fail_span",
    "generate_span_id",
    "is_valid_execution_graph",
    "validate_execution_graph",
]
