"""Tool system entrypoint."""

from __future__ import annotations

from pathlib import Path

from dbanalyst.tools.executor import ToolExecutionError, ToolExecutor
from dbanalyst.tools.policy import PolicyEngine, ToolPolicyError
from dbanalyst.tools.registry import ToolRegistry


def initialize_tools(policy_path: str | Path | None = None) -> None:
    # Register built-in tools
    from dbanalyst.tools.builtin import analytics, database  # noqa: F401

    if policy_path:
        ToolRegistry.load_policy_config(policy_path)


__all__ = [
    "PolicyEngine",
    "ToolExecutionError",
    "ToolExecutor",
    "ToolPolicyError",
    "ToolRegistry",
    "initialize_tools",
]
