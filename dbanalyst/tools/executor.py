"""Runs registered tools: policy check, argument check, invocation, result envelope."""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any

from pydantic import BaseModel, ValidationError

from dbanalyst.errors import request_error
from dbanalyst.tools.base import CONTEXT_PARAMETER, ToolContext, arguments_model
from dbanalyst.tools.policy import PolicyEngine, ToolPolicyError
from dbanalyst.tools.registry import ToolRegistry
from dbanalyst.tools.results import ToolResult

logger = logging.getLogger(__name__)


class ToolExecutionError(Exception):
    """Unknown tool, bad arguments, or a handler that raised."""


class ToolExecutor:
    """
    Invoke tools by name on behalf of a caller.

    Every call returns an envelope ``{"tool", "success", "result"}``. Tools
    report their own failures through ``success: false`` in their result;
    the executor only raises for problems with the call itself.
    """

    def __init__(self, policy_engine: PolicyEngine | None = None) -> None:
        self.policy_engine = policy_engine or PolicyEngine()

    async def execute(self, name: str, args: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
        """
        Raises:
            ToolPolicyError: If the tool's policy refuses the call
            ToolExecutionError: For unknown tools, unexpected arguments or handler crashes
        """
        definition = ToolRegistry.get_definition(name)
        handler = ToolRegistry.get_handler(name)
        if definition is None or handler is None:
            raise ToolExecutionError(f"Unknown tool: {name}")

        self.policy_engine.enforce(definition, ctx)

        unexpected = sorted(set(args) - definition.parameter_names)
        if unexpected:
            raise ToolExecutionError(
                f"Unexpected arguments for tool '{name}': {', '.join(unexpected)}"
            )

        try:
            validated = arguments_model(handler).model_validate(args)
        except ValidationError as exc:
            error = request_error(exc)
            ctx.log_action("tool_rejected", {"tool": name, "error_code": error.code.value})
            rejected = ToolResult(success=False, message=error.user_message, error_code=error.code)
            return {"tool": name, "success": False, "result": rejected.model_dump(mode="json")}

        call_args = {field: getattr(validated, field) for field in validated.model_fields_set}
        if CONTEXT_PARAMETER in inspect.signature(handler).parameters:
            call_args[CONTEXT_PARAMETER] = ctx

        ctx.log_action("tool_invoked", {"tool": name, "args": sorted(args)})
        started = time.perf_counter()
        try:
            outcome = handler(**call_args)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except ToolPolicyError:
            raise
        except Exception as exc:
            logger.error(
                f"Tool {name} raised: {exc}",
                extra={"tool": name, "correlation_id": ctx.correlation_id},
            )
            raise ToolExecutionError(str(exc)) from exc

        result = outcome.model_dump(mode="json") if isinstance(outcome, BaseModel) else outcome
        success = bool(result.get("success", True)) if isinstance(result, dict) else True
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        ctx.log_action(
            "tool_completed",
            {"tool": name, "success": success, "duration_ms": duration_ms},
        )
        return {"tool": name, "success": success, "result": result}

    async def execute_plan(
        self, tool_calls: list[dict[str, Any]], ctx: ToolContext
    ) -> list[dict[str, Any]]:
        """Run ``[{"name": ..., "arguments": {...}}, ...]`` in order; nameless entries are skipped."""
        outcomes = []
        for call in tool_calls:
            name = call.get("name")
            if not name:
                continue
            outcomes.append(await self.execute(name, call.get("arguments") or {}, ctx))
        return outcomes
