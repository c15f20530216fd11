"""Policy checks applied before a tool handler runs."""

from __future__ import annotations

import logging

from dbanalyst.tools.base import ToolContext, ToolDefinition

logger = logging.getLogger(__name__)


class ToolPolicyError(Exception):
    """A tool call refused by its policy (disabled, user not allowed, or unapproved)."""

    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(reason)


class PolicyEngine:
    def enforce(self, definition: ToolDefinition, ctx: ToolContext) -> None:
        reason = self.check(definition, ctx)
        if reason is None:
            return
        logger.warning(
            "Tool call denied",
            extra={
                "tool": definition.name,
                "user_id": ctx.user_id,
                "correlation_id": ctx.correlation_id,
                "reason": reason,
            },
        )
        raise ToolPolicyError(definition.name, reason)

    def check(self, definition: ToolDefinition, ctx: ToolContext) -> str | None:
        """Return the reason a call would be refused, or None when it may run."""
        policy = definition.policy
        if not policy.enabled:
            return f"Tool '{definition.name}' is disabled by policy."
        if policy.allowed_users and ctx.user_id not in policy.allowed_users:
            return f"User '{ctx.user_id}' is not allowed to run '{definition.name}'."
        if policy.requires_approval and not ctx.approved:
            return f"Tool '{definition.name}' needs approval (rerun with --approve)."
        return None
