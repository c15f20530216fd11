"""
Tool Definitions

A tool is an async (or plain) function registered with the @tool decorator.
Its signature is turned into a pydantic arguments model, whose JSON schema
is what agent runtimes see; a pydantic return annotation becomes the
declared result schema. The optional ``ctx`` parameter is injected by the
executor and never appears in the schema.

Usage:
    @tool(name="list_tables", description="...", category=ToolCategory.DATABASE)
    async def list_tables(ctx: ToolContext | None = None) -> ListTablesResult:
        ...
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from enum import StrEnum
from functools import lru_cache
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, Field, create_model

logger = logging.getLogger(__name__)

CONTEXT_PARAMETER = "ctx"

_OPEN_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "additionalProperties": True}


class ToolCategory(StrEnum):
    DATABASE = "database"
    ANALYTICS = "analytics"
    SYSTEM = "system"


class ToolPolicy(BaseModel):
    """Who may run a tool and whether a run must be approved first."""

    enabled: bool = True
    requires_approval: bool = False
    allowed_users: list[str] | None = Field(
        None, description="User ids allowed to run the tool (None allows everyone)"
    )


class ToolDefinition(BaseModel):
    name: str
    description: str
    category: ToolCategory
    policy: ToolPolicy = Field(default_factory=ToolPolicy)
    parameters_schema: dict[str, Any]
    return_schema: dict[str, Any] = Field(default_factory=lambda: dict(_OPEN_OBJECT_SCHEMA))

    @property
    def parameter_names(self) -> set[str]:
        return set(self.parameters_schema.get("properties", {}))


class ToolContext(BaseModel):
    """Per-invocation context: caller identity, approval flag and shared handles."""

    user_id: str
    correlation_id: str
    approved: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    def log_action(self, action: str, details: dict[str, Any]) -> None:
        logger.info(
            f"Tool action: {action}",
            extra={
                "user_id": self.user_id,
                "correlation_id": self.correlation_id,
                "action": action,
                "details": details,
            },
        )


@lru_cache(maxsize=None)
def arguments_model(func: Callable[..., Any]) -> type[BaseModel]:
    """Pydantic model mirroring a tool's parameters (ctx and *args/**kwargs excluded)."""
    hints = get_type_hints(func)
    fields: dict[str, Any] = {}
    for name, param in inspect.signature(func).parameters.items():
        if name == CONTEXT_PARAMETER or param.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        ):
            continue
        annotation = hints.get(name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (annotation, default)

    return create_model(
        f"{func.__name__}_arguments",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


def _schema_without_title(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema.pop("title", None)
    return schema


def parameters_schema(func: Callable[..., Any]) -> dict[str, Any]:
    schema = _schema_without_title(arguments_model(func))
    schema.setdefault("required", [])
    return schema


def return_schema(func: Callable[..., Any]) -> dict[str, Any]:
    returned = get_type_hints(func).get("return")
    if inspect.isclass(returned) and issubclass(returned, BaseModel):
        return _schema_without_title(returned)
    return dict(_OPEN_OBJECT_SCHEMA)


def tool(
    name: str,
    description: str,
    category: ToolCategory,
    requires_approval: bool = False,
    **policy_options: Any,
):
    """Register the decorated function as a tool; the function itself is returned unchanged."""

    def register(func: Callable[..., Any]) -> Callable[..., Any]:
        from dbanalyst.tools.registry import ToolRegistry

        definition = ToolDefinition(
            name=name,
            description=description,
            category=category,
            policy=ToolPolicy(requires_approval=requires_approval, **policy_options),
            parameters_schema=parameters_schema(func),
            return_schema=return_schema(func),
        )
        ToolRegistry.register(definition, func)
        return func

    return register
