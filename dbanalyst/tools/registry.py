"""Process-wide table of registered tools and their policies."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

import yaml

from dbanalyst.tools.base import ToolCategory, ToolDefinition, ToolPolicy

logger = logging.getLogger(__name__)

_POLICY_KEYS = tuple(ToolPolicy.model_fields)


class ToolRegistry:
    _definitions: dict[str, ToolDefinition] = {}
    _handlers: dict[str, Callable[..., Any]] = {}

    @classmethod
    def register(cls, definition: ToolDefinition, handler: Callable[..., Any]) -> None:
        if definition.name in cls._definitions:
            logger.warning(f"Tool '{definition.name}' registered twice; keeping the latest")
        cls._definitions[definition.name] = definition
        cls._handlers[definition.name] = handler
        logger.debug(f"Registered tool: {definition.name}", extra={"category": definition.category})

    @classmethod
    def get_definition(cls, name: str) -> ToolDefinition | None:
        return cls._definitions.get(name)

    @classmethod
    def get_handler(cls, name: str) -> Callable[..., Any] | None:
        return cls._handlers.get(name)

    @classmethod
    def list_definitions(cls, category: ToolCategory | None = None) -> list[ToolDefinition]:
        """Definitions in registration order, optionally filtered by category."""
        return [
            definition
            for definition in cls._definitions.values()
            if category is None or definition.category == category
        ]

    @classmethod
    def load_policy_config(cls, path: str | Path) -> None:
        """
        Merge policy overrides from YAML into the registered definitions.

            tools:
              - name: run_query
                requires_approval: true
                allowed_users: [analyst]

        Keys left out keep their registered value. Entries naming unknown
        tools are skipped; a missing file changes nothing.
        """
        policy_path = Path(path)
        if not policy_path.is_file():
            logger.warning(f"Tool policy file not found: {policy_path}")
            return

        document = yaml.safe_load(policy_path.read_text()) or {}
        for entry in document.get("tools") or []:
            name = entry.get("name")
            definition = cls._definitions.get(name) if name else None
            if definition is None:
                logger.warning(f"Policy entry for unknown tool ignored: {name!r}")
                continue

            overrides = {key: entry[key] for key in _POLICY_KEYS if key in entry}
            policy = ToolPolicy.model_validate(definition.policy.model_dump() | overrides)
            cls._definitions[name] = definition.model_copy(update={"policy": policy})
            logger.info(f"Applied policy overrides to {name}", extra={"overrides": sorted(overrides)})
