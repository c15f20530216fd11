"""Read-only guard for caller-supplied SQL."""

import re

import sqlparse

from dbanalyst.errors import invalid_input

_SELECT_PREFIX = re.compile(r"select\b", re.IGNORECASE)


def _has_limit(statement: str) -> bool:
    """True when LIMIT appears as a keyword token rather than inside a literal or a quoted name."""
    parsed = sqlparse.parse(statement)
    return any(
        token.is_keyword and token.normalized == "LIMIT"
        for stmt in parsed
        for token in stmt.flatten()
    )


def ensure_read_only(query: str, limit: int) -> str:
    """
    Validate raw SQL and return the text to execute.

    The query must be a single statement starting with SELECT. A trailing
    semicolon is dropped and ``LIMIT <limit>`` is appended when the text has
    no LIMIT of its own.

    Raises:
        AgentError: INVALID_INPUT when the query is rejected
    """
    text = query.strip()
    if not _SELECT_PREFIX.match(text):
        raise invalid_input(
            "Only SELECT queries are allowed for safety reasons.",
            query=text[:100],
        )

    statements = [stmt for stmt in sqlparse.split(text) if stmt.strip().rstrip(";").strip()]
    if len(statements) > 1:
        raise invalid_input(
            "Only a single SELECT statement can be run at a time.",
            statement_count=len(statements),
        )

    text = text.rstrip(";").rstrip()
    if not _has_limit(text):
        text = f"{text} LIMIT {limit}"
    return text
