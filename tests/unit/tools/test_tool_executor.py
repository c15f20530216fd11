import pytest

from dbanalyst.tools import initialize_tools
from dbanalyst.tools.base import ToolCategory, ToolContext, tool
from dbanalyst.tools.executor import ToolExecutionError, ToolExecutor
from dbanalyst.tools.policy import ToolPolicyError
from dbanalyst.tools.registry import ToolRegistry

initialize_tools()


@tool(
    name="test_requires_approval",
    description="Test tool requiring approval",
    category=ToolCategory.SYSTEM,
    requires_approval=True,
)
def _test_tool(value: str, ctx: ToolContext | None = None):
    return {"value": value}


@tool(
    name="test_restricted_users",
    description="Test tool limited to one user",
    category=ToolCategory.SYSTEM,
    allowed_users=["ops"],
)
async def _restricted_tool():
    return {"ok": True}


@tool(
    name="test_typed_schema",
    description="Tool with typed arguments",
    category=ToolCategory.SYSTEM,
)
def _typed_schema_tool(
    limit: int = 5,
    include_stats: bool = False,
    threshold: float = 0.25,
    tags: list[str] | None = None,
    options: dict[str, int] | None = None,
    ctx: ToolContext | None = None,
):
    return {
        "limit": limit,
        "include_stats": include_stats,
        "threshold": threshold,
        "tags": tags or [],
        "options": options or {},
    }


@tool(
    name="test_raises",
    description="Tool whose handler fails",
    category=ToolCategory.SYSTEM,
)
def _raising_tool():
    raise RuntimeError("handler exploded")


@pytest.fixture
def restore_definitions(monkeypatch):
    monkeypatch.setattr(ToolRegistry, "_definitions", dict(ToolRegistry._definitions))


@pytest.mark.asyncio
async def test_tool_executor_blocks_without_approval():
    executor = ToolExecutor()
    ctx = ToolContext(user_id="tester", correlation_id="test-1", approved=False)
    with pytest.raises(ToolPolicyError) as exc_info:
        await executor.execute("test_requires_approval", {"value": "hi"}, ctx)

    assert exc_info.value.tool_name == "test_requires_approval"
    assert "approval" in exc_info.value.reason


@pytest.mark.asyncio
async def test_tool_executor_runs_with_approval():
    executor = ToolExecutor()
    ctx = ToolContext(user_id="tester", correlation_id="test-2", approved=True)
    result = await executor.execute("test_requires_approval", {"value": "hi"}, ctx)
    assert result["success"] is True
    assert result["result"]["value"] == "hi"


@pytest.mark.asyncio
async def test_tool_executor_enforces_allowed_users():
    executor = ToolExecutor()
    with pytest.raises(ToolPolicyError, match="not allowed"):
        await executor.execute(
            "test_restricted_users", {}, ToolContext(user_id="tester", correlation_id="t")
        )

    result = await executor.execute(
        "test_restricted_users", {}, ToolContext(user_id="ops", correlation_id="t")
    )
    assert result["result"] == {"ok": True}


@pytest.mark.asyncio
async def test_tool_executor_rejects_unknown_tool():
    with pytest.raises(ToolExecutionError, match="Unknown tool"):
        await ToolExecutor().execute(
            "does_not_exist", {}, ToolContext(user_id="tester", correlation_id="t")
        )


@pytest.mark.asyncio
async def test_tool_executor_rejects_unexpected_arguments():
    with pytest.raises(ToolExecutionError, match="colour"):
        await ToolExecutor().execute(
            "test_typed_schema",
            {"limit": 3, "colour": "red"},
            ToolContext(user_id="tester", correlation_id="t"),
        )


@pytest.mark.asyncio
async def test_tool_executor_wraps_handler_errors():
    with pytest.raises(ToolExecutionError, match="handler exploded"):
        await ToolExecutor().execute(
            "test_raises", {}, ToolContext(user_id="tester", correlation_id="t")
        )


@pytest.mark.asyncio
async def test_tool_executor_dumps_result_models(runtime):
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcome = await ToolExecutor().execute("list_tables", {}, ctx)

    assert outcome["tool"] == "list_tables"
    assert outcome["success"] is True
    assert outcome["result"]["tables"] == [
        {"schema_name": "public", "table_name": "projects"},
        {"schema_name": "public", "table_name": "installs"},
    ]


@pytest.mark.asyncio
async def test_tool_executor_reports_tool_failures(runtime):
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcome = await ToolExecutor().execute("run_query", {"query": "DROP TABLE projects"}, ctx)

    assert outcome["success"] is False
    assert outcome["result"]["error_code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_tool_executor_runs_plan(runtime):
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcomes = await ToolExecutor().execute_plan(
        [
            {"name": "list_tables"},
            {"arguments": {"ignored": True}},
            {"name": "get_table_schema", "arguments": {"table_name": "projects"}},
        ],
        ctx,
    )

    assert [outcome["tool"] for outcome in outcomes] == ["list_tables", "get_table_schema"]


@pytest.mark.asyncio
async def test_tool_executor_coerces_arguments_to_declared_types(runtime, catalog_connector):
    catalog_connector.respond("AS entity", [{"entity": 7, "value": 4}])
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcome = await ToolExecutor().execute(
        "rank_entities",
        {"table": "installs", "metric": "count", "rank_by": "technician_id", "limit": "5"},
        ctx,
    )

    assert outcome["success"] is True
    assert catalog_connector.queries[-1].endswith("LIMIT 5")


@pytest.mark.asyncio
async def test_tool_executor_reports_missing_required_argument(runtime, catalog_connector):
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcome = await ToolExecutor().execute("calculate_metrics", {"metric": "count"}, ctx)

    assert outcome["success"] is False
    assert outcome["result"]["error_code"] == "MISSING_PARAMETER"
    assert outcome["result"]["message"] == "Missing required parameter 'table'."
    assert catalog_connector.calls == []


@pytest.mark.asyncio
async def test_tool_executor_reports_mistyped_argument(runtime):
    ctx = ToolContext(user_id="tester", correlation_id="t", metadata={"runtime": runtime})

    outcome = await ToolExecutor().execute(
        "rank_entities",
        {"table": "installs", "metric": "count", "rank_by": "technician_id", "limit": "five"},
        ctx,
    )

    assert outcome["result"]["success"] is False
    assert outcome["result"]["error_code"] == "INVALID_INPUT"
    assert outcome["result"]["message"].startswith("Invalid value for 'limit'")


def test_parameter_schema_follows_signature_types():
    definition = ToolRegistry.get_definition("test_typed_schema")
    assert definition is not None
    schema = definition.parameters_schema
    props = schema["properties"]

    assert (props["limit"]["type"], props["limit"]["default"]) == ("integer", 5)
    assert props["include_stats"]["type"] == "boolean"
    assert props["threshold"]["type"] == "number"
    assert {"type": "array", "items": {"type": "string"}} in props["tags"]["anyOf"]
    assert {"type": "null"} in props["options"]["anyOf"]
    assert schema["required"] == []
    assert schema["additionalProperties"] is False
    assert definition.parameter_names == {"limit", "include_stats", "threshold", "tags", "options"}


def test_analytics_tool_schema():
    definition = ToolRegistry.get_definition("calculate_metrics")
    assert definition is not None
    assert definition.category == ToolCategory.ANALYTICS

    schema = definition.parameters_schema
    assert schema["required"] == ["table", "metric"]
    assert schema["properties"]["metric"]["$ref"] == "#/$defs/Metric"
    assert schema["$defs"]["Metric"]["enum"] == ["count", "sum", "avg", "min", "max", "distinct"]
    assert schema["properties"]["order_direction"]["anyOf"][0]["enum"] == ["asc", "desc"]
    assert "ctx" not in schema["properties"]
    assert "summary" in definition.return_schema["properties"]


def test_builtin_tools_registered():
    names = {definition.name for definition in ToolRegistry.list_definitions()}
    assert {
        "list_tables",
        "get_table_schema",
        "run_query",
        "get_table_stats",
        "get_database_overview",
        "calculate_metrics",
        "compare_data",
        "rank_entities",
    } <= names

    analytics = ToolRegistry.list_definitions(ToolCategory.ANALYTICS)
    assert {d.name for d in analytics} == {"calculate_metrics", "compare_data", "rank_entities"}


def test_policy_file_overrides_definitions(tmp_path, restore_definitions):
    policy_file = tmp_path / "tools.yaml"
    policy_file.write_text(
        "tools:\n"
        "  - name: run_query\n"
        "    requires_approval: true\n"
        "    allowed_users: [analyst]\n"
        "  - name: rank_entities\n"
        "    enabled: false\n"
        "  - name: not_a_tool\n"
        "    enabled: false\n"
    )

    ToolRegistry.load_policy_config(policy_file)

    run_query = ToolRegistry.get_definition("run_query").policy
    assert run_query.requires_approval is True
    assert run_query.allowed_users == ["analyst"]
    assert run_query.enabled is True
    assert ToolRegistry.get_definition("rank_entities").policy.enabled is False
    assert ToolRegistry.get_definition("not_a_tool") is None


def test_missing_policy_file_is_ignored(tmp_path, restore_definitions):
    before = ToolRegistry.get_definition("run_query")

    ToolRegistry.load_policy_config(tmp_path / "absent.yaml")

    assert ToolRegistry.get_definition("run_query") == before
