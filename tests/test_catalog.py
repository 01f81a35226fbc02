"""Tests for catalog aggregation."""

from switchboard.servers.handle import ConnectionState, ServerConfig, ToolDescriptor, ToolServerHandle
from switchboard.tools.catalog import build_catalog, qualify_name
from switchboard.tools.thinking import SEQUENTIAL_THINKING


def _handle(server_id, tools, state=ConnectionState.CONNECTED, name=""):
    handle = ToolServerHandle(ServerConfig(id=server_id, command="tool", name=name))
    handle.transition(ConnectionState.STARTING)
    descriptors = tuple(
        t if isinstance(t, ToolDescriptor) else ToolDescriptor(name=t) for t in tools
    )
    handle.transition(ConnectionState.CONNECTED, tools=descriptors)
    if state is not ConnectionState.CONNECTED:
        handle.transition(state)
    return handle


class TestBuildCatalog:
    def test_qualified_names(self):
        """Test tools are named server id, separator, tool name."""
        catalog = build_catalog([_handle("calc", ["add", "sub"])])
        assert [t.name for t in catalog] == ["calc:add", "calc:sub"]

    def test_original_names_never_leak(self):
        """Test bare server tool names never appear in the catalog."""
        catalog = build_catalog([_handle("a", ["run"]), _handle("b", ["run"])])
        assert "run" not in [t.name for t in catalog]
        assert [t.tool_name for t in catalog] == ["run", "run"]

    def test_builtins_appended_last(self):
        """Test built-in tools follow server tools."""
        catalog = build_catalog([_handle("calc", ["add"])], builtins=[SEQUENTIAL_THINKING])
        assert [t.name for t in catalog] == ["calc:add", "sequential_thinking"]
        assert catalog[-1].builtin

    def test_only_connected_handles(self):
        """Test only CONNECTED handles contribute tools."""
        handles = [
            _handle("up", ["a"]),
            _handle("down", ["b"], state=ConnectionState.DISCONNECTED),
            _handle("broken", ["c"], state=ConnectionState.ERROR),
        ]
        assert [t.name for t in build_catalog(handles)] == ["up:a"]

    def test_description_names_origin(self):
        """Test descriptions name the server they came from."""
        tool = ToolDescriptor(name="add", description="Add numbers")
        catalog = build_catalog([_handle("calc", [tool], name="Calculator")])
        assert catalog[0].description == "Add numbers (from Calculator server)"

    def test_description_falls_back_to_name(self):
        """Test a missing description falls back to the tool name."""
        catalog = build_catalog([_handle("calc", ["add"])])
        assert catalog[0].description == "add (from calc server)"

    def test_schema_passed_through(self):
        """Test input schemas reach the catalog unchanged."""
        schema = {"type": "object", "properties": {"a": {"type": "number"}}, "required": ["a"]}
        tool = ToolDescriptor(name="sq", input_schema=schema)
        catalog = build_catalog([_handle("m", [tool])])
        assert catalog[0].parameters == schema

    def test_collision_later_server_shadows(self):
        """Test a later server wins a qualified name collision."""
        # "a:b" + "c" and "a" + "b:c" qualify to the same name
        first = _handle("a:b", [ToolDescriptor(name="c", description="first")])
        second = _handle("a", [ToolDescriptor(name="b:c", description="second")])
        catalog = build_catalog([first, second])
        assert len(catalog) == 1
        assert catalog[0].server_id == "a"
        assert catalog[0].description.startswith("second")

    def test_deterministic(self):
        """Test the same handles always build the same catalog."""
        handles = [_handle("x", ["1", "2"]), _handle("y", ["3"])]
        assert build_catalog(handles, [SEQUENTIAL_THINKING]) == build_catalog(handles, [SEQUENTIAL_THINKING])

    def test_separator(self):
        """Test a custom separator is used in names."""
        assert qualify_name("calc", "add", "_") == "calc_add"
        catalog = build_catalog([_handle("calc", ["add"])], separator="__")
        assert catalog[0].name == "calc__add"
