"""Tests for the URI-addressed mutation tools."""

import pytest

from resource_graph_api.tools import TOOLS, call_tool, list_tools


def test_list_tools():
    tools = list_tools()
    assert [tool["name"] for tool in tools] == ["set", "make", "move", "delete"]
    for tool in tools:
        assert tool["inputSchema"]["type"] == "object"
        assert tool["inputSchema"]["required"]


def test_unknown_tool_raises(registry):
    with pytest.raises(KeyError):
        call_tool("rename", {}, registry)


class TestSetTool:
    def test_set(self, registry, data):
        result = call_tool("set", {"uri": "notes://settings/theme", "value": "light"}, registry)
        assert result.ok
        assert result.value == {"uri": "notes://settings/theme", "value": "light"}
        assert data["theme"] == "light"

    def test_missing_arguments(self, registry):
        result = call_tool("set", {"uri": "notes://settings/theme"}, registry)
        assert result.error == "Missing required argument(s): value"

    def test_unsupported_target(self, registry):
        result = call_tool("set", {"uri": "notes://name", "value": "x"}, registry)
        assert result.error == "'notes://name' does not support set"

    def test_unresolvable_uri(self, registry):
        result = call_tool("set", {"uri": "notes://nope", "value": "x"}, registry)
        assert result.error.startswith("Unknown segment 'nope'")


class TestMakeTool:
    def test_make(self, registry, data):
        result = call_tool(
            "make",
            {"collection": "notes://folders/Work/notes", "properties": {"title": "Plan"}},
            registry,
        )
        assert result.value == {"uri": "notes://folders/Work/notes/1000"}
        assert data["folders"][1]["notes"][-1] == {"title": "Plan", "id": 1000}

    def test_repeated_make_generates_distinct_ids(self, registry):
        first = call_tool("make", {"collection": "notes://folders/Work/notes"}, registry)
        second = call_tool("make", {"collection": "notes://folders/Work/notes"}, registry)
        assert first.value["uri"] != second.value["uri"]

    def test_make_on_non_creatable_collection(self, registry):
        result = call_tool("make", {"collection": "notes://items"}, registry)
        assert result.error == "'notes://items' does not support create"


class TestMoveTool:
    def test_move(self, registry, data):
        result = call_tool(
            "move",
            {"item": "notes://folders/Inbox/notes/11", "destination": "notes://folders/Work/notes"},
            registry,
        )
        assert result.value == {
            "from": "notes://folders/Inbox/notes/11",
            "uri": "notes://folders/Work/notes/11",
        }
        assert [n["id"] for n in data["folders"][0]["notes"]] == [10]

    def test_bad_destination(self, registry):
        result = call_tool(
            "move",
            {"item": "notes://folders/Inbox/notes/11", "destination": "notes://nowhere"},
            registry,
        )
        assert result.error.startswith("Unknown segment 'nowhere'")

    def test_destination_not_a_collection(self, registry):
        result = call_tool(
            "move",
            {"item": "notes://folders/Inbox/notes/11", "destination": "notes://name"},
            registry,
        )
        assert result.error == "Destination is not a collection"


class TestDeleteTool:
    def test_delete(self, registry, data):
        result = call_tool("delete", {"item": "notes://folders/Inbox/notes/10"}, registry)
        assert result.value == {"deleted": "notes://folders/Inbox/notes/10"}
        assert len(data["folders"][0]["notes"]) == 1

    def test_delete_unsupported(self, registry):
        result = call_tool("delete", {"item": "notes://folders/Inbox"}, registry)
        assert result.error == "'notes://folders/Inbox' does not support delete"

    def test_tools_table_matches_handlers(self):
        assert set(TOOLS) == {"set", "make", "move", "delete"}
