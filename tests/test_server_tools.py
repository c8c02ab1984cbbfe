"""Tests for MCP server tool registration and handlers."""
import json

import pytest

from puremark.server import create_server, open_bookmark_tool, search_bookmarks_tool


class TestServerTools:
    def test_server_creates(self):
        server = create_server()
        assert server.name == "puremark"

    @pytest.mark.asyncio
    async def test_all_tools_registered(self):
        from mcp.types import ListToolsRequest

        server = create_server()
        result = await server.request_handlers[ListToolsRequest](None)
        tool_names = [t.name for t in result.root.tools]

        assert sorted(tool_names) == ["get_settings", "list_bookmarks", "open_bookmark", "search_bookmarks"]


@pytest.mark.asyncio
class TestToolHandlers:
    async def test_search_returns_window_and_ids(self, store):
        await store.create_bookmark({"id": "a", "title": "Python Docs", "url": "https://docs.python.org"})
        await store.create_bookmark({"id": "b", "title": "PyPI", "url": "https://pypi.org"})

        content = await search_bookmarks_tool(store, "py")
        payload = json.loads(content[0].text)

        assert payload["displayedIds"] == ["b", "a"]
        assert [r["title"] for r in payload["results"]] == ["PyPI", "Python Docs"]

    async def test_search_no_match(self, store):
        content = await search_bookmarks_tool(store, "zz")
        assert "No bookmarks found" in content[0].text

    async def test_open_records_feedback(self, store):
        await store.create_bookmark({"id": "a", "title": "A", "url": "https://a.com"})
        content = await open_bookmark_tool(store, "a", ["a"])
        assert json.loads(content[0].text)["clicks"] == 1

    async def test_open_rejects_bad_ids(self, store):
        await store.create_bookmark({"id": "a", "title": "A", "url": "https://a.com"})
        content = await open_bookmark_tool(store, "a", [])
        assert content[0].text == "Error: Invalid displayed IDs"

    async def test_open_store_failure_logged(self, store, capsys):
        await store.create_bookmark({"id": "a", "title": "A", "url": "https://a.com"})
        await store._connection.execute(
            "CREATE TRIGGER fail_a BEFORE UPDATE OF clicks ON bookmarks "
            "BEGIN SELECT RAISE(ABORT, 'disk full'); END"
        )

        content = await open_bookmark_tool(store, "a", ["a"])

        assert content[0].text.startswith("Error: Failed to")
        assert "[MCP] open_bookmark failed for a" in capsys.readouterr().err
