"""MCP server exposing bookmark search and the open feedback to agents."""
import json
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from puremark.bookmark_store import BookmarkStore, get_bookmark_store
from puremark.errors import BookmarkError, StoreError
from puremark.search import ClickRankedSearchEngine, SearchEngine, displayed_ids


_search_engine: SearchEngine = ClickRankedSearchEngine()


def _text(payload: Any) -> List[TextContent]:
    if isinstance(payload, str):
        return [TextContent(type="text", text=payload)]
    return [TextContent(type="text", text=json.dumps(payload, indent=2))]


async def list_bookmarks_tool(store: BookmarkStore) -> List[TextContent]:
    bookmarks = await store.list_bookmarks()
    if not bookmarks:
        return _text("No bookmarks saved yet.")
    return _text(bookmarks)


async def search_bookmarks_tool(store: BookmarkStore, query: str) -> List[TextContent]:
    """Tool handler for search_bookmarks.

    Args:
        store: Bookmark store
        query: Search query string (at least 2 characters)

    Returns:
        List of TextContent with the ranked result window and its ids
    """
    results = _search_engine.search(query, await store.list_bookmarks())

    if not results:
        return _text(f"No bookmarks found matching query: {query}")

    return _text({"results": results, "displayedIds": displayed_ids(results)})


async def open_bookmark_tool(store: BookmarkStore, bookmark_id: str, shown: Any) -> List[TextContent]:
    """Tool handler for open_bookmark: records the click feedback."""
    try:
        bookmark = await store.record_open(bookmark_id, shown)
    except StoreError as e:
        print(f"[MCP] open_bookmark failed for {bookmark_id}: {e}", file=sys.stderr)
        return _text(f"Error: {e}")
    except BookmarkError as e:
        return _text(f"Error: {e}")
    return _text(bookmark)


async def get_settings_tool(store: BookmarkStore) -> List[TextContent]:
    return _text(await store.get_settings())


def create_server(store: Optional[BookmarkStore] = None) -> Server:
    """Create and configure the MCP server.

    Args:
        store: Bookmark store; the global store is opened lazily when None

    Returns:
        Configured Server instance
    """
    server = Server("puremark")

    async def resolve_store() -> BookmarkStore:
        return store or await get_bookmark_store()

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="list_bookmarks",
                description="List all saved bookmarks, newest first.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="search_bookmarks",
                description=(
                    "Search bookmarks by title, URL or tag (substring, case-insensitive). "
                    "Frequently opened bookmarks rank first. Returns up to 8 results and their ids."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Search text, at least 2 characters",
                        }
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="open_bookmark",
                description=(
                    "Record that a bookmark was opened from a search result list. "
                    "Raises its rank and lowers the rank of the other results shown."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "Id of the opened bookmark"},
                        "displayed_ids": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Ids of the results shown with it (1-8)",
                        },
                    },
                    "required": ["id", "displayed_ids"],
                },
            ),
            Tool(
                name="get_settings",
                description="Get the app settings.",
                inputSchema={"type": "object", "properties": {}},
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        arguments = arguments or {}

        if name == "list_bookmarks":
            return await list_bookmarks_tool(await resolve_store())
        elif name == "search_bookmarks":
            query = arguments.get("query", "")
            if not query:
                return _text("Error: 'query' parameter is required")
            return await search_bookmarks_tool(await resolve_store(), query)
        elif name == "open_bookmark":
            bookmark_id = arguments.get("id")
            if not bookmark_id:
                return _text("Error: 'id' parameter is required")
            return await open_bookmark_tool(await resolve_store(), bookmark_id, arguments.get("displayed_ids"))
        elif name == "get_settings":
            return await get_settings_tool(await resolve_store())
        else:
            raise ValueError(f"Unknown tool: {name}")

    return server


async def main():
    """Main entry point for the MCP server."""
    server = create_server()

    async with stdio_server() as (read_stream, write_stream):
        initialization_options = server.create_initialization_options()
        await server.run(read_stream, write_stream, initialization_options)
