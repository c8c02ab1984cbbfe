"""HTTP client for the puremark API and the search-UI controller built on it.

The controller owns a SearchSession and performs the side effects of its
dispatches:

  1. open   -> record the click feedback, mirror it locally, navigate
  2. delete -> DELETE on the API, then drop the bookmark locally
  3. edit / arm_delete -> handed back to the caller (dialogs are UI concerns)

Navigation never waits on the click feedback succeeding.
"""
import sys
import webbrowser
from typing import Any, Callable, Dict, List, Optional

import httpx

from puremark.config import get_config
from puremark.navigation import DELETE, EDIT, OPEN, Dispatch, KeyEvent, SearchSession
from puremark.urls import detect_clipboard_link


Navigator = Callable[[str], Any]


class BookmarksClient:
    """Async client for the bookmarks REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Create the client.

        Args:
            base_url: API root (defaults to config)
            timeout: Request timeout in seconds (defaults to config)
            transport: Optional httpx transport, e.g. ASGITransport in tests
        """
        config = get_config().client
        self._http = httpx.AsyncClient(
            base_url=base_url or config.base_url,
            timeout=timeout if timeout is not None else config.timeout,
            transport=transport,
            headers={"User-Agent": "puremark-client/1.0"},
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BookmarksClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._http.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()

    async def list_bookmarks(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/bookmarks")

    async def create_bookmark(self, bookmark: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/api/bookmarks", json=bookmark)

    async def update_bookmark(self, bookmark_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/bookmarks/{bookmark_id}", json=fields)

    async def delete_bookmark(self, bookmark_id: str) -> None:
        await self._request("DELETE", f"/api/bookmarks/{bookmark_id}")

    async def record_open(self, opened_id: str, displayed_ids: List[str]) -> Dict[str, Any]:
        """Send the click feedback for an opened bookmark.

        Args:
            opened_id: Id of the opened bookmark
            displayed_ids: Ids of the result window it was opened from

        Returns:
            The opened bookmark as stored after the update

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx response
        """
        return await self._request(
            "POST",
            f"/api/bookmarks/{opened_id}",
            json={"increment": True, "displayedIds": displayed_ids},
        )

    async def get_settings(self) -> Dict[str, bool]:
        return await self._request("GET", "/api/settings")

    async def update_settings(self, values: Dict[str, Any]) -> Dict[str, bool]:
        return await self._request("PATCH", "/api/settings", json=values)


async def open_bookmark(
    client: BookmarksClient,
    session: SearchSession,
    bookmark: Dict[str, Any],
    displayed_ids: List[str],
    navigate: Optional[Navigator] = None,
) -> bool:
    """Record an open, mirror the click update locally and navigate.

    The local mirror is only applied when the server accepted the update;
    the next full refresh reconciles anything else.

    Args:
        client: API client
        session: Session whose bookmarks get the mirrored update
        bookmark: The bookmark being opened
        displayed_ids: Ids of the result window it was opened from
        navigate: Callable taking the URL (defaults to webbrowser.open)

    Returns:
        True if the click feedback was recorded
    """
    navigate = navigate or webbrowser.open
    recorded = False

    try:
        await client.record_open(bookmark["id"], displayed_ids)
    except (httpx.HTTPError, ValueError) as e:
        # ValueError covers a 2xx body that is not JSON
        print(f"[Client] Failed to increment clicks for {bookmark['id']}: {e}", file=sys.stderr)
    else:
        session.apply_open(bookmark["id"], displayed_ids)
        recorded = True

    navigate(bookmark["url"])
    return recorded


class SearchController:
    """Drives a SearchSession from typed text, key presses and pastes."""

    def __init__(
        self,
        client: BookmarksClient,
        session: Optional[SearchSession] = None,
        navigate: Optional[Navigator] = None,
    ):
        self.client = client
        self.session = session or SearchSession()
        self.navigate = navigate or webbrowser.open
        self.settings: Dict[str, bool] = {"autoDetectClipboardLinks": True}

    async def refresh(self) -> None:
        """Reload bookmarks and settings from the API."""
        self.session.set_bookmarks(await self.client.list_bookmarks())
        try:
            self.settings = await self.client.get_settings()
        except httpx.HTTPError as e:
            print(f"[Client] Failed to fetch settings: {e}", file=sys.stderr)

    def type(self, query: str) -> List[Dict[str, Any]]:
        """Set the query text and return the new result window."""
        self.session.set_query(query)
        return self.session.results

    async def press(self, event: KeyEvent) -> Optional[Dispatch]:
        """Handle a key press and carry out open/delete dispatches.

        Returns:
            The dispatch produced by the session, if any
        """
        dispatch = self.session.handle_key(event)
        if dispatch is None:
            return None

        if dispatch.action == OPEN:
            await open_bookmark(
                self.client,
                self.session,
                dispatch.bookmark,
                dispatch.displayed_ids,
                navigate=self.navigate,
            )
        elif dispatch.action == DELETE:
            try:
                await self.client.delete_bookmark(dispatch.bookmark["id"])
            except httpx.HTTPError as e:
                print(f"[Client] Failed to delete bookmark: {e}", file=sys.stderr)
            else:
                self.session.remove_bookmark(dispatch.bookmark["id"])
        elif dispatch.action == EDIT:
            self.session.open_overlay("edit")

        return dispatch

    def paste(self, text: str) -> Optional[Dict[str, Any]]:
        """Turn a pasted link into a draft bookmark and open the edit overlay.

        Returns:
            The draft, or None when pasting is ignored
        """
        if self.session.suspended:
            return None

        draft = detect_clipboard_link(text, self.settings.get("autoDetectClipboardLinks", True))
        if draft is not None:
            self.session.open_overlay("edit")
        return draft

    async def save(self, bookmark: Dict[str, Any], is_new: bool) -> Optional[Dict[str, Any]]:
        """Create or update a bookmark from the edit overlay.

        Returns:
            The stored bookmark, or None if the API rejected it (the overlay
            stays open so the user can correct the input)
        """
        try:
            if is_new:
                stored = await self.client.create_bookmark(bookmark)
            else:
                fields = {key: bookmark[key] for key in ("title", "url", "tags", "faviconUrl") if key in bookmark}
                stored = await self.client.update_bookmark(bookmark["id"], fields)
        except httpx.HTTPError as e:
            print(f"[Client] Failed to save bookmark: {e}", file=sys.stderr)
            return None

        self.session.upsert_bookmark(stored)
        self.session.close_overlay("edit")
        return stored
