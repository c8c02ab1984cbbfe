"""Keyboard selection over a search result window.

``move_selection`` is the pure cursor transition. ``SearchSession`` holds the
state a search UI needs (query, bookmarks, result window, cursor, pending
delete, open overlays) and turns key presses into ``Dispatch`` values; it
never performs I/O itself.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from puremark.search import displayed_ids, rank


OPEN = "open"
EDIT = "edit"
ARM_DELETE = "arm_delete"
DELETE = "delete"


@dataclass(frozen=True)
class KeyEvent:
    """A key press, named like DOM ``KeyboardEvent.key`` values."""
    key: str
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False


@dataclass
class Dispatch:
    """An action to carry out on the highlighted bookmark."""
    action: str
    bookmark: Dict[str, Any]
    displayed_ids: List[str] = field(default_factory=list)


def move_selection(index: int, key: str, window_length: int) -> int:
    """Move the cursor for an arrow key, wrapping at both ends.

    Args:
        index: Current selection index
        key: "ArrowDown" or "ArrowUp"; other keys leave the index unchanged
        window_length: Number of results shown

    Returns:
        New selection index (0 for an empty window)
    """
    if window_length <= 0:
        return 0
    if key == "ArrowDown":
        return (index + 1) % window_length
    if key == "ArrowUp":
        return (index - 1 + window_length) % window_length
    return index


def apply_open_delta(
    bookmarks: List[Dict[str, Any]],
    opened_id: str,
    displayed: List[str],
) -> List[Dict[str, Any]]:
    """Mirror the server-side click update on in-memory bookmarks.

    Args:
        bookmarks: Current bookmarks (not modified)
        opened_id: Id of the opened bookmark
        displayed: Ids that were shown alongside it

    Returns:
        New list where the opened bookmark has one more click and the other
        displayed bookmarks one less, floored at zero
    """
    shown = set(displayed)
    updated = []

    for bookmark in bookmarks:
        clicks = bookmark.get("clicks") or 0
        if bookmark["id"] == opened_id:
            bookmark = {**bookmark, "clicks": clicks + 1}
        elif bookmark["id"] in shown:
            bookmark = {**bookmark, "clicks": max(0, clicks - 1)}
        updated.append(bookmark)

    return updated


def _is_edit_shortcut(event: KeyEvent) -> bool:
    return (event.ctrl or event.meta) and event.key.lower() == "e"


def _is_delete_shortcut(event: KeyEvent) -> bool:
    return event.shift and event.key in ("Delete", "Backspace")


class SearchSession:
    """Search state for one UI: query, result window and keyboard cursor."""

    def __init__(self, bookmarks: Optional[List[Dict[str, Any]]] = None, query: str = ""):
        self._bookmarks: List[Dict[str, Any]] = list(bookmarks or [])
        self._query = query
        self._overlays: Set[str] = set()
        self.results: List[Dict[str, Any]] = []
        self.selected_index = 0
        self.pending_delete_id: Optional[str] = None
        self._recompute()

    @property
    def query(self) -> str:
        return self._query

    @property
    def bookmarks(self) -> List[Dict[str, Any]]:
        return self._bookmarks

    @property
    def displayed_ids(self) -> List[str]:
        return displayed_ids(self.results)

    @property
    def selected(self) -> Optional[Dict[str, Any]]:
        """The highlighted bookmark, or None for an empty window."""
        if not self.results:
            return None
        return self.results[self.selected_index]

    @property
    def suspended(self) -> bool:
        """True while an overlay (edit, settings, manager) has focus."""
        return bool(self._overlays)

    def _recompute(self) -> None:
        # The cursor and the delete marker belong to the old window
        self.results = rank(self._query, self._bookmarks)
        self.selected_index = 0
        self.pending_delete_id = None

    def set_query(self, query: str) -> None:
        self._query = query
        self._recompute()

    def set_bookmarks(self, bookmarks: List[Dict[str, Any]]) -> None:
        self._bookmarks = list(bookmarks)
        self._recompute()

    def apply_open(self, opened_id: str, displayed: List[str]) -> None:
        """Apply the optimistic click mirror after a successful open."""
        self.set_bookmarks(apply_open_delta(self._bookmarks, opened_id, displayed))

    def remove_bookmark(self, bookmark_id: str) -> None:
        self.set_bookmarks([b for b in self._bookmarks if b["id"] != bookmark_id])

    def upsert_bookmark(self, bookmark: Dict[str, Any]) -> None:
        """Replace a bookmark by id, or put a new one first."""
        if any(b["id"] == bookmark["id"] for b in self._bookmarks):
            self.set_bookmarks([bookmark if b["id"] == bookmark["id"] else b for b in self._bookmarks])
        else:
            self.set_bookmarks([bookmark] + self._bookmarks)

    def open_overlay(self, name: str) -> None:
        self._overlays.add(name)

    def close_overlay(self, name: str) -> None:
        self._overlays.discard(name)

    def handle_key(self, event: KeyEvent) -> Optional[Dispatch]:
        """Process one key press.

        Args:
            event: The key press

        Returns:
            A Dispatch for the caller to carry out, or None
        """
        if self.suspended:
            return None

        if event.key == "Escape":
            if self.pending_delete_id is not None:
                self.pending_delete_id = None
            else:
                self.set_query("")
            return None

        if not self.results:
            return None

        if event.key in ("ArrowDown", "ArrowUp"):
            self.selected_index = move_selection(self.selected_index, event.key, len(self.results))
            self.pending_delete_id = None
            return None

        selected = self.results[self.selected_index]

        if event.key == "Enter":
            return Dispatch(OPEN, selected, self.displayed_ids)

        if _is_edit_shortcut(event):
            self.pending_delete_id = None
            return Dispatch(EDIT, selected, self.displayed_ids)

        if _is_delete_shortcut(event):
            if self.pending_delete_id == selected["id"]:
                self.pending_delete_id = None
                return Dispatch(DELETE, selected, self.displayed_ids)
            self.pending_delete_id = selected["id"]
            return Dispatch(ARM_DELETE, selected, self.displayed_ids)

        return None
