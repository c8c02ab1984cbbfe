"""Search engine module for bookmarks."""
from typing import Any, Dict, List, Protocol


# Maximum number of results shown for a query
RESULT_WINDOW_SIZE = 8

# Queries shorter than this return nothing
MIN_QUERY_LENGTH = 2


class SearchEngine(Protocol):
    """Protocol for search engines to allow extensibility."""

    def search(self, query: str, bookmarks: List[Dict[str, Any]], limit: int = RESULT_WINDOW_SIZE) -> List[Dict[str, Any]]:
        """Search bookmarks based on query.

        Args:
            query: Search query string
            bookmarks: List of bookmarks to search
            limit: Maximum number of results to return

        Returns:
            List of matching bookmarks, sorted by relevance
        """
        ...


def click_rating(clicks: int, max_clicks: int) -> int:
    """Bucket a click count relative to the best match into 0-3.

    Args:
        clicks: Clicks of the bookmark being rated
        max_clicks: Highest click count among the current matches

    Returns:
        3 for the top bookmark, 2 at >= 67% of it, 1 at >= 33%, else 0
    """
    if max_clicks == 0:
        return 0

    ratio = clicks / max_clicks
    if ratio == 1:
        return 3
    if ratio >= 0.67:
        return 2
    if ratio >= 0.33:
        return 1
    return 0


def _clicks(bookmark: Dict[str, Any]) -> int:
    return bookmark.get("clicks") or 0


def matches(query: str, bookmark: Dict[str, Any]) -> bool:
    """Case-insensitive substring match on title, url or any tag."""
    lower_query = query.lower()

    if lower_query in (bookmark.get("title") or "").lower():
        return True
    if lower_query in (bookmark.get("url") or "").lower():
        return True
    return any(lower_query in tag.lower() for tag in bookmark.get("tags") or [])


def rank(query: str, bookmarks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Compute the result window for a query.

    Matches keep the order of ``bookmarks``. When any match has been opened
    before, matches are reordered by click rating; equal ratings keep their
    relative order (``sorted`` is stable and only the rating is the key).

    Args:
        query: Raw query text, not trimmed
        bookmarks: Full bookmark collection

    Returns:
        Up to RESULT_WINDOW_SIZE bookmarks
    """
    if not query or len(query) < MIN_QUERY_LENGTH:
        return []

    filtered = [bookmark for bookmark in bookmarks if matches(query, bookmark)]

    if any(_clicks(bookmark) > 0 for bookmark in filtered):
        max_clicks = max(_clicks(bookmark) for bookmark in filtered)
        filtered = sorted(
            filtered,
            key=lambda bookmark: click_rating(_clicks(bookmark), max_clicks),
            reverse=True,
        )

    return filtered[:RESULT_WINDOW_SIZE]


def displayed_ids(window: List[Dict[str, Any]]) -> List[str]:
    """Ids of the bookmarks in a result window, in display order."""
    return [bookmark["id"] for bookmark in window]


class ClickRankedSearchEngine:
    """Substring search ranked by how often each match gets opened."""

    def search(self, query: str, bookmarks: List[Dict[str, Any]], limit: int = RESULT_WINDOW_SIZE) -> List[Dict[str, Any]]:
        """Search bookmarks using substring matching and click ratings.

        Args:
            query: Search query string
            bookmarks: List of bookmarks to search
            limit: Maximum number of results to return, capped at the window size

        Returns:
            List of matching bookmarks, best rated first
        """
        return rank(query, bookmarks)[:limit]
