"""Exceptions raised by the bookmark store and the HTTP layer."""


class BookmarkError(Exception):
    """Base class for bookmark errors."""

    status_code = 500


class ValidationError(BookmarkError):
    """Input was rejected before anything was written."""

    status_code = 400


class BookmarkNotFoundError(BookmarkError):
    """No bookmark with the requested id."""

    status_code = 404

    def __init__(self, bookmark_id: str):
        super().__init__(f"Bookmark not found: {bookmark_id}")
        self.bookmark_id = bookmark_id


class DuplicateBookmarkError(BookmarkError):
    """A bookmark with the same URL already exists."""

    status_code = 409


class StoreError(BookmarkError):
    """The database rejected a write; the transaction was rolled back."""

    status_code = 500
