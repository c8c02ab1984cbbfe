"""SQLite store for bookmarks, tags and settings."""
import asyncio
import sqlite3
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import aiosqlite

from puremark.config import DEFAULT_DB_PATH, get_config
from puremark.errors import (
    BookmarkNotFoundError,
    DuplicateBookmarkError,
    StoreError,
    ValidationError,
)
from puremark.search import RESULT_WINDOW_SIZE
from puremark.urls import is_valid_image_url, is_valid_tag, is_valid_url, normalize_url


SQLITE_HEADER = b"SQLite format 3\x00"

REQUIRED_TABLES = {"bookmarks", "tags", "settings"}

DEFAULT_SETTINGS = {"autoDetectClipboardLinks": "true"}

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS bookmarks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        url TEXT NOT NULL,
        faviconUrl TEXT,
        clicks INTEGER DEFAULT 0,
        createdAt INTEGER NOT NULL,
        updatedAt INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_bookmarks_title ON bookmarks(title COLLATE NOCASE);
    CREATE INDEX IF NOT EXISTS idx_bookmarks_url ON bookmarks(url COLLATE NOCASE);

    CREATE TABLE IF NOT EXISTS tags (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        bookmark_id TEXT NOT NULL,
        tag_name TEXT NOT NULL,
        FOREIGN KEY (bookmark_id) REFERENCES bookmarks(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_tags_bookmark_id ON tags(bookmark_id);
    CREATE INDEX IF NOT EXISTS idx_tags_tag_name ON tags(tag_name COLLATE NOCASE);

    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
"""

# Tags are flattened with GROUP_CONCAT and split again in _row_to_dict
_SELECT_BOOKMARKS = """
    SELECT b.*, GROUP_CONCAT(t.tag_name, ',') AS tags
    FROM bookmarks b
    LEFT JOIN tags t ON b.id = t.bookmark_id
"""

# Starter set used when DB_PREFILL=true and the database is empty
PREFILL_SITES = [
    ("Google", "https://google.com"),
    ("Youtube", "https://youtube.com"),
    ("Facebook", "https://facebook.com"),
    ("Instagram", "https://instagram.com"),
    ("Chatgpt", "https://chatgpt.com"),
    ("X", "https://x.com"),
    ("Reddit", "https://reddit.com"),
    ("Whatsapp", "https://whatsapp.com"),
    ("Wikipedia", "https://wikipedia.org"),
    ("Bing", "https://bing.com"),
    ("Yahoo", "https://yahoo.com"),
    ("Tiktok", "https://tiktok.com"),
    ("Amazon", "https://amazon.com"),
    ("Baidu", "https://baidu.com"),
    ("Linkedin", "https://linkedin.com"),
    ("Office", "https://office.com"),
    ("Netflix", "https://netflix.com"),
    ("Pinterest", "https://pinterest.com"),
    ("Microsoft", "https://microsoft.com"),
    ("Gemini Google", "https://gemini.google.com"),
    ("Twitch", "https://twitch.tv"),
    ("Canva", "https://canva.com"),
    ("Weather", "https://weather.com"),
    ("Duckduckgo", "https://duckduckgo.com"),
    ("Zoom", "https://zoom.us"),
    ("Nytimes", "https://nytimes.com"),
    ("Ebay", "https://ebay.com"),
    ("Discord", "https://discord.com"),
    ("Bbc", "https://bbc.com"),
    ("Spotify", "https://spotify.com"),
    ("Apple", "https://apple.com"),
    ("Booking", "https://booking.com"),
    ("Github", "https://github.com"),
    ("Paypal", "https://paypal.com"),
    ("Imdb", "https://imdb.com"),
    ("Telegram", "https://telegram.org"),
    ("Etsy", "https://etsy.com"),
    ("Quora", "https://quora.com"),
    ("Openai", "https://openai.com"),
    ("Music Youtube", "https://music.youtube"),
    ("Adobe", "https://adobe.com"),
]


def _now_ms() -> int:
    return int(time.time() * 1000)


def validate_displayed_ids(displayed_ids: Any) -> List[str]:
    """Check the ids that were on screen when a bookmark was opened.

    Args:
        displayed_ids: Value received from the caller

    Returns:
        The ids as a list

    Raises:
        ValidationError: If not a list of 1..RESULT_WINDOW_SIZE strings
    """
    if not isinstance(displayed_ids, list):
        raise ValidationError("Invalid displayed IDs")
    if not 0 < len(displayed_ids) <= RESULT_WINDOW_SIZE:
        raise ValidationError("Invalid displayed IDs")
    if not all(isinstance(item, str) for item in displayed_ids):
        raise ValidationError("Invalid displayed IDs")
    return list(displayed_ids)


def _validate_tags(tags: Any) -> List[str]:
    if tags is None:
        return []
    if not isinstance(tags, list):
        raise ValidationError("Tags must be a list")
    for tag in tags:
        if not is_valid_tag(tag):
            raise ValidationError(
                "Tags can only contain letters, numbers, hyphens and underscores"
            )
    return [tag.strip() for tag in tags]


def _validate_favicon(favicon_url: Any) -> Optional[str]:
    if favicon_url is None:
        return None
    if not isinstance(favicon_url, str) or not is_valid_image_url(favicon_url):
        raise ValidationError("Favicon must be a valid image URL")
    return favicon_url.strip() or None


def _validate_url(url: Any) -> str:
    if not isinstance(url, str):
        raise ValidationError("Invalid URL")
    normalized = normalize_url(url)
    if not is_valid_url(normalized):
        raise ValidationError("Invalid URL")
    return normalized


def _validate_title(title: Any) -> str:
    if not isinstance(title, str):
        raise ValidationError("Title is required")
    return title


def _remove_database_files(path: Path, main: bool = True) -> None:
    for suffix in ("-wal", "-shm"):
        Path(f"{path}{suffix}").unlink(missing_ok=True)
    if main:
        path.unlink(missing_ok=True)


async def _check_upload(path: Path) -> None:
    """Make sure an uploaded file is an intact database with our tables."""
    try:
        async with aiosqlite.connect(path) as conn:
            cursor = await conn.execute("PRAGMA quick_check")
            row = await cursor.fetchone()
            if row is None or row[0] != "ok":
                raise ValidationError("Uploaded database is corrupt")

            cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
            tables = {name for (name,) in await cursor.fetchall()}
    except sqlite3.Error as e:
        print(f"[Store] Rejected uploaded database: {e}", file=sys.stderr)
        raise ValidationError("Uploaded file is not a readable SQLite database") from e

    missing = sorted(REQUIRED_TABLES - tables)
    if missing:
        raise ValidationError(f"Uploaded database is missing tables: {', '.join(missing)}")


def _setting_to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class BookmarkStore:
    """Async SQLite store for bookmarks and app settings.

    All statements run on one connection; ``_lock`` keeps each operation
    (and each transaction) from interleaving with another coroutine's.
    """

    def __init__(self, db_path: Optional[Path] = None, prefill: bool = False):
        """Initialize the bookmark store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.puremark/db.sqlite
            prefill: Seed a starter set of bookmarks into an empty database
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self.prefill = prefill
        self._connection: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize the database, creating tables if needed."""
        async with self._lock:
            await self._open()

    async def _open(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode; transactions are opened explicitly in _transaction()
        self._connection = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("PRAGMA journal_mode = WAL")
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._connection.executescript(_SCHEMA)

        cursor = await self._connection.execute("SELECT COUNT(*) AS count FROM settings")
        row = await cursor.fetchone()
        if row["count"] == 0:
            for key, value in DEFAULT_SETTINGS.items():
                await self._connection.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?)", (key, value)
                )

        if self.prefill:
            cursor = await self._connection.execute("SELECT COUNT(*) AS count FROM bookmarks")
            row = await cursor.fetchone()
            if row["count"] == 0:
                await self._insert_prefill()

        print(f"[Store] Database ready at {self.db_path}", file=sys.stderr)

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[aiosqlite.Connection]:
        """Run a block inside BEGIN IMMEDIATE ... COMMIT.

        Any exception rolls the whole block back. sqlite failures surface as
        StoreError; domain errors raised inside the block pass through.
        """
        conn = self._require_connection()
        try:
            await conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            print(f"[Store] Could not {operation}: {e}", file=sys.stderr)
            raise StoreError(f"Failed to {operation}") from e

        try:
            yield conn
            await conn.execute("COMMIT")
        except sqlite3.Error as e:
            await conn.execute("ROLLBACK")
            print(f"[Store] {operation} rolled back: {e}", file=sys.stderr)
            raise StoreError(f"Failed to {operation}") from e
        except BaseException:
            await conn.execute("ROLLBACK")
            raise

    async def _insert_prefill(self) -> None:
        conn = self._require_connection()
        now = _now_ms()

        print("[Store] Pre-filling database with initial bookmarks...", file=sys.stderr)
        await conn.execute("BEGIN")
        for title, url in PREFILL_SITES:
            bookmark_id = str(uuid.uuid4())
            await conn.execute(
                "INSERT INTO bookmarks (id, title, url, faviconUrl, clicks, createdAt, updatedAt) "
                "VALUES (?, ?, ?, NULL, 0, ?, ?)",
                (bookmark_id, title, url, now, now),
            )
            await conn.execute(
                "INSERT INTO tags (bookmark_id, tag_name) VALUES (?, ?)",
                (bookmark_id, url.split("://", 1)[1]),
            )
        await conn.execute("COMMIT")
        print(f"[Store] Database pre-filled with {len(PREFILL_SITES)} bookmarks", file=sys.stderr)

    async def _fetch_bookmark(self, conn: aiosqlite.Connection, bookmark_id: str) -> Optional[Dict[str, Any]]:
        cursor = await conn.execute(
            f"{_SELECT_BOOKMARKS} WHERE b.id = ? GROUP BY b.id",
            (bookmark_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    async def _url_taken(self, conn: aiosqlite.Connection, url: str, exclude_id: Optional[str] = None) -> bool:
        cursor = await conn.execute(
            "SELECT id FROM bookmarks WHERE url = ? COLLATE NOCASE AND id != ?",
            (url, exclude_id or ""),
        )
        return await cursor.fetchone() is not None

    async def _replace_tags(self, conn: aiosqlite.Connection, bookmark_id: str, tags: List[str]) -> None:
        await conn.execute("DELETE FROM tags WHERE bookmark_id = ?", (bookmark_id,))
        await conn.executemany(
            "INSERT INTO tags (bookmark_id, tag_name) VALUES (?, ?)",
            [(bookmark_id, tag) for tag in tags],
        )

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    async def list_bookmarks(self) -> List[Dict[str, Any]]:
        """Get all bookmarks, newest first.

        Returns:
            List of bookmark dicts with ``tags`` as a list
        """
        async with self._lock:
            conn = self._require_connection()
            cursor = await conn.execute(
                f"{_SELECT_BOOKMARKS} GROUP BY b.id ORDER BY b.createdAt DESC, b.rowid DESC"
            )
            rows = await cursor.fetchall()

        return [self._row_to_dict(row) for row in rows]

    async def get_bookmark(self, bookmark_id: str) -> Optional[Dict[str, Any]]:
        """Get a single bookmark.

        Args:
            bookmark_id: The bookmark id

        Returns:
            Bookmark dict or None if not found
        """
        async with self._lock:
            return await self._fetch_bookmark(self._require_connection(), bookmark_id)

    async def count_bookmarks(self) -> int:
        async with self._lock:
            cursor = await self._require_connection().execute(
                "SELECT COUNT(*) AS count FROM bookmarks"
            )
            row = await cursor.fetchone()
        return row["count"]

    async def create_bookmark(self, bookmark: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new bookmark with zero clicks.

        Args:
            bookmark: Dict with ``title``, ``url`` and optional ``id``,
                ``tags`` and ``faviconUrl``

        Returns:
            The stored bookmark

        Raises:
            ValidationError: If the url, favicon or a tag is invalid
            DuplicateBookmarkError: If the url (case-insensitive) or id exists
        """
        title = _validate_title(bookmark.get("title"))
        url = _validate_url(bookmark.get("url"))
        favicon_url = _validate_favicon(bookmark.get("faviconUrl"))
        tags = _validate_tags(bookmark.get("tags"))
        bookmark_id = bookmark.get("id") or str(uuid.uuid4())
        if not isinstance(bookmark_id, str):
            raise ValidationError("Bookmark id must be a string")

        now = _now_ms()

        async with self._lock:
            async with self._transaction("create bookmark") as conn:
                if await self._url_taken(conn, url):
                    raise DuplicateBookmarkError("Bookmark with this URL already exists")
                if await self._fetch_bookmark(conn, bookmark_id) is not None:
                    raise DuplicateBookmarkError("Bookmark with this id already exists")

                await conn.execute(
                    "INSERT INTO bookmarks (id, title, url, faviconUrl, clicks, createdAt, updatedAt) "
                    "VALUES (?, ?, ?, ?, 0, ?, ?)",
                    (bookmark_id, title, url, favicon_url, now, now),
                )
                await self._replace_tags(conn, bookmark_id, tags)
                return await self._fetch_bookmark(conn, bookmark_id)

    async def update_bookmark(self, bookmark_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Update the editable fields of a bookmark.

        Only keys present in ``fields`` change. ``tags`` replaces the whole
        list. ``clicks`` is never touched here.

        Args:
            bookmark_id: The bookmark id
            fields: Any of ``title``, ``url``, ``tags``, ``faviconUrl``

        Returns:
            The updated bookmark

        Raises:
            ValidationError: If a field is invalid
            BookmarkNotFoundError: If no bookmark has this id
            DuplicateBookmarkError: If the new url belongs to another bookmark
        """
        updates: Dict[str, Any] = {}
        if "title" in fields:
            updates["title"] = _validate_title(fields["title"])
        if "url" in fields:
            updates["url"] = _validate_url(fields["url"])
        if "faviconUrl" in fields:
            updates["faviconUrl"] = _validate_favicon(fields["faviconUrl"])
        tags = _validate_tags(fields["tags"]) if "tags" in fields else None
        updates["updatedAt"] = _now_ms()

        async with self._lock:
            async with self._transaction("update bookmark") as conn:
                if await self._fetch_bookmark(conn, bookmark_id) is None:
                    raise BookmarkNotFoundError(bookmark_id)
                if "url" in updates and await self._url_taken(conn, updates["url"], bookmark_id):
                    raise DuplicateBookmarkError("Bookmark with this URL already exists")

                assignments = ", ".join(f"{column} = ?" for column in updates)
                await conn.execute(
                    f"UPDATE bookmarks SET {assignments} WHERE id = ?",
                    (*updates.values(), bookmark_id),
                )
                if tags is not None:
                    await self._replace_tags(conn, bookmark_id, tags)
                return await self._fetch_bookmark(conn, bookmark_id)

    async def delete_bookmark(self, bookmark_id: str) -> bool:
        """Delete a bookmark and its tags.

        Args:
            bookmark_id: The bookmark id

        Returns:
            True if deleted, False if not found
        """
        async with self._lock:
            async with self._transaction("delete bookmark") as conn:
                cursor = await conn.execute("DELETE FROM bookmarks WHERE id = ?", (bookmark_id,))
                return cursor.rowcount > 0

    async def record_open(self, opened_id: str, displayed_ids: Any) -> Dict[str, Any]:
        """Apply the click feedback for opening a bookmark from a result window.

        The opened bookmark gains one click; every other displayed bookmark
        loses one, never going below zero. Both updates and the read-back
        happen in one transaction.

        Args:
            opened_id: Id of the bookmark that was opened
            displayed_ids: Ids of the result window at the time of opening

        Returns:
            The opened bookmark after the update

        Raises:
            ValidationError: If ``displayed_ids`` is not 1-8 string ids
            BookmarkNotFoundError: If ``opened_id`` does not exist
            StoreError: If the database write fails
        """
        displayed_ids = validate_displayed_ids(displayed_ids)
        others = [item for item in displayed_ids if item != opened_id]

        async with self._lock:
            async with self._transaction("increment clicks") as conn:
                cursor = await conn.execute(
                    "UPDATE bookmarks SET clicks = clicks + 1 WHERE id = ?",
                    (opened_id,),
                )
                if cursor.rowcount == 0:
                    raise BookmarkNotFoundError(opened_id)

                if others:
                    placeholders = ",".join("?" for _ in others)
                    await conn.execute(
                        f"UPDATE bookmarks SET clicks = MAX(0, clicks - 1) WHERE id IN ({placeholders})",
                        others,
                    )

                return await self._fetch_bookmark(conn, opened_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> Dict[str, bool]:
        """Get all settings as booleans."""
        async with self._lock:
            return await self._read_settings(self._require_connection())

    async def update_settings(self, values: Dict[str, Any]) -> Dict[str, bool]:
        """Upsert settings and return the full settings map.

        Args:
            values: Setting key -> value; booleans are stored as "true"/"false"
        """
        async with self._lock:
            async with self._transaction("update settings") as conn:
                await conn.executemany(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    [(key, _setting_to_text(value)) for key, value in values.items()],
                )
                return await self._read_settings(conn)

    async def _read_settings(self, conn: aiosqlite.Connection) -> Dict[str, bool]:
        cursor = await conn.execute("SELECT key, value FROM settings")
        rows = await cursor.fetchall()
        return {row["key"]: row["value"] == "true" for row in rows}

    # ------------------------------------------------------------------
    # Whole-database transfer
    # ------------------------------------------------------------------

    async def export_database(self, target_path: Path) -> Path:
        """Write a consistent copy of the database to ``target_path``.

        Args:
            target_path: Destination file; must not exist yet

        Returns:
            The destination path
        """
        async with self._lock:
            conn = self._require_connection()
            try:
                await conn.execute("VACUUM INTO ?", (str(target_path),))
            except sqlite3.Error as e:
                print(f"[Store] Export failed: {e}", file=sys.stderr)
                raise StoreError("Failed to export database") from e
        return target_path

    async def replace_database(self, data: bytes) -> None:
        """Replace the whole database with an uploaded SQLite file.

        Args:
            data: Raw bytes of a SQLite database file

        Raises:
            ValidationError: If the bytes are not a usable bookmarks database;
                the current database is left untouched
        """
        if not data.startswith(SQLITE_HEADER):
            raise ValidationError("Invalid file type. Please upload a .sqlite or .db file")

        async with self._lock:
            temp_path = self.db_path.with_suffix(".tmp")
            temp_path.write_bytes(data)
            try:
                await _check_upload(temp_path)
            except ValidationError:
                _remove_database_files(temp_path)
                raise

            await self.close()
            _remove_database_files(temp_path, main=False)
            _remove_database_files(self.db_path, main=False)
            temp_path.replace(self.db_path)

            try:
                await self._open()
            except sqlite3.Error as e:
                print(f"[Store] Imported database could not be opened: {e}", file=sys.stderr)
                raise StoreError("Failed to import database") from e

        print(f"[Store] Database replaced from upload ({len(data)} bytes)", file=sys.stderr)

    def _row_to_dict(self, row: aiosqlite.Row) -> Dict[str, Any]:
        """Convert a database row to a dictionary.

        Args:
            row: SQLite row object

        Returns:
            Dictionary with tags split back into a list
        """
        result = dict(row)
        result["tags"] = result["tags"].split(",") if result.get("tags") else []
        result["clicks"] = result.get("clicks") or 0
        return result


# Global store instance
_bookmark_store: Optional[BookmarkStore] = None


async def get_bookmark_store() -> BookmarkStore:
    """Get or create the global bookmark store instance.

    Returns:
        Initialized BookmarkStore
    """
    global _bookmark_store

    if _bookmark_store is None:
        config = get_config()
        _bookmark_store = BookmarkStore(config.db_path, prefill=config.db_prefill)
        await _bookmark_store.initialize()

    return _bookmark_store
