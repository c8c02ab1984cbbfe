"""Shared fixtures for tests."""
import httpx
import pytest
import pytest_asyncio

from puremark.api import create_app
from puremark.bookmark_store import BookmarkStore
from puremark.config import Config


def make_bookmark(bookmark_id, title, url, tags=None, clicks=0):
    """Build an in-memory bookmark as the API returns it."""
    return {
        "id": bookmark_id,
        "title": title,
        "url": url,
        "tags": tags or [],
        "faviconUrl": None,
        "clicks": clicks,
        "createdAt": 0,
        "updatedAt": 0,
    }


@pytest.fixture
def sample_bookmarks():
    """Return sample bookmarks in list order (newest first)."""
    return [
        make_bookmark("1", "Python Docs", "https://docs.python.org", ["python", "documentation"]),
        make_bookmark("2", "Jira Board", "https://jira.example.com/board", ["work"]),
        make_bookmark("3", "Confluence", "https://confluence.example.com", ["work", "wiki"]),
        make_bookmark("4", "SQLite Guide", "https://sqlite.org/guide", ["database", "tutorial"]),
        make_bookmark("5", "Stack Overflow", "https://stackoverflow.com", ["programming"]),
    ]


@pytest.fixture
def db_path(tmp_path):
    """Return path for a temporary bookmarks database."""
    return tmp_path / "test_bookmarks.db"


@pytest.fixture
def config(db_path):
    return Config(db_path=db_path)


@pytest_asyncio.fixture
async def store(db_path):
    """Create and initialize a test bookmark store."""
    s = BookmarkStore(db_path)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def app(store, config):
    return create_app(store=store, config=config)


@pytest_asyncio.fixture
async def http(app):
    """httpx client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
