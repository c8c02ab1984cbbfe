"""Tests for the REST API."""
import sqlite3
import tempfile

import httpx
import pytest

from puremark.api import create_app
from puremark.config import Config


async def create(http, bookmark_id, **fields):
    body = {
        "id": bookmark_id,
        "title": f"Site {bookmark_id}",
        "url": f"https://{bookmark_id.lower()}.example.com",
        **fields,
    }
    response = await http.post("/api/bookmarks", json=body)
    assert response.status_code == 201, response.text
    return response.json()


async def set_clicks(store, **clicks):
    for bookmark_id, value in clicks.items():
        await store._connection.execute(
            "UPDATE bookmarks SET clicks = ? WHERE id = ?", (value, bookmark_id)
        )


@pytest.mark.asyncio
class TestBookmarksRoutes:
    async def test_list_empty(self, http):
        response = await http.get("/api/bookmarks")
        assert response.status_code == 200
        assert response.json() == []

    async def test_create_and_list(self, http):
        created = await create(http, "A", url="https://a.com/", tags=["x", "y"])
        assert created["url"] == "https://a.com"
        assert created["clicks"] == 0

        listed = (await http.get("/api/bookmarks")).json()
        assert listed == [created]

    async def test_create_invalid_url(self, http):
        response = await http.post("/api/bookmarks", json={"title": "Bad", "url": "nope"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid URL"}

    async def test_create_missing_fields(self, http):
        response = await http.post("/api/bookmarks", json={"title": "No url"})
        assert response.status_code == 400

    async def test_create_duplicate(self, http):
        await create(http, "A")
        response = await http.post(
            "/api/bookmarks",
            json={"title": "Again", "url": "https://A.example.com"},
        )
        assert response.status_code == 409

    async def test_patch(self, http):
        await create(http, "A", tags=["old"])
        response = await http.patch("/api/bookmarks/A", json={"title": "New", "tags": ["fresh"]})
        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "New"
        assert body["tags"] == ["fresh"]
        assert body["url"] == "https://a.example.com"

    async def test_patch_missing(self, http):
        response = await http.patch("/api/bookmarks/nope", json={"title": "x"})
        assert response.status_code == 404

    async def test_patch_bad_tag(self, http):
        await create(http, "A")
        response = await http.patch("/api/bookmarks/A", json={"tags": ["bad tag!"]})
        assert response.status_code == 400

    async def test_delete(self, http):
        await create(http, "A")
        response = await http.delete("/api/bookmarks/A")
        assert response.json() == {"success": True}
        assert (await http.get("/api/bookmarks")).json() == []


@pytest.mark.asyncio
class TestClickFeedback:
    async def test_record_open(self, http, store):
        for bookmark_id in ("A", "B", "C"):
            await create(http, bookmark_id, tags=["t1", "t2"])
        await set_clicks(store, A=2, B=0, C=5)

        response = await http.post(
            "/api/bookmarks/A",
            json={"increment": True, "displayedIds": ["A", "B", "C"]},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "A"
        assert body["clicks"] == 3
        assert body["tags"] == ["t1", "t2"]

        clicks = {b["id"]: b["clicks"] for b in (await http.get("/api/bookmarks")).json()}
        assert clicks == {"A": 3, "B": 0, "C": 4}

    async def test_without_increment_is_noop(self, http):
        await create(http, "A")
        response = await http.post("/api/bookmarks/A", json={"displayedIds": ["A"]})
        assert response.json() == {"success": True}
        assert (await http.get("/api/bookmarks")).json()[0]["clicks"] == 0

    @pytest.mark.parametrize(
        "displayed",
        [[], [str(i) for i in range(9)], "A", None, 5],
    )
    async def test_invalid_displayed_ids(self, http, displayed):
        await create(http, "A")
        response = await http.post(
            "/api/bookmarks/A",
            json={"increment": True, "displayedIds": displayed},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid displayed IDs"}
        assert (await http.get("/api/bookmarks")).json()[0]["clicks"] == 0

    async def test_unknown_bookmark(self, http):
        response = await http.post(
            "/api/bookmarks/missing",
            json={"increment": True, "displayedIds": ["missing"]},
        )
        assert response.status_code == 404

    async def test_store_failure_is_500(self, http, store):
        await create(http, "A")
        await store._connection.execute(
            "CREATE TRIGGER fail_all BEFORE UPDATE OF clicks ON bookmarks "
            "BEGIN SELECT RAISE(ABORT, 'disk full'); END"
        )
        response = await http.post(
            "/api/bookmarks/A",
            json={"increment": True, "displayedIds": ["A"]},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to increment clicks"}


@pytest.mark.asyncio
class TestSettingsAndConfig:
    async def test_get_settings(self, http):
        response = await http.get("/api/settings")
        assert response.json() == {"autoDetectClipboardLinks": True}

    async def test_patch_settings(self, http):
        response = await http.patch("/api/settings", json={"autoDetectClipboardLinks": False})
        assert response.json() == {"autoDetectClipboardLinks": False}
        assert (await http.get("/api/settings")).json() == {"autoDetectClipboardLinks": False}

    async def test_config_flags(self, http):
        response = await http.get("/api/config")
        assert response.json() == {"allowExport": True, "allowImport": True, "dbPrefill": False}

    async def test_health(self, http):
        await create(http, "A")
        assert (await http.get("/api/health")).json() == {"status": "ok", "bookmarks": 1}


@pytest.mark.asyncio
class TestDatabaseTransfer:
    async def test_export(self, http, tmp_path):
        await create(http, "A")
        response = await http.get("/api/database/export")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/x-sqlite3"
        assert "puremark-db-" in response.headers["content-disposition"]

        exported = tmp_path / "download.sqlite"
        exported.write_bytes(response.content)
        conn = sqlite3.connect(exported)
        try:
            assert conn.execute("SELECT id FROM bookmarks").fetchall() == [("A",)]
        finally:
            conn.close()

    async def test_export_cleans_up_temp_dir(self, http, tmp_path, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))

        await create(http, "A")
        response = await http.get("/api/database/export")

        assert response.status_code == 200
        assert list(scratch.iterdir()) == []

    async def test_round_trip_import(self, http):
        await create(http, "A")
        snapshot = (await http.get("/api/database/export")).content

        await create(http, "B")
        response = await http.post(
            "/api/database/import",
            files={"file": ("backup.sqlite", snapshot, "application/x-sqlite3")},
        )
        assert response.json() == {"success": True}
        assert [b["id"] for b in (await http.get("/api/bookmarks")).json()] == ["A"]

    async def test_import_rejects_extension(self, http):
        response = await http.post(
            "/api/database/import",
            files={"file": ("backup.txt", b"SQLite format 3\x00", "text/plain")},
        )
        assert response.status_code == 400

    async def test_import_corrupt_file_keeps_bookmarks(self, http):
        await create(http, "A")
        response = await http.post(
            "/api/database/import",
            files={"file": ("backup.sqlite", b"SQLite format 3\x00" + b"\x00" * 200, "application/x-sqlite3")},
        )
        assert response.status_code == 400
        assert "error" in response.json()
        assert [b["id"] for b in (await http.get("/api/bookmarks")).json()] == ["A"]

    async def test_import_requires_file(self, http):
        response = await http.post("/api/database/import")
        assert response.status_code == 400

    async def test_disabled_transfer(self, store, db_path):
        app = create_app(store=store, config=Config(db_path=db_path, allow_export=False, allow_import=False))
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            assert (await http.get("/api/database/export")).status_code == 403
            response = await http.post(
                "/api/database/import",
                files={"file": ("backup.sqlite", b"SQLite format 3\x00", "application/x-sqlite3")},
            )
            assert response.status_code == 403
