"""REST API for bookmarks, settings and database transfer."""
import shutil
import sqlite3
import sys
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel

from puremark.bookmark_store import BookmarkStore
from puremark.config import Config, get_config
from puremark.errors import BookmarkError, StoreError, ValidationError


class BookmarkCreatePayload(BaseModel):
    id: Optional[str] = None
    title: str
    url: str
    tags: Optional[List[str]] = None
    faviconUrl: Optional[str] = None


class BookmarkUpdatePayload(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    tags: Optional[List[str]] = None
    faviconUrl: Optional[str] = None


class ClickPayload(BaseModel):
    increment: bool = False
    # Shape is checked by the store so a bad value is a 400, not a 422
    displayedIds: Any = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def get_store(request: Request) -> BookmarkStore:
    return request.app.state.store


def create_app(store: Optional[BookmarkStore] = None, config: Optional[Config] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        store: Already initialized store; when None the app opens one from
            config on startup and closes it on shutdown
        config: Configuration (defaults to the global config)

    Returns:
        Configured FastAPI app
    """
    config = config or get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = app.state.store is None
        if owns_store:
            app.state.store = BookmarkStore(config.db_path, prefill=config.db_prefill)
            await app.state.store.initialize()
        try:
            yield
        finally:
            if owns_store:
                await app.state.store.close()

    app = FastAPI(title="puremark", lifespan=lifespan)
    app.state.store = store
    app.state.config = config

    @app.exception_handler(BookmarkError)
    async def bookmark_error_handler(request: Request, exc: BookmarkError) -> JSONResponse:
        if isinstance(exc, StoreError):
            print(f"[API] {request.method} {request.url.path} failed: {exc.__cause__ or exc}", file=sys.stderr)
        return _error(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Invalid request body")

    @app.exception_handler(sqlite3.Error)
    async def sqlite_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
        print(f"[API] {request.method} {request.url.path} database error: {exc}", file=sys.stderr)
        return _error(500, "Database error")

    @app.get("/api/health")
    async def health(store: BookmarkStore = Depends(get_store)) -> dict:
        return {"status": "ok", "bookmarks": await store.count_bookmarks()}

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    @app.get("/api/bookmarks")
    async def list_bookmarks(store: BookmarkStore = Depends(get_store)) -> list:
        return await store.list_bookmarks()

    @app.post("/api/bookmarks", status_code=201)
    async def create_bookmark(
        payload: BookmarkCreatePayload,
        store: BookmarkStore = Depends(get_store),
    ) -> dict:
        return await store.create_bookmark(payload.model_dump())

    @app.post("/api/bookmarks/{bookmark_id}")
    async def record_click(
        bookmark_id: str,
        payload: ClickPayload,
        store: BookmarkStore = Depends(get_store),
    ) -> dict:
        """Usage feedback for opening ``bookmark_id`` from a result window."""
        if not payload.increment:
            return {"success": True}
        return await store.record_open(bookmark_id, payload.displayedIds)

    @app.patch("/api/bookmarks/{bookmark_id}")
    async def update_bookmark(
        bookmark_id: str,
        payload: BookmarkUpdatePayload,
        store: BookmarkStore = Depends(get_store),
    ) -> dict:
        return await store.update_bookmark(bookmark_id, payload.model_dump(exclude_unset=True))

    @app.delete("/api/bookmarks/{bookmark_id}")
    async def delete_bookmark(bookmark_id: str, store: BookmarkStore = Depends(get_store)) -> dict:
        await store.delete_bookmark(bookmark_id)
        return {"success": True}

    # ------------------------------------------------------------------
    # Settings and config
    # ------------------------------------------------------------------

    @app.get("/api/settings")
    async def get_settings(store: BookmarkStore = Depends(get_store)) -> dict:
        return await store.get_settings()

    @app.patch("/api/settings")
    async def update_settings(values: Dict[str, Any], store: BookmarkStore = Depends(get_store)) -> dict:
        return await store.update_settings(values)

    @app.get("/api/config")
    async def get_app_config() -> dict:
        return {
            "allowExport": config.allow_export,
            "allowImport": config.allow_import,
            "dbPrefill": config.db_prefill,
        }

    # ------------------------------------------------------------------
    # Database transfer
    # ------------------------------------------------------------------

    @app.get("/api/database/export")
    async def export_database(background_tasks: BackgroundTasks, store: BookmarkStore = Depends(get_store)):
        if not config.allow_export:
            return _error(403, "Database export is disabled")

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        filename = f"puremark-db-{timestamp}.sqlite"
        workdir = Path(tempfile.mkdtemp(prefix="puremark-export-"))

        try:
            path = await store.export_database(workdir / filename)
        except StoreError:
            shutil.rmtree(workdir, ignore_errors=True)
            raise

        background_tasks.add_task(shutil.rmtree, workdir, ignore_errors=True)
        return FileResponse(path, media_type="application/x-sqlite3", filename=filename)

    @app.post("/api/database/import")
    async def import_database(
        file: Optional[UploadFile] = File(None),
        store: BookmarkStore = Depends(get_store),
    ) -> dict:
        if not config.allow_import:
            return _error(403, "Database import is disabled")
        if file is None:
            return _error(400, "No file provided")
        if not (file.filename or "").endswith((".sqlite", ".db")):
            raise ValidationError("Invalid file type. Please upload a .sqlite or .db file")

        await store.replace_database(await file.read())
        return {"success": True}

    return app
