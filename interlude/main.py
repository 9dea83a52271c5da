from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from interlude.api.routes import router
from interlude.logging_setup import setup_logging
from interlude.settings import Settings
from interlude.streaming.streamer import Streamer


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    streamer: Streamer = fastapi_app.state.streamer

    await streamer.startup()
    try:
        yield
    finally:
        await streamer.shutdown()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.log_level)
    app = FastAPI(title="Interlude FM", lifespan=lifespan)

    app.state.settings = settings
    app.state.streamer = Streamer(settings=settings)

    app.include_router(router)

    static_dir = Path(__file__).resolve().parent / "static"
    index_path = static_dir / "index.html"

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        headers = {
            "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
            "Pragma": "no-cache",
        }
        return FileResponse(path=str(index_path), media_type="text/html", headers=headers)

    app.mount("/static", StaticFiles(directory=str(static_dir), html=False), name="static")
    return app


def run() -> None:
    uvicorn.run("interlude.main:create_app", factory=True, host="0.0.0.0", port=8000)
