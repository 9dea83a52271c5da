from __future__ import annotations

import mimetypes
import random

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from starlette.responses import StreamingResponse

from interlude.models.now_playing import NowPlaying

router = APIRouter()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
}

_IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/api/now-playing", response_model=NowPlaying)
async def now_playing(request: Request) -> JSONResponse:
    streamer = request.app.state.streamer
    current = await streamer.now_playing.get()

    if current is None:
        # предсказуемое дефолтное значение
        current = NowPlaying(
            title="(not started yet)",
            source="unknown",
            duration_seconds=None,
            mime_type=request.app.state.settings.stream_mime_type,
        )

    return JSONResponse(content=current.model_dump(), headers=NO_CACHE_HEADERS)


@router.get("/api/cover")
async def cover(request: Request) -> Response:
    manager = request.app.state.streamer.cover
    path = manager.current
    try:
        content = path.read_bytes()
    except OSError:
        # обложку успели сменить и удалить: отдаём дефолтную
        path = manager.default
        content = path.read_bytes()

    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return Response(content=content, media_type=media_type, headers=NO_CACHE_HEADERS)


@router.get("/api/queue")
async def queue(request: Request) -> dict[str, list[str]]:
    ready = request.app.state.streamer.injections.snapshot()
    return {"ready": [item.title for item in ready]}


@router.get("/api/background")
async def background(request: Request) -> FileResponse:
    backgrounds_dir = request.app.state.settings.backgrounds_dir
    images = []
    if backgrounds_dir.is_dir():
        images = [p for p in backgrounds_dir.iterdir() if p.suffix.lower() in _IMAGE_SUFFIXES]
    if not images:
        raise HTTPException(status_code=404, detail="No background images")
    return FileResponse(path=str(random.choice(images)))


@router.get("/stream")
async def stream(request: Request) -> StreamingResponse:
    streamer = request.app.state.streamer
    settings = request.app.state.settings

    return StreamingResponse(
        streamer.stream(), media_type=settings.stream_mime_type, headers=NO_CACHE_HEADERS
    )
