from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiofiles
import httpx

from interlude.errors import (
    ERROR_KIND_NETWORK,
    GenerationError,
    MalformedResponseError,
    ServiceStatusError,
)
from interlude.models.track import TrackMetadata
from interlude.settings import GenerationSettings
from interlude.streaming.sources.base import InjectableRequest

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant."

PROMPT_TEMPLATE = (
    "You are the host of a non-stop music radio station. "
    "The last songs played were: {history}. "
    "Write a short, entertaining radio segment of about 200 words about these songs. "
    "Mention things like their style, the year they came out, the instruments "
    "that stand out and their cultural context, the way a charismatic radio DJ would. "
    "Do not use stage directions, sound effects or emojis, only the words to be spoken. "
    "Finish by introducing the next song: {next}."
)


def build_prompt(history: Sequence[TrackMetadata], next_track: TrackMetadata | None) -> str:
    played = ", ".join(track.describe() for track in history)
    upcoming = next_track.describe() if next_track is not None else "a surprise track"
    return PROMPT_TEMPLATE.format(history=played, next=upcoming)


class GenerationClient:
    def __init__(
        self,
        settings: GenerationSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    def enabled(self) -> bool:
        return self._settings.enabled()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate_narration(
        self,
        history: Sequence[TrackMetadata],
        next_track: TrackMetadata | None,
        sequence: int = 0,
    ) -> InjectableRequest:
        return await self.narrate(build_prompt(history, next_track), sequence=sequence)

    async def narrate(self, prompt: str, sequence: int = 0) -> InjectableRequest:
        text = await self.complete(prompt)
        logger.debug("Narration #%d text: %s", sequence, text)
        path = await self.synthesize(text)
        return InjectableRequest(
            path=path, title=self._settings.narration_title, sequence=sequence
        )

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self._settings.chat_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            response = await self._client.post(
                self._url("chat/completions"), json=payload, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise GenerationError(
                f"chat request failed: {exc!r}", error_kind=ERROR_KIND_NETWORK
            ) from exc

        if response.status_code != 200:
            raise ServiceStatusError("chat", response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedResponseError("chat response is not JSON") from exc

        return _completion_text(body)

    async def synthesize(self, text: str) -> Path:
        payload = {
            "model": self._settings.tts_model,
            "input": text,
            "voice": self._settings.tts_voice,
            "response_format": self._settings.tts_format,
            "speed": self._settings.tts_speed,
        }
        try:
            async with self._client.stream(
                "POST", self._url("audio/speech"), json=payload, headers=self._headers()
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise ServiceStatusError(
                        "speech", response.status_code, body.decode("utf-8", "replace")
                    )

                fd, name = tempfile.mkstemp(
                    prefix="interlude-narration-", suffix=f".{self._settings.tts_format}"
                )
                os.close(fd)
                path = Path(name)
                written = 0
                async with aiofiles.open(path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
                        written += len(chunk)
        except httpx.HTTPError as exc:
            raise GenerationError(
                f"speech request failed: {exc!r}", error_kind=ERROR_KIND_NETWORK
            ) from exc

        logger.info("Narration audio written to %s (%d bytes)", path, written)
        return path

    def _url(self, endpoint: str) -> str:
        return f"{self._settings.api_base_url.rstrip('/')}/{endpoint}"

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.api_key or ''}"}


def _completion_text(body: Any) -> str:
    if not isinstance(body, dict):
        raise MalformedResponseError("chat response is not an object")

    choices = body.get("choices")
    if not isinstance(choices, list) or len(choices) != 1:
        raise MalformedResponseError(
            f"expected exactly one choice, got {choices!r:.200}"
        )

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise MalformedResponseError("chat choice has no text content")
    return content.strip()
