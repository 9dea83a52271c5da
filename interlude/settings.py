from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_STATIC_DIR = Path(__file__).resolve().parent / "static"


class GenerationSettings(BaseModel):
    api_key: str | None = None
    api_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "onyx"
    tts_format: Literal["mp3", "opus", "aac", "flac", "wav"] = "mp3"
    tts_speed: float = 1.0
    request_timeout: float = 30.0
    narration_title: str = "AI DJ interlude"

    def enabled(self) -> bool:
        return bool(self.api_key)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="INTERLUDE_",
        case_sensitive=False,
        env_ignore_empty=True,
    )

    stream_mime_type: Literal["audio/mpeg", "audio/ogg"] = "audio/mpeg"
    chunk_size: int = 65536

    music_dir: Path = Path("/music")
    backgrounds_dir: Path = Path("/backgrounds")
    default_cover: Path = _STATIC_DIR / "default_cover.svg"

    prefetch: int = Field(default=1, ge=1)
    batch_size: int = Field(default=4, ge=1)
    max_generation_workers: int = Field(default=2, ge=1)

    log_level: str = "INFO"

    # Generation settings (flat env vars with prefix)
    api_key: str | None = None
    api_base_url: str = "https://api.openai.com/v1"
    chat_model: str = "gpt-4o-mini"
    tts_model: str = "tts-1"
    tts_voice: str = "onyx"
    tts_format: Literal["mp3", "opus", "aac", "flac", "wav"] = "mp3"
    tts_speed: float = 1.0
    request_timeout: float = 30.0
    narration_title: str = "AI DJ interlude"

    def generation(self) -> GenerationSettings:
        return GenerationSettings(
            api_key=self.api_key,
            api_base_url=self.api_base_url,
            chat_model=self.chat_model,
            tts_model=self.tts_model,
            tts_voice=self.tts_voice,
            tts_format=self.tts_format,
            tts_speed=self.tts_speed,
            request_timeout=self.request_timeout,
            narration_title=self.narration_title,
        )
