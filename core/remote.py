from __future__ import annotations

import base64
import io
from typing import Any, List, Optional, Protocol

from google import genai
from google.genai import types
from PIL import Image

from core.config import AppConfig
from core.errors import MissingApiKey, RemoteFailure
from core.logger import get_logger

_logger = get_logger("remote")


class ImageService(Protocol):
    """Remote edit/upscale operations. Both return base64 PNG bytes."""

    async def edit(self, image_b64: str, mime_type: str, instruction: str) -> str: ...

    async def upscale(self, image_b64: str, mime_type: str) -> str: ...


def _to_png_b64(raw: bytes, mime_type: Optional[str]) -> str:
    if mime_type == "image/png":
        return base64.b64encode(raw).decode("ascii")
    with Image.open(io.BytesIO(raw)) as img:
        buf = io.BytesIO()
        img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


def extract_image_b64(response: Any) -> str:
    """Return the first inline image of a generate_content response as PNG base64."""
    texts: List[str] = []
    for cand in getattr(response, "candidates", None) or []:
        content = getattr(cand, "content", None)
        for part in getattr(content, "parts", None) or []:
            blob = getattr(part, "inline_data", None)
            if blob is not None and blob.data:
                raw = blob.data
                if isinstance(raw, str):
                    raw = base64.b64decode(raw)
                return _to_png_b64(bytes(raw), blob.mime_type)
            if getattr(part, "text", None):
                texts.append(part.text)
    reason = " ".join(t.strip() for t in texts if t.strip())
    raise RemoteFailure(reason or "the model returned no image")


def _error_message(exc: Exception) -> str:
    return str(getattr(exc, "message", None) or exc)


class GeminiImageService:
    def __init__(self, config: AppConfig, client: Optional[genai.Client] = None):
        self._config = config
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._config.api_key:
                raise MissingApiKey("GEMINI_API_KEY is not set")
            self._client = genai.Client(
                api_key=self._config.api_key,
                http_options=types.HttpOptions(timeout=self._config.request_timeout_ms),
            )
        return self._client

    async def _generate(self, model: str, image_b64: str, mime_type: str, instruction: str) -> str:
        client = self._get_client()
        try:
            raw = base64.b64decode(image_b64)
            response = await client.aio.models.generate_content(
                model=model,
                contents=[
                    types.Part.from_bytes(data=raw, mime_type=mime_type),
                    instruction,
                ],
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except Exception as e:
            _logger.warning("generate_content failed (model=%s): %s", model, e)
            raise RemoteFailure(_error_message(e)) from e
        try:
            return extract_image_b64(response)
        except (OSError, ValueError) as e:
            raise RemoteFailure(f"unreadable image in response: {e}") from e

    async def edit(self, image_b64: str, mime_type: str, instruction: str) -> str:
        _logger.info("edit request: model=%s mime=%s", self._config.edit_model, mime_type)
        return await self._generate(self._config.edit_model, image_b64, mime_type, instruction)

    async def upscale(self, image_b64: str, mime_type: str) -> str:
        _logger.info("upscale request: model=%s mime=%s", self._config.upscale_model, mime_type)
        return await self._generate(
            self._config.upscale_model,
            image_b64,
            mime_type,
            self._config.upscale_instruction,
        )
