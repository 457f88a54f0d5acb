from __future__ import annotations

import re

from core.io import save_encoded_image
from core.state import EncodedImage

EDITED_PREFIX = "gemini-edited"
UPSCALED_PREFIX = "gemini-upscaled"

_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE | re.ASCII)


def sanitize_prompt(prompt: str, limit: int = 50) -> str:
    return _UNSAFE.sub("_", (prompt or "")[:limit]).lower()


def download_filename(prompt: str, prefix: str) -> str:
    name = sanitize_prompt(prompt) or "download"
    return f"{prefix}-{name}.png"


def edited_filename(prompt: str) -> str:
    return download_filename(prompt, EDITED_PREFIX)


def upscaled_filename(prompt: str) -> str:
    return download_filename(prompt, UPSCALED_PREFIX)


def save_result(path: str, image: EncodedImage) -> str:
    save_encoded_image(path, image)
    return path
