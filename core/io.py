from __future__ import annotations

from pathlib import Path

from PIL import Image, UnidentifiedImageError

from core.codec import decode_bytes, guess_mime_type
from core.errors import ReadError
from core.state import EncodedImage, SourceImage


def load_image_rgba(path: str) -> Image.Image:
    with Image.open(path) as img:
        # Convert to RGBA for consistent cropping/display
        return img.convert("RGBA")


def load_source_image(path: str) -> SourceImage:
    try:
        img = load_image_rgba(path)
    except (OSError, UnidentifiedImageError) as e:
        raise ReadError(f"could not open image {path}: {e}") from e
    return SourceImage(path=str(path), mime_type=guess_mime_type(path), image=img)


def save_encoded_image(path: str, encoded: EncodedImage) -> None:
    Path(path).write_bytes(decode_bytes(encoded))
