from __future__ import annotations

import base64
import binascii
import mimetypes
import re
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from core.errors import DecodingError, ReadError
from core.state import PNG_MIME, EncodedImage

_MIME_RE = re.compile(r":(.*?);")

FALLBACK_MIME = "application/octet-stream"


def split_data_uri(uri: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` at the first comma.

    Either half may be empty; callers decide whether that is an error.
    """
    header, _, payload = (uri or "").partition(",")
    return header, payload


def mime_from_header(header: str, default: str = PNG_MIME) -> str:
    m = _MIME_RE.search(header)
    return m.group(1) if m else default


def decode_data_uri(uri: str) -> EncodedImage:
    header, payload = split_data_uri(uri)
    if not header or not payload:
        raise DecodingError("data URI has no header/payload split")
    return EncodedImage(data=payload, mime_type=mime_from_header(header))


def encode_data_uri(data: str, mime_type: str) -> str:
    return EncodedImage(data=data, mime_type=mime_type).to_data_uri()


def encode_bytes(raw: bytes, mime_type: str) -> EncodedImage:
    return EncodedImage(data=base64.b64encode(raw).decode("ascii"), mime_type=mime_type)


def decode_bytes(encoded: EncodedImage) -> bytes:
    try:
        return base64.b64decode(encoded.data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodingError(f"invalid base64 payload: {e}") from e


def guess_mime_type(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    if mime:
        return mime
    # No usable extension: sniff the container with Pillow
    try:
        with Image.open(path) as img:
            fmt = img.format
    except (OSError, UnidentifiedImageError):
        return FALLBACK_MIME
    return Image.MIME.get(fmt or "", FALLBACK_MIME)


def file_to_encoded_image(path: str, mime_type: Optional[str] = None) -> EncodedImage:
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise ReadError(f"could not read {path}: {e}") from e
    return encode_bytes(raw, mime_type or guess_mime_type(path))
