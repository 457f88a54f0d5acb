from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image

from core.codec import mime_from_header, split_data_uri
from core.errors import EncodingError, RenderError
from core.state import CropRegion, DisplayedImage, EncodedImage


def _allocate_surface(width: float, height: float) -> Image.Image:
    # Canvas-style truncation of fractional sizes
    w = int(width)
    h = int(height)
    if w <= 0 or h <= 0:
        raise RenderError(f"cannot allocate a {w}x{h} drawing surface")
    return Image.new("RGBA", (w, h), (0, 0, 0, 0))


def _draw_sub_rect(
    surface: Image.Image,
    src: Image.Image,
    box: Tuple[float, float, float, float],
) -> None:
    """Draw ``box`` of ``src`` stretched over the whole ``surface``.

    Parts of the box outside the source are clipped and the destination is
    clipped by the same proportion, leaving those pixels transparent.
    """
    sx0, sy0, sx1, sy1 = box
    if sx1 <= sx0 or sy1 <= sy0:
        return
    cx0 = max(0.0, sx0)
    cy0 = max(0.0, sy0)
    cx1 = min(float(src.width), sx1)
    cy1 = min(float(src.height), sy1)
    if cx1 <= cx0 or cy1 <= cy0:
        return

    dw, dh = surface.size
    fx = dw / (sx1 - sx0)
    fy = dh / (sy1 - sy0)
    dx0 = int(round((cx0 - sx0) * fx))
    dy0 = int(round((cy0 - sy0) * fy))
    dx1 = int(round((cx1 - sx0) * fx))
    dy1 = int(round((cy1 - sy0) * fy))
    if dx1 <= dx0 or dy1 <= dy0:
        return

    drawn = src.convert("RGBA").resize(
        (dx1 - dx0, dy1 - dy0),
        Image.Resampling.LANCZOS,
        box=(cx0, cy0, cx1, cy1),
    )
    surface.paste(drawn, (dx0, dy0))


def _surface_to_data_uri(surface: Image.Image) -> str:
    buf = io.BytesIO()
    surface.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def rasterize(displayed: DisplayedImage, crop: CropRegion) -> EncodedImage:
    """Render ``crop`` at source resolution into a new PNG-encoded image.

    The crop is given in displayed coordinates and carries its own
    natural/displayed scale factors (see ``DisplayedImage.crop_region``);
    the source sub-rectangle is the crop scaled by them. The output keeps
    the displayed crop size.
    """
    src = displayed.image
    if src is None:
        raise RenderError("no source image to draw from")

    box = (
        crop.x * crop.scale_x,
        crop.y * crop.scale_y,
        (crop.x + crop.width) * crop.scale_x,
        (crop.y + crop.height) * crop.scale_y,
    )

    surface = _allocate_surface(crop.width, crop.height)
    try:
        _draw_sub_rect(surface, src, box)
        data_uri = _surface_to_data_uri(surface)
    finally:
        surface.close()

    header, payload = split_data_uri(data_uri)
    if not header or not payload:
        raise EncodingError("could not convert the cropped surface to base64")
    return EncodedImage(data=payload, mime_type=mime_from_header(header))
