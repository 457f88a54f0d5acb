from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple

from PIL import Image


PNG_MIME = "image/png"


@dataclass(frozen=True)
class EncodedImage:
    # base64 text + MIME type, the unit exchanged with the remote service
    data: str
    mime_type: str = PNG_MIME

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class SourceImage:
    path: str
    mime_type: str
    # Decoded copy used for display and cropping
    image: Optional[Image.Image] = field(default=None, compare=False, repr=False)

    @property
    def size(self) -> Tuple[int, int]:
        if self.image is None:
            return (0, 0)
        return self.image.size


@dataclass(frozen=True)
class CropRegion:
    """Rectangle in displayed-image coordinates.

    scale_x/scale_y map displayed pixels to source pixels
    (natural size / displayed size at selection time). The rasterizer
    samples the source with these factors.
    """

    x: float
    y: float
    width: float
    height: float
    scale_x: float = 1.0
    scale_y: float = 1.0

    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class DisplayedImage:
    """The source image as currently shown on screen (possibly scaled)."""

    image: Optional[Image.Image]
    displayed_width: float
    displayed_height: float

    @property
    def natural_width(self) -> int:
        return self.image.width if self.image is not None else 0

    @property
    def natural_height(self) -> int:
        return self.image.height if self.image is not None else 0

    def scale_factors(self) -> Tuple[float, float]:
        if self.displayed_width <= 0 or self.displayed_height <= 0:
            return (1.0, 1.0)
        return (
            self.natural_width / float(self.displayed_width),
            self.natural_height / float(self.displayed_height),
        )

    def crop_region(self, x: float, y: float, width: float, height: float) -> CropRegion:
        sx, sy = self.scale_factors()
        return CropRegion(x=x, y=y, width=width, height=height, scale_x=sx, scale_y=sy)


class StageStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class StageResult:
    status: StageStatus = StageStatus.IDLE
    result_image: Optional[EncodedImage] = None
    error_message: str = ""
    error: Optional[Exception] = field(default=None, compare=False)

    @property
    def is_loading(self) -> bool:
        return self.status is StageStatus.LOADING

    @property
    def result_uri(self) -> Optional[str]:
        if self.result_image is None:
            return None
        return self.result_image.to_data_uri()

    @classmethod
    def idle(cls) -> "StageResult":
        return cls()

    @classmethod
    def loading(cls) -> "StageResult":
        return cls(status=StageStatus.LOADING)

    @classmethod
    def succeeded(cls, image: EncodedImage) -> "StageResult":
        return cls(status=StageStatus.SUCCEEDED, result_image=image)

    @classmethod
    def failed(cls, message: str, error: Optional[Exception] = None) -> "StageResult":
        return cls(status=StageStatus.FAILED, error_message=message, error=error)

    def rejected(self, message: str, error: Optional[Exception] = None) -> "StageResult":
        """Attach a precondition failure, keeping the current result and any run in flight."""
        status = StageStatus.LOADING if self.is_loading else StageStatus.FAILED
        return replace(self, status=status, error_message=message, error=error)


@dataclass(frozen=True)
class PipelineSnapshot:
    prompt: str = ""
    source: Optional[SourceImage] = None
    crop: Optional[CropRegion] = None
    edit: StageResult = field(default_factory=StageResult)
    upscale: StageResult = field(default_factory=StageResult)
