from __future__ import annotations


class PipelineError(Exception):
    """Base class for every failure the transformation pipeline records."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    pass


class RenderError(PipelineError):
    pass


class EncodingError(PipelineError):
    pass


class DecodingError(PipelineError):
    pass


class ReadError(PipelineError):
    pass


class RemoteFailure(PipelineError):
    """Opaque failure surfaced by the remote edit/upscale service."""


class MissingApiKey(RemoteFailure):
    pass
