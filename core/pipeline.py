from __future__ import annotations

from typing import Callable, List, Optional

from core.codec import decode_data_uri, file_to_encoded_image
from core.errors import (
    DecodingError,
    EncodingError,
    MissingApiKey,
    PipelineError,
    ReadError,
    RenderError,
    ValidationError,
)
from core.export import edited_filename, save_result, upscaled_filename
from core.io import load_source_image
from core.logger import get_logger
from core.messages import Messages, messages_for
from core.rasterize import rasterize
from core.remote import ImageService
from core.state import (
    PNG_MIME,
    CropRegion,
    DisplayedImage,
    EncodedImage,
    PipelineSnapshot,
    SourceImage,
    StageResult,
)

_logger = get_logger("pipeline")

Listener = Callable[[PipelineSnapshot], None]


class TransformationPipeline:
    """Edit-then-upscale pipeline for one user session.

    Each stage moves IDLE -> LOADING -> SUCCEEDED | FAILED and may re-enter
    LOADING from either terminal state. Starting an edit resets the upscale
    stage, since upscale works on the edit result.

    Every entry into LOADING (and every invalidation) bumps the stage's
    generation; a remote call that completes under an older generation is
    dropped, so the most recent invocation always wins.
    """

    def __init__(self, service: ImageService, messages: Optional[Messages] = None):
        self._service = service
        self.messages = messages or messages_for(None)

        self._prompt = ""
        self._source: Optional[SourceImage] = None
        self._crop: Optional[CropRegion] = None
        self._displayed: Optional[DisplayedImage] = None

        self._edit = StageResult.idle()
        self._upscale = StageResult.idle()
        self._edit_gen = 0
        self._upscale_gen = 0

        self._listeners: List[Listener] = []

    # ---- read-only state ----
    @property
    def prompt(self) -> str:
        return self._prompt

    @property
    def source(self) -> Optional[SourceImage]:
        return self._source

    @property
    def crop(self) -> Optional[CropRegion]:
        return self._crop

    @property
    def displayed(self) -> Optional[DisplayedImage]:
        return self._displayed

    @property
    def edit(self) -> StageResult:
        return self._edit

    @property
    def upscale(self) -> StageResult:
        return self._upscale

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            prompt=self._prompt,
            source=self._source,
            crop=self._crop,
            edit=self._edit,
            upscale=self._upscale,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ---- inputs ----
    def set_prompt(self, text: str) -> None:
        self._prompt = text or ""
        self._notify()

    def set_crop(self, crop: Optional[CropRegion]) -> None:
        self._crop = crop
        self._notify()

    def reset_crop(self) -> None:
        self._crop = None
        self._notify()

    def set_displayed_image(self, displayed: Optional[DisplayedImage]) -> None:
        self._displayed = displayed

    def select_new_source(self, path: str) -> SourceImage:
        # ReadError propagates; state is untouched when the file can't be opened
        source = load_source_image(path)
        self.select_source(source)
        return source

    def select_source(self, source: SourceImage) -> None:
        _logger.info("new source: %s (%s, %dx%d)", source.path, source.mime_type, *source.size)
        self._source = source
        self._crop = None
        self._displayed = None
        self._edit_gen += 1
        self._upscale_gen += 1
        self._edit = StageResult.idle()
        self._upscale = StageResult.idle()
        self._notify()

    # ---- stages ----
    def _failure_message(self, exc: Exception, fallback: str) -> str:
        if isinstance(exc, RenderError):
            return self.messages.render_failed
        if isinstance(exc, EncodingError):
            return self.messages.encode_failed
        if isinstance(exc, ReadError):
            return self.messages.read_failed
        if isinstance(exc, MissingApiKey):
            return self.messages.missing_api_key
        message = exc.message if isinstance(exc, PipelineError) else str(exc)
        return message or fallback

    def _edit_input(self, source: SourceImage) -> EncodedImage:
        crop = self._crop
        if crop is not None and crop.is_valid() and self._displayed is not None:
            _logger.debug("edit input: crop %r", crop)
            return rasterize(self._displayed, crop)
        _logger.debug("edit input: whole file %s", source.path)
        return file_to_encoded_image(source.path, source.mime_type)

    async def run_edit(self) -> StageResult:
        source = self._source
        prompt = self._prompt
        if source is None or not prompt:
            message = self.messages.no_image if source is None else self.messages.no_instruction
            _logger.warning("edit rejected: %s", message)
            self._edit = self._edit.rejected(message, ValidationError(message))
            self._notify()
            return self._edit

        self._edit_gen += 1
        self._upscale_gen += 1
        gen = self._edit_gen
        self._edit = StageResult.loading()
        self._upscale = StageResult.idle()
        self._notify()

        try:
            payload = self._edit_input(source)
            result_b64 = await self._service.edit(payload.data, payload.mime_type, prompt)
        except Exception as e:
            _logger.error("edit failed: %s", e, exc_info=not isinstance(e, PipelineError))
            outcome = StageResult.failed(self._failure_message(e, self.messages.unexpected_error), e)
        else:
            outcome = StageResult.succeeded(EncodedImage(data=result_b64, mime_type=PNG_MIME))

        if gen != self._edit_gen:
            _logger.debug("stale edit result dropped (generation %d, current %d)", gen, self._edit_gen)
            return outcome
        self._edit = outcome
        self._notify()
        return outcome

    async def run_upscale(self) -> StageResult:
        edited = self._edit.result_image
        if edited is None:
            message = self.messages.nothing_to_upscale
            _logger.warning("upscale rejected: %s", message)
            self._upscale = self._upscale.rejected(message, ValidationError(message))
            self._notify()
            return self._upscale

        self._upscale_gen += 1
        gen = self._upscale_gen
        self._upscale = StageResult.loading()
        self._notify()

        try:
            try:
                payload = decode_data_uri(edited.to_data_uri())
            except DecodingError as e:
                raise ValidationError(self.messages.invalid_edit_result) from e
            result_b64 = await self._service.upscale(payload.data, payload.mime_type)
        except Exception as e:
            _logger.error("upscale failed: %s", e, exc_info=not isinstance(e, PipelineError))
            outcome = StageResult.failed(
                self._failure_message(e, self.messages.unexpected_upscale_error), e
            )
        else:
            outcome = StageResult.succeeded(EncodedImage(data=result_b64, mime_type=PNG_MIME))

        if gen != self._upscale_gen:
            _logger.debug("stale upscale result dropped (generation %d, current %d)", gen, self._upscale_gen)
            return outcome
        self._upscale = outcome
        self._notify()
        return outcome

    # ---- downloads ----
    def edit_filename(self) -> str:
        return edited_filename(self._prompt)

    def upscale_filename(self) -> str:
        return upscaled_filename(self._prompt)

    def save_edit(self, path: str) -> Optional[str]:
        if self._edit.result_image is None:
            return None
        return save_result(path, self._edit.result_image)

    def save_upscale(self, path: str) -> Optional[str]:
        if self._upscale.result_image is None:
            return None
        return save_result(path, self._upscale.result_image)
