from __future__ import annotations

import base64
import io
from types import SimpleNamespace
import unittest

from PIL import Image

from core.config import AppConfig
from core.errors import MissingApiKey, RemoteFailure
from core.remote import GeminiImageService, extract_image_b64


def _response(*parts) -> SimpleNamespace:
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def _image_part(raw: bytes, mime: str) -> SimpleNamespace:
    return SimpleNamespace(inline_data=SimpleNamespace(data=raw, mime_type=mime), text=None)


def _text_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(inline_data=None, text=text)


def _encode(fmt: str) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (3, 2), (1, 2, 3)).save(buf, format=fmt)
    return buf.getvalue()


class ExtractImageTests(unittest.TestCase):
    def test_png_bytes_pass_through(self) -> None:
        png = _encode("PNG")
        out = extract_image_b64(_response(_text_part("here you go"), _image_part(png, "image/png")))
        self.assertEqual(base64.b64decode(out), png)

    def test_other_formats_are_reencoded_as_png(self) -> None:
        out = extract_image_b64(_response(_image_part(_encode("JPEG"), "image/jpeg")))
        with Image.open(io.BytesIO(base64.b64decode(out))) as img:
            self.assertEqual(img.format, "PNG")
            self.assertEqual(img.size, (3, 2))

    def test_text_only_response_is_a_remote_failure(self) -> None:
        with self.assertRaises(RemoteFailure) as ctx:
            extract_image_b64(_response(_text_part("I can't edit that image.")))
        self.assertEqual(ctx.exception.message, "I can't edit that image.")

    def test_empty_response_is_a_remote_failure(self) -> None:
        with self.assertRaises(RemoteFailure):
            extract_image_b64(SimpleNamespace(candidates=None))


class _FakeModels:
    def __init__(self, response=None, error: Exception | None = None) -> None:
        self.calls: list[dict] = []
        self._response = response
        self._error = error

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response


def _client(models: _FakeModels) -> SimpleNamespace:
    return SimpleNamespace(aio=SimpleNamespace(models=models))


class GeminiImageServiceTests(unittest.IsolatedAsyncioTestCase):
    async def test_edit_sends_image_and_instruction(self) -> None:
        png = _encode("PNG")
        models = _FakeModels(response=_response(_image_part(png, "image/png")))
        cfg = AppConfig(api_key="k", edit_model="edit-model")
        service = GeminiImageService(cfg, client=_client(models))

        out = await service.edit(base64.b64encode(b"src").decode("ascii"), "image/jpeg", "make it blue")

        self.assertEqual(base64.b64decode(out), png)
        call = models.calls[0]
        self.assertEqual(call["model"], "edit-model")
        image_part, instruction = call["contents"]
        self.assertEqual(image_part.inline_data.data, b"src")
        self.assertEqual(image_part.inline_data.mime_type, "image/jpeg")
        self.assertEqual(instruction, "make it blue")

    async def test_upscale_uses_configured_instruction(self) -> None:
        models = _FakeModels(response=_response(_image_part(_encode("PNG"), "image/png")))
        cfg = AppConfig(api_key="k", upscale_model="up-model", upscale_instruction="enhance")
        service = GeminiImageService(cfg, client=_client(models))

        await service.upscale(base64.b64encode(b"edited").decode("ascii"), "image/png")

        call = models.calls[0]
        self.assertEqual(call["model"], "up-model")
        self.assertEqual(call["contents"][1], "enhance")

    async def test_transport_errors_become_remote_failures(self) -> None:
        models = _FakeModels(error=ConnectionError("connection reset"))
        service = GeminiImageService(AppConfig(api_key="k"), client=_client(models))

        with self.assertRaises(RemoteFailure) as ctx:
            await service.edit("c3Jj", "image/png", "x")
        self.assertEqual(ctx.exception.message, "connection reset")

    async def test_missing_api_key_is_a_remote_failure(self) -> None:
        service = GeminiImageService(AppConfig(api_key=""))
        with self.assertRaises(MissingApiKey):
            await service.upscale("c3Jj", "image/png")


if __name__ == "__main__":
    unittest.main()
