from __future__ import annotations

import base64
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from PIL import Image

from core.codec import (
    decode_bytes,
    decode_data_uri,
    encode_data_uri,
    file_to_encoded_image,
    guess_mime_type,
)
from core.errors import DecodingError, ReadError
from core.state import EncodedImage


class DataUriTests(unittest.TestCase):
    def test_decode_inverts_encode(self) -> None:
        for data, mime in [
            ("aGVsbG8=", "image/png"),
            ("AAECAw==", "image/jpeg"),
            ("Zm9v", "application/x-custom"),
        ]:
            decoded = decode_data_uri(encode_data_uri(data, mime))
            self.assertEqual(decoded, EncodedImage(data=data, mime_type=mime))

    def test_missing_comma_is_a_decoding_error(self) -> None:
        with self.assertRaises(DecodingError):
            decode_data_uri("data:image/png;base64")

    def test_empty_payload_is_a_decoding_error(self) -> None:
        with self.assertRaises(DecodingError):
            decode_data_uri("data:image/png;base64,")

    def test_empty_header_is_a_decoding_error(self) -> None:
        with self.assertRaises(DecodingError):
            decode_data_uri(",aGVsbG8=")

    def test_header_without_type_defaults_to_png(self) -> None:
        decoded = decode_data_uri("data-without-type,aGVsbG8=")
        self.assertEqual(decoded.mime_type, "image/png")
        self.assertEqual(decoded.data, "aGVsbG8=")

    def test_split_happens_at_first_comma(self) -> None:
        decoded = decode_data_uri("data:image/webp;base64,abc,def")
        self.assertEqual(decoded.mime_type, "image/webp")
        self.assertEqual(decoded.data, "abc,def")

    def test_decode_bytes_rejects_invalid_base64(self) -> None:
        with self.assertRaises(DecodingError):
            decode_bytes(EncodedImage(data="not base64!!"))
        self.assertEqual(decode_bytes(EncodedImage(data="aGVsbG8=")), b"hello")


class FileToEncodedImageTests(unittest.TestCase):
    def test_reads_bytes_with_declared_mime(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "blob.bin"
            path.write_bytes(b"\x00\x01\x02")
            encoded = file_to_encoded_image(str(path), "image/webp")

        self.assertEqual(encoded.mime_type, "image/webp")
        self.assertEqual(base64.b64decode(encoded.data), b"\x00\x01\x02")

    def test_mime_guessed_from_extension(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "photo.jpg"
            Image.new("RGB", (4, 3), (10, 20, 30)).save(path, format="JPEG")
            encoded = file_to_encoded_image(str(path))
            raw = path.read_bytes()

        self.assertEqual(encoded.mime_type, "image/jpeg")
        self.assertEqual(base64.b64decode(encoded.data), raw)

    def test_mime_sniffed_when_extension_missing(self) -> None:
        with TemporaryDirectory() as td:
            path = Path(td) / "noext"
            Image.new("RGB", (4, 3)).save(path, format="PNG")
            self.assertEqual(guess_mime_type(str(path)), "image/png")

    def test_unreadable_file_raises_read_error(self) -> None:
        with TemporaryDirectory() as td:
            with self.assertRaises(ReadError):
                file_to_encoded_image(str(Path(td) / "missing.png"))


if __name__ == "__main__":
    unittest.main()
