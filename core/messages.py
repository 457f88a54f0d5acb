from __future__ import annotations

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class Messages:
    no_image: str
    no_instruction: str
    nothing_to_upscale: str
    invalid_edit_result: str
    unexpected_error: str
    unexpected_upscale_error: str
    render_failed: str
    encode_failed: str
    read_failed: str
    missing_api_key: str


MESSAGES: Dict[str, Messages] = {
    "en": Messages(
        no_image="Please upload an image first.",
        no_instruction="Please enter an edit instruction.",
        nothing_to_upscale="There is no edited image to upscale.",
        invalid_edit_result="The edited image has an invalid format.",
        unexpected_error="An unexpected error occurred.",
        unexpected_upscale_error="An unexpected error occurred while upscaling.",
        render_failed="No 2d drawing surface available.",
        encode_failed="Could not convert the cropped image to base64.",
        read_failed="The image file could not be read.",
        missing_api_key="No API key is configured. Set GEMINI_API_KEY.",
    ),
    "fa": Messages(
        no_image="لطفا ابتدا یک تصویر آپلود کنید.",
        no_instruction="لطفا دستور ویرایش را وارد کنید.",
        nothing_to_upscale="تصویر ویرایش شده‌ای برای افزایش کیفیت وجود ندارد.",
        invalid_edit_result="فرمت تصویر ویرایش شده نامعتبر است.",
        unexpected_error="خطایی غیرمنتظره رخ داد.",
        unexpected_upscale_error="خطایی غیرمنتظره در هنگام افزایش کیفیت رخ داد.",
        render_failed="سطح ترسیم دوبعدی در دسترس نیست.",
        encode_failed="تبدیل تصویر برش خورده به base64 ممکن نشد.",
        read_failed="فایل تصویر خوانده نشد.",
        missing_api_key="کلید API تنظیم نشده است. GEMINI_API_KEY را تنظیم کنید.",
    ),
}

DEFAULT_LOCALE = "en"


def messages_for(locale: str | None) -> Messages:
    key = (locale or "").strip().lower().split("_")[0].split("-")[0]
    return MESSAGES.get(key, MESSAGES[DEFAULT_LOCALE])
