from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

from core.logger import get_logger

_logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path.home() / ".promptpix" / "settings.json"

DEFAULT_UPSCALE_INSTRUCTION = (
    "Upscale this image to a higher resolution. Enhance fine detail and sharpness, "
    "reduce noise and compression artifacts, and keep the content, composition and "
    "colors exactly the same."
)


@dataclass
class AppConfig:
    api_key: str = ""
    edit_model: str = "gemini-2.5-flash-image"
    upscale_model: str = "gemini-2.5-flash-image"
    locale: str = "en"
    request_timeout_ms: int = 300_000
    upscale_instruction: str = DEFAULT_UPSCALE_INSTRUCTION


_ENV_OVERRIDES = {
    "PROMPTPIX_EDIT_MODEL": "edit_model",
    "PROMPTPIX_UPSCALE_MODEL": "upscale_model",
    "PROMPTPIX_LOCALE": "locale",
    "PROMPTPIX_TIMEOUT_MS": "request_timeout_ms",
}


def _read_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        _logger.warning("settings load failed: %s (%s)", path, e)
        return {}
    if not isinstance(raw, dict):
        _logger.warning("settings ignored, expected an object: %s", path)
        return {}
    _logger.debug("settings loaded: %s", path)
    return raw


def _coerce(name: str, value: Any) -> Any:
    if name == "request_timeout_ms":
        return int(value)
    return str(value)


def load_config(path: Optional[str] = None) -> AppConfig:
    settings_path = Path(path) if path else DEFAULT_SETTINGS_PATH
    raw = _read_settings(settings_path)

    cfg = AppConfig()
    known = {f.name for f in fields(AppConfig)}
    for key, value in raw.items():
        if key not in known:
            continue
        try:
            setattr(cfg, key, _coerce(key, value))
        except (TypeError, ValueError):
            _logger.warning("settings value ignored: %s=%r", key, value)

    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if api_key:
        cfg.api_key = api_key.strip()

    for env_name, attr in _ENV_OVERRIDES.items():
        env_value = (os.getenv(env_name) or "").strip()
        if not env_value:
            continue
        try:
            setattr(cfg, attr, _coerce(attr, env_value))
        except ValueError:
            _logger.warning("environment override ignored: %s=%r", env_name, env_value)

    return cfg
