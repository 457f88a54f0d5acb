import argparse
import sys
from pathlib import Path

from PySide6 import QtAsyncio
from PySide6.QtCore import Qt
from PySide6.QtWidgets import QApplication

from core.config import load_config
from core.logger import get_logger
from core.messages import messages_for
from core.pipeline import TransformationPipeline
from core.remote import GeminiImageService
from ui.main_window import MainWindow


def _asset_path(*parts: str) -> Path:
    # PyInstaller onefile extracts bundled files under sys._MEIPASS.
    if getattr(sys, "frozen", False):
        return Path(getattr(sys, "_MEIPASS")) / Path(*parts)
    return Path(__file__).resolve().parent / Path(*parts)


def main() -> int:
    parser = argparse.ArgumentParser(prog="promptpix")
    parser.add_argument("--settings", help="path to a JSON settings file")
    parser.add_argument("image", nargs="?", help="image to open on startup")
    args, qt_args = parser.parse_known_args()

    logger = get_logger("app")
    config = load_config(args.settings)
    logger.info("starting (locale=%s, edit_model=%s)", config.locale, config.edit_model)

    app = QApplication([sys.argv[0], *qt_args])
    app.setApplicationName("PromptPix")
    app.setOrganizationName("PromptPix")
    if config.locale.lower().startswith("fa"):
        app.setLayoutDirection(Qt.RightToLeft)

    # One pipeline per session; no module-level state
    pipeline = TransformationPipeline(GeminiImageService(config), messages_for(config.locale))

    w = MainWindow(pipeline, logo_path=_asset_path("assets", "Logo.png"))
    w.show()
    if args.image:
        w.load_path(args.image)

    QtAsyncio.run(handle_sigint=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
