"""Shared test fixtures for emoji_text tests."""

import os
import time

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest  # noqa: E402
from PySide6.QtCore import QBuffer, QIODevice  # noqa: E402
from PySide6.QtGui import QColor, QImage  # noqa: E402
from PySide6.QtWidgets import QApplication  # noqa: E402

from emoji_text.gui import environment  # noqa: E402
from emoji_text.loading.pipeline import ImagePipeline, ImagePipelineError  # noqa: E402


def make_image(width: int = 32, height: int = 32, color: str = "#ff0000") -> QImage:
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(QColor(color))
    return image


def png_bytes(image: QImage) -> bytes:
    buffer = QBuffer()
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    data = bytes(buffer.data())
    buffer.close()
    return data


class FakePipeline(ImagePipeline):
    """Pipeline serving images from a dict; unknown URLs fail."""

    def __init__(self, images: dict[str, QImage] | None = None):
        self.images = images or {}
        self.requested: list[str] = []

    async def image(self, url: str) -> QImage:
        self.requested.append(url)
        if url not in self.images:
            raise ImagePipelineError(f"no image for {url}")
        return self.images[url]


def wait_until(app, predicate, timeout: float = 5.0) -> bool:
    """Process Qt events until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        app.processEvents()
        if predicate():
            return True
        time.sleep(0.01)
    app.processEvents()
    return predicate()


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture(autouse=True)
def restore_default_environment():
    saved = environment.default_environment()
    yield
    environment.set_default_environment(saved)


@pytest.fixture
def red_image():
    return make_image(color="#ff0000")


@pytest.fixture
def fake_pipeline(red_image):
    return FakePipeline({"https://example.com/ok.png": red_image})
