"""Image pipelines used to load remote emojis."""

import asyncio
import logging
import threading
from collections import OrderedDict

from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QImage, QImageReader

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10  # seconds
DEFAULT_MEMORY_ENTRIES = 500
USER_AGENT = "emoji-text/1.0"


class ImagePipelineError(Exception):
    """Base error for image pipeline failures."""


class ImagePipelineNotConfiguredError(ImagePipelineError):
    """Raised by the default pipeline; the application must install its own."""


class ImageFetchError(ImagePipelineError):
    """The image could not be downloaded."""

    def __init__(self, url: str, reason: str, status: int = 0):
        super().__init__(f"{reason} ({status}) for {url}" if status else f"{reason} for {url}")
        self.url = url
        self.reason = reason
        self.status = status


class ImageDecodeError(ImagePipelineError):
    """The downloaded bytes are not a supported image."""


def decode_image(data: bytes) -> QImage | None:
    """Decode image bytes to a QImage. Thread-safe (no QPixmap)."""
    if not data:
        return None
    byte_array = QByteArray(data)
    buffer = QBuffer(byte_array)
    buffer.open(QIODevice.OpenModeFlag.ReadOnly)
    reader = QImageReader(buffer)
    reader.setAutoTransform(True)
    image = reader.read()
    buffer.close()
    if image.isNull():
        image = QImage.fromData(data)
    if image is None or image.isNull():
        return None
    return image


class ImagePipeline:
    """Loads images for remote emojis.

    Subclass and override ``image`` to plug in a real loader. The default
    implementation always fails so that remote emojis stay as shortcodes
    until the application installs a pipeline.
    """

    async def image(self, url: str) -> QImage:
        raise ImagePipelineNotConfiguredError(
            f"No image pipeline configured, cannot load {url}"
        )


class AiohttpImagePipeline(ImagePipeline):
    """Image pipeline downloading with aiohttp.

    Decoded images are kept in a small in-memory LRU keyed by URL. The
    pipeline is called from worker threads, each with its own event loop,
    so a session is opened per request and the cache is lock-protected.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_entries: int = DEFAULT_MEMORY_ENTRIES,
        user_agent: str = USER_AGENT,
    ):
        self._timeout = timeout
        self._max_entries = max_entries
        self._user_agent = user_agent
        self._memory: OrderedDict[str, QImage] = OrderedDict()
        self._lock = threading.Lock()

    def cached(self, url: str) -> QImage | None:
        """Return a cached image without fetching."""
        with self._lock:
            image = self._memory.get(url)
            if image is not None:
                self._memory.move_to_end(url)
            return image

    def clear(self) -> None:
        with self._lock:
            self._memory.clear()

    def _store(self, url: str, image: QImage) -> None:
        if self._max_entries <= 0:
            return
        with self._lock:
            self._memory[url] = image
            self._memory.move_to_end(url)
            while len(self._memory) > self._max_entries:
                self._memory.popitem(last=False)

    async def image(self, url: str) -> QImage:
        cached = self.cached(url)
        if cached is not None:
            return cached

        data = await self._download(url)
        image = decode_image(data)
        if image is None:
            raise ImageDecodeError(f"Unable to decode image from {url}")
        self._store(url, image)
        return image

    async def _download(self, url: str) -> bytes:
        import aiohttp

        timeout = aiohttp.ClientTimeout(total=self._timeout)
        headers = {"User-Agent": self._user_agent}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(url) as resp:
                    if resp.status != 200:
                        raise ImageFetchError(url, "http", resp.status)
                    data = await resp.read()
        except ImageFetchError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"Failed to download {url}: {e}")
            raise ImageFetchError(url, type(e).__name__) from e
        if not data:
            raise ImageFetchError(url, "empty", 200)
        return data
