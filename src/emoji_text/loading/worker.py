"""Background worker resolving remote emojis for one EmojiText."""

import asyncio
import logging
from collections.abc import Sequence

from PySide6.QtCore import QObject, QThread, Signal

from ..core.models import CustomEmoji, RenderedEmoji
from .pipeline import ImagePipeline
from .resolver import CONCURRENT_FETCHES, EmojiMetrics, fetch_remote

logger = logging.getLogger(__name__)


class EmojiLoadWorker(QThread):
    """Worker thread fetching remote emojis in its own event loop.

    Every signal carries the token of the pass that emitted it so
    the receiver can drop results from superseded passes.
    """

    emoji_resolved = Signal(object, str, object)  # token, shortcode, RenderedEmoji | None
    resolution_finished = Signal(object, object)  # token, remote results or None on error

    def __init__(
        self,
        token: int,
        emojis: Sequence[CustomEmoji],
        metrics: EmojiMetrics,
        pipeline: ImagePipeline,
        max_concurrent: int = CONCURRENT_FETCHES,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.token = token
        self._emojis = list(emojis)
        self._metrics = metrics
        self._pipeline = pipeline
        self._max_concurrent = max_concurrent

    def _on_resolved(self, shortcode: str, rendered: RenderedEmoji | None) -> None:
        if self.isInterruptionRequested():
            return
        self.emoji_resolved.emit(self.token, shortcode, rendered)

    def run(self) -> None:
        """Resolve the emojis in a new event loop."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            result = loop.run_until_complete(
                fetch_remote(
                    self._emojis,
                    self._metrics,
                    self._pipeline,
                    on_resolved=self._on_resolved,
                    max_concurrent=self._max_concurrent,
                )
            )
            if not self.isInterruptionRequested():
                self.resolution_finished.emit(self.token, result)
        except Exception as e:
            logger.error(f"Emoji resolution failed: {e}")
            if not self.isInterruptionRequested():
                self.resolution_finished.emit(self.token, None)
        finally:
            loop.close()
