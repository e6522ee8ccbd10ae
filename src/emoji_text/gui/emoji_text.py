"""EmojiText widget - text with inline custom emojis."""

import logging
import math
from collections.abc import Callable, Sequence
from enum import Enum
from urllib.parse import quote

from PySide6.QtCore import QEvent, QRect, QSize, QTimer, QUrl, Signal
from PySide6.QtGui import (
    QColor,
    QFont,
    QFontMetrics,
    QFontMetricsF,
    QImage,
    QPainter,
    QTextCharFormat,
    QTextCursor,
    QTextDocument,
    QTextImageFormat,
)
from PySide6.QtWidgets import QSizePolicy, QWidget

from ..core.models import CustomEmoji, Placeholder, RenderedEmoji
from ..core.segments import (
    EmojiSegment,
    Segment,
    content_identity,
    describe_segments,
    resolve_segments,
)
from ..loading.pipeline import ImagePipeline
from ..loading.resolver import (
    EmojiMetrics,
    emoji_metrics,
    has_remote,
    load_placeholders,
    merge_resolved,
    resolve_local,
)
from ..loading.worker import EmojiLoadWorker
from .environment import EmojiEnvironment, environment_for

logger = logging.getLogger(__name__)

TextCallback = Callable[[], str]

# Workers outlive the widget that started them until their thread exits
_live_workers: set[EmojiLoadWorker] = set()


def _release_worker(worker: EmojiLoadWorker) -> None:
    _live_workers.discard(worker)
    worker.deleteLater()


def _baseline_canvas(
    image: QImage, width: int, height: int, baseline_offset: float, x_height: int
) -> QImage:
    """Pad an emoji so Qt's middle alignment puts it at the baseline offset.

    A middle-aligned inline object is centered a quarter x-height above
    the baseline. The emoji is drawn into a transparent canvas so that
    its bottom edge lands ``baseline_offset`` pixels above the baseline
    (negative values lower it).
    """
    # Distance the emoji's center sits below the canvas center
    delta = round(x_height / 4 - baseline_offset - height / 2)
    pad = abs(delta)
    canvas = QImage(width, height + 2 * pad, QImage.Format.Format_ARGB32_Premultiplied)
    canvas.fill(QColor(0, 0, 0, 0))
    # Null images (missing theme icons) stay transparent instead of Qt's broken-image glyph
    if not image.isNull():
        top = 2 * pad if delta > 0 else 0
        painter = QPainter(canvas)
        try:
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
            painter.drawImage(QRect(0, top, width, height), image)
        finally:
            painter.end()
    return canvas


class LoadState(str, Enum):
    """Resolution state of an EmojiText."""

    IDLE = "idle"
    PLACEHOLDERS_SHOWN = "placeholders_shown"
    RESOLVED = "resolved"


class EmojiText(QWidget):
    """Text with support for custom emojis.

    Custom emojis are written as ``:shortcode:``. Local and symbol emojis
    show up immediately; remote emojis show a placeholder until the image
    pipeline delivers them. Shortcodes that cannot be resolved stay as
    literal text.
    """

    state_changed = Signal(object)  # LoadState
    emojis_resolved = Signal()

    def __init__(
        self,
        text: str,
        emojis: Sequence[CustomEmoji] | None = None,
        markdown: bool = False,
        parent: QWidget | None = None,
    ):
        super().__init__(parent)
        self._ready = False
        self._raw = text
        self._emojis: list[CustomEmoji] = list(emojis or [])
        self._is_markdown = markdown
        self._is_bold = False
        self._prepend: TextCallback | None = None
        self._append: TextCallback | None = None

        # Per-widget overrides of the environment
        self._pipeline: ImagePipeline | None = None
        self._placeholder: Placeholder | None = None
        self._emoji_size: float | None = None
        self._baseline_offset: float | None = None

        self._identity: int | None = None
        self._generation = 0
        self._env: EmojiEnvironment | None = None
        self._metrics: EmojiMetrics | None = None
        self._rendered: dict[str, RenderedEmoji] = {}
        self._local: dict[str, RenderedEmoji] = {}
        self._state = LoadState.IDLE
        self._worker: EmojiLoadWorker | None = None

        # Coalesces modifier chains into a single worker start
        self._start_timer = QTimer(self)
        self._start_timer.setSingleShot(True)
        self._start_timer.setInterval(0)
        self._start_timer.timeout.connect(self._start_worker)

        self._document = QTextDocument(self)
        self._document.setDocumentMargin(0)

        policy = QSizePolicy(QSizePolicy.Policy.Preferred, QSizePolicy.Policy.Preferred)
        policy.setHeightForWidth(True)
        self.setSizePolicy(policy)

        self._ready = True
        self._refresh()

    # --- Initializers ---

    @classmethod
    def from_markdown(
        cls, markdown: str, emojis: Sequence[CustomEmoji], parent: QWidget | None = None
    ) -> "EmojiText":
        """Markdown formatted text with custom emojis."""
        return cls(markdown, emojis, markdown=True, parent=parent)

    @classmethod
    def from_verbatim(
        cls, verbatim: str, emojis: Sequence[CustomEmoji], parent: QWidget | None = None
    ) -> "EmojiText":
        """Plain text displayed as-is with custom emojis."""
        return cls(verbatim, emojis, markdown=False, parent=parent)

    # --- Modifiers ---

    def bold(self) -> "EmojiText":
        self._is_bold = True
        self._rebuild_document()
        return self

    def prepend(self, text: TextCallback) -> "EmojiText":
        """Prepend text produced by ``text`` (called on every render)."""
        self._prepend = text
        self._rebuild_document()
        return self

    def append(self, text: TextCallback) -> "EmojiText":
        """Append text produced by ``text`` (called on every render)."""
        self._append = text
        self._rebuild_document()
        return self

    def emoji_size(self, size: float | None) -> "EmojiText":
        self._emoji_size = size
        self._refresh(force=True)
        return self

    def emoji_baseline_offset(self, offset: float | None) -> "EmojiText":
        self._baseline_offset = offset
        self._refresh(force=True)
        return self

    def placeholder(self, placeholder: Placeholder | None) -> "EmojiText":
        self._placeholder = placeholder
        self._refresh(force=True)
        return self

    def image_pipeline(self, pipeline: ImagePipeline | None) -> "EmojiText":
        self._pipeline = pipeline
        self._refresh(force=True)
        return self

    # --- Content ---

    def text(self) -> str:
        return self._raw

    def emojis(self) -> list[CustomEmoji]:
        return list(self._emojis)

    def is_markdown(self) -> bool:
        return self._is_markdown

    def set_content(
        self, text: str, emojis: Sequence[CustomEmoji], markdown: bool | None = None
    ) -> None:
        """Replace text and emojis; resolves again only if they changed."""
        self._raw = text
        self._emojis = list(emojis)
        if markdown is not None and markdown != self._is_markdown:
            self._is_markdown = markdown
            self._rebuild_document()
        self._refresh()

    def set_text(self, text: str) -> None:
        self.set_content(text, self._emojis)

    def set_emojis(self, emojis: Sequence[CustomEmoji]) -> None:
        self.set_content(self._raw, emojis)

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state == LoadState.PLACEHOLDERS_SHOWN

    def content_identity(self) -> int:
        return content_identity(self._raw, self._emojis)

    def resolved_emojis(self) -> dict[str, RenderedEmoji]:
        return dict(self._rendered)

    def segments(self) -> list[Segment]:
        return resolve_segments(self._raw, self._rendered)

    def plain_text(self) -> str:
        """Rendered text with emojis shown as ``<icon:...>``/``<image:...>``."""
        parts = []
        if self._prepend is not None:
            parts.append(self._prepend())
        parts.append(describe_segments(self.segments()))
        if self._append is not None:
            parts.append(self._append())
        return "".join(parts)

    def document(self) -> QTextDocument:
        return self._document

    # --- Resolution ---

    def environment_changed(self) -> None:
        """Resolve again if the closest environment is no longer the one in use."""
        if self._emojis and self._environment() is not self._env:
            self._refresh(force=True)

    def _environment(self) -> EmojiEnvironment:
        return environment_for(self)

    def _current_metrics(self, env: EmojiEnvironment) -> EmojiMetrics:
        size = self._emoji_size if self._emoji_size is not None else env.emoji_size
        offset = self._baseline_offset
        if offset is None:
            offset = env.baseline_offset
        return emoji_metrics(self.font(), size, offset)

    def _set_state(self, state: LoadState) -> None:
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)

    def _refresh(self, force: bool = False) -> None:
        if not self._ready:
            return
        identity = content_identity(self._raw, self._emojis)
        if not force and identity == self._identity:
            return
        self._identity = identity
        self._generation += 1
        self._cancel_worker()

        if not self._emojis:
            self._rendered = {}
            self._local = {}
            self._set_state(LoadState.IDLE)
            self._rebuild_document()
            return

        env = self._environment()
        self._env = env
        self._metrics = self._current_metrics(env)
        placeholder = self._placeholder or env.placeholder
        self._rendered = load_placeholders(self._emojis, self._metrics, placeholder)
        self._set_state(LoadState.PLACEHOLDERS_SHOWN)
        self._rebuild_document()

        if has_remote(self._emojis):
            self._local = resolve_local(self._emojis, self._metrics, placeholder)
            self._start_timer.start()
        else:
            self._set_state(LoadState.RESOLVED)
            self.emojis_resolved.emit()

    def _start_worker(self) -> None:
        if self._state != LoadState.PLACEHOLDERS_SHOWN:
            return
        env = self._env or self._environment()
        worker = EmojiLoadWorker(
            self._generation,
            self._emojis,
            self._metrics or self._current_metrics(env),
            self._pipeline or env.image_pipeline,
            max_concurrent=env.max_concurrent_fetches,
        )
        worker.emoji_resolved.connect(self._on_emoji_resolved)
        worker.resolution_finished.connect(self._on_resolution_finished)
        worker.finished.connect(lambda w=worker: _release_worker(w))
        _live_workers.add(worker)
        self._worker = worker
        logger.debug(f"Resolving {len(self._emojis)} emojis for {self._raw[:40]!r}")
        worker.start()

    def _cancel_worker(self) -> None:
        self._start_timer.stop()
        if self._worker is not None:
            self._worker.requestInterruption()
            self._worker = None

    def _on_emoji_resolved(self, token: int, shortcode: str, rendered) -> None:
        if token != self._generation:
            return
        if rendered is None:
            self._rendered.pop(shortcode, None)
        else:
            self._rendered[shortcode] = rendered
        self._rebuild_document()

    def _on_resolution_finished(self, token: int, result) -> None:
        if token != self._generation:
            return
        # A failed pass leaves every remote emoji as literal text
        self._rendered = merge_resolved(self._emojis, self._local, result or {})
        self._worker = None
        self._set_state(LoadState.RESOLVED)
        self._rebuild_document()
        self.emojis_resolved.emit()

    # --- Rendering ---

    def _rebuild_document(self) -> None:
        if not self._ready:
            return
        doc = self._document
        doc.clear()
        doc.setDefaultFont(self.font())
        cursor = QTextCursor(doc)

        plain = QTextCharFormat()
        text_format = QTextCharFormat()
        if self._is_bold:
            text_format.setFontWeight(QFont.Weight.Bold)

        if self._prepend is not None:
            cursor.insertText(self._prepend(), plain)

        for segment in self.segments():
            if isinstance(segment, EmojiSegment):
                self._insert_emoji(cursor, segment)
            else:
                self._insert_text(cursor, segment.text, text_format)

        if self._append is not None:
            cursor.insertText(self._append(), plain)

        self.updateGeometry()
        self.update()

    def _insert_text(self, cursor: QTextCursor, text: str, text_format: QTextCharFormat) -> None:
        if not self._is_markdown:
            cursor.insertText(text, text_format)
            return
        # The Markdown parser trims surrounding whitespace, keep it as plain text
        body = text.strip()
        leading = text[: len(text) - len(text.lstrip())]
        trailing = text[len(text.rstrip()) :] if body else ""
        if leading:
            cursor.insertText(leading, text_format)
        if body:
            start = cursor.position()
            cursor.insertMarkdown(body)
            if self._is_bold:
                end = cursor.position()
                cursor.setPosition(start)
                cursor.setPosition(end, QTextCursor.MoveMode.KeepAnchor)
                cursor.mergeCharFormat(text_format)
                cursor.clearSelection()
                cursor.setPosition(end)
        if trailing:
            cursor.insertText(trailing, text_format)

    def _insert_emoji(self, cursor: QTextCursor, segment: EmojiSegment) -> None:
        emoji = segment.emoji
        width = max(1, math.ceil(emoji.width))
        height = max(1, math.ceil(emoji.height))
        x_height = QFontMetrics(self.font()).xHeight()
        canvas = _baseline_canvas(emoji.image, width, height, emoji.baseline_offset or 0.0, x_height)

        url = QUrl(f"emoji:{quote(segment.shortcode, safe='')}")
        self._document.addResource(QTextDocument.ResourceType.ImageResource, url, canvas)

        image_format = QTextImageFormat()
        image_format.setName(url.toString())
        image_format.setFont(self.font())
        image_format.setVerticalAlignment(QTextCharFormat.VerticalAlignment.AlignMiddle)
        image_format.setWidth(canvas.width())
        image_format.setHeight(canvas.height())
        image_format.setToolTip(f":{segment.shortcode}:")
        cursor.insertImage(image_format)

    # --- QWidget ---

    def changeEvent(self, event: QEvent) -> None:  # noqa: N802
        super().changeEvent(event)
        if not getattr(self, "_ready", False):
            return
        if event.type() == QEvent.Type.FontChange:
            self._refresh(force=True)
        elif event.type() == QEvent.Type.ParentChange:
            self.environment_changed()

    def hasHeightForWidth(self) -> bool:  # noqa: N802
        return True

    def heightForWidth(self, width: int) -> int:  # noqa: N802
        self._document.setTextWidth(width)
        return math.ceil(self._document.size().height())

    def sizeHint(self) -> QSize:  # noqa: N802
        self._document.setTextWidth(-1)
        size = self._document.size()
        return QSize(math.ceil(self._document.idealWidth()), math.ceil(size.height()))

    def minimumSizeHint(self) -> QSize:  # noqa: N802
        metrics = QFontMetricsF(self.font())
        return QSize(0, math.ceil(metrics.height()))

    def paintEvent(self, event) -> None:  # noqa: N802
        self._document.setTextWidth(self.width())
        painter = QPainter(self)
        try:
            self._document.drawContents(painter)
        finally:
            painter.end()
