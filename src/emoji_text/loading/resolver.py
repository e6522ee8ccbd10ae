"""Resolves emoji descriptors into rendered emojis."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from PySide6.QtCore import QSize, Qt
from PySide6.QtGui import QFont, QFontInfo, QFontMetricsF, QIcon, QImage

from ..core.models import (
    CustomEmoji,
    LocalEmoji,
    Placeholder,
    RemoteEmoji,
    RenderedEmoji,
    SymbolEmoji,
)
from .pipeline import ImagePipeline

logger = logging.getLogger(__name__)

CONCURRENT_FETCHES = 10

ResolvedCallback = Callable[[str, RenderedEmoji | None], None]


@dataclass(frozen=True)
class EmojiMetrics:
    """Target size and baseline alignment for emojis in a given font."""

    width: float
    height: float
    baseline_offset: float


def emoji_metrics(
    font: QFont,
    emoji_size: float | None = None,
    baseline_offset: float | None = None,
) -> EmojiMetrics:
    """Compute emoji metrics for a font.

    Emojis are square and as tall as the font's pixel size unless
    ``emoji_size`` overrides it. The default baseline offset lowers the
    image by half the gap between the font size and its cap height so
    it lines up with capital letters.
    """
    pixel_size = float(QFontInfo(font).pixelSize())
    if baseline_offset is None:
        cap_height = QFontMetricsF(font).capHeight()
        baseline_offset = -(pixel_size - cap_height) / 2
    size = float(emoji_size) if emoji_size else pixel_size
    return EmojiMetrics(width=size, height=size, baseline_offset=baseline_offset)


def _scaled(image: QImage, metrics: EmojiMetrics) -> QImage:
    if image.isNull():
        return image
    return image.scaled(
        QSize(round(metrics.width), round(metrics.height)),
        Qt.AspectRatioMode.KeepAspectRatio,
        Qt.TransformationMode.SmoothTransformation,
    )


def _icon_image(name: str, metrics: EmojiMetrics) -> QImage:
    """Draw a theme icon at the target size (null image if the theme lacks it)."""
    icon = QIcon.fromTheme(name)
    if icon.isNull():
        logger.debug(f"Icon theme has no icon named {name!r}")
        return QImage()
    return icon.pixmap(QSize(round(metrics.width), round(metrics.height))).toImage()


def render_symbol(emoji: SymbolEmoji, metrics: EmojiMetrics) -> RenderedEmoji:
    return RenderedEmoji(
        image=_icon_image(emoji.symbol, metrics),
        width=metrics.width,
        height=metrics.height,
        symbol=emoji.symbol,
    )


def render_local(
    emoji: LocalEmoji, metrics: EmojiMetrics, baseline_offset: float | None = None
) -> RenderedEmoji:
    return RenderedEmoji(
        image=_scaled(emoji.image, metrics),
        width=metrics.width,
        height=metrics.height,
        baseline_offset=baseline_offset,
    )


def render_placeholder(placeholder: Placeholder, metrics: EmojiMetrics) -> RenderedEmoji:
    if placeholder.image is not None:
        image = _scaled(placeholder.image, metrics)
    else:
        image = _icon_image(placeholder.symbol or "", metrics)
    return RenderedEmoji(
        image=image,
        width=metrics.width,
        height=metrics.height,
        symbol=placeholder.symbol,
    )


def load_placeholders(
    emojis: Sequence[CustomEmoji],
    metrics: EmojiMetrics,
    placeholder: Placeholder,
) -> dict[str, RenderedEmoji]:
    """Build the initial emoji map shown before remote images arrive.

    Local and symbol emojis are final already; everything else gets the
    placeholder visual.
    """
    placeholders: dict[str, RenderedEmoji] = {}
    for shortcode, emoji in latest_by_shortcode(emojis).items():
        if isinstance(emoji, LocalEmoji):
            placeholders[shortcode] = render_local(emoji, metrics)
        elif isinstance(emoji, SymbolEmoji):
            placeholders[shortcode] = render_symbol(emoji, metrics)
        else:
            placeholders[shortcode] = render_placeholder(placeholder, metrics)
    return placeholders


def has_remote(emojis: Sequence[CustomEmoji]) -> bool:
    return any(isinstance(emoji, RemoteEmoji) for emoji in emojis)


def latest_by_shortcode(emojis: Sequence[CustomEmoji]) -> dict[str, CustomEmoji]:
    """Map shortcode -> descriptor; the last descriptor wins for duplicates."""
    latest: dict[str, CustomEmoji] = {}
    for emoji in emojis:
        latest.pop(emoji.shortcode, None)
        latest[emoji.shortcode] = emoji
    return latest


def resolve_local(
    emojis: Sequence[CustomEmoji],
    metrics: EmojiMetrics,
    placeholder: Placeholder,
) -> dict[str, RenderedEmoji]:
    """Final visuals for every emoji that needs no network.

    Draws icons, so it must run on the GUI thread.
    """
    resolved: dict[str, RenderedEmoji] = {}
    for shortcode, emoji in latest_by_shortcode(emojis).items():
        if isinstance(emoji, RemoteEmoji):
            continue
        if isinstance(emoji, LocalEmoji):
            resolved[shortcode] = render_local(emoji, metrics, metrics.baseline_offset)
        elif isinstance(emoji, SymbolEmoji):
            resolved[shortcode] = render_symbol(emoji, metrics)
        else:
            logger.warning("Tried to load unknown emoji. Falling back to placeholder emoji")
            resolved[shortcode] = render_placeholder(placeholder, metrics)
    return resolved


async def fetch_remote(
    emojis: Sequence[CustomEmoji],
    metrics: EmojiMetrics,
    pipeline: ImagePipeline,
    on_resolved: ResolvedCallback | None = None,
    max_concurrent: int = CONCURRENT_FETCHES,
) -> dict[str, RenderedEmoji]:
    """Fetch the remote emojis concurrently.

    A failed fetch is logged and the shortcode is left out of the result
    so it renders as text. ``on_resolved`` is called as each shortcode
    settles (``None`` for failures). Only touches QImage, so it is safe
    to run on a worker thread.
    """
    sem = asyncio.Semaphore(max(1, max_concurrent))
    remote = [
        emoji for emoji in latest_by_shortcode(emojis).values() if isinstance(emoji, RemoteEmoji)
    ]
    results: dict[str, RenderedEmoji] = {}

    async def fetch_one(emoji: RemoteEmoji) -> None:
        async with sem:
            try:
                image = await pipeline.image(emoji.url)
                rendered = RenderedEmoji(
                    image=_scaled(image, metrics),
                    width=metrics.width,
                    height=metrics.height,
                    baseline_offset=metrics.baseline_offset,
                )
            except Exception as e:
                logger.error(f"Unable to load remote emoji {emoji.shortcode}: {e}")
                rendered = None
        if rendered is not None:
            results[emoji.shortcode] = rendered
        if on_resolved is not None:
            on_resolved(emoji.shortcode, rendered)

    if remote:
        await asyncio.gather(*(fetch_one(emoji) for emoji in remote))
    return {
        emoji.shortcode: results[emoji.shortcode] for emoji in remote if emoji.shortcode in results
    }


def merge_resolved(
    emojis: Sequence[CustomEmoji],
    local: dict[str, RenderedEmoji],
    remote: dict[str, RenderedEmoji],
) -> dict[str, RenderedEmoji]:
    """Combine local and remote results in descriptor order."""
    merged: dict[str, RenderedEmoji] = {}
    for shortcode in latest_by_shortcode(emojis):
        rendered = local.get(shortcode)
        if rendered is None:
            rendered = remote.get(shortcode)
        if rendered is not None:
            merged[shortcode] = rendered
    return merged


async def load_emojis(
    emojis: Sequence[CustomEmoji],
    metrics: EmojiMetrics,
    pipeline: ImagePipeline,
    placeholder: Placeholder,
    on_resolved: ResolvedCallback | None = None,
    max_concurrent: int = CONCURRENT_FETCHES,
) -> dict[str, RenderedEmoji]:
    """Resolve every emoji to its final visual.

    Failed remote emojis are missing from the result. Call from the GUI
    thread; EmojiLoadWorker runs only ``fetch_remote`` off-thread.
    """
    local = resolve_local(emojis, metrics, placeholder)
    remote = await fetch_remote(
        emojis, metrics, pipeline, on_resolved=on_resolved, max_concurrent=max_concurrent
    )
    return merge_resolved(emojis, local, remote)
