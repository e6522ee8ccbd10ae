"""Widget-scoped configuration for EmojiText.

An environment set on a widget applies to every EmojiText below it in the
parent chain; widgets without one use the application default.
"""

import logging
import weakref
from dataclasses import dataclass, field, replace

from PySide6.QtWidgets import QWidget

from ..core.models import Placeholder
from ..core.settings import EmojiTextSettings
from ..loading.pipeline import ImagePipeline
from ..loading.resolver import CONCURRENT_FETCHES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmojiEnvironment:
    """Configuration shared by the EmojiText widgets of a subtree."""

    image_pipeline: ImagePipeline = field(default_factory=ImagePipeline)
    placeholder: Placeholder = field(default_factory=Placeholder)
    emoji_size: float | None = None
    baseline_offset: float | None = None
    max_concurrent_fetches: int = CONCURRENT_FETCHES

    @classmethod
    def from_settings(
        cls, settings: EmojiTextSettings, image_pipeline: ImagePipeline | None = None
    ) -> "EmojiEnvironment":
        return cls(
            image_pipeline=image_pipeline or ImagePipeline(),
            placeholder=Placeholder.from_symbol(settings.placeholder_icon),
            emoji_size=float(settings.emoji_size) if settings.emoji_size else None,
            baseline_offset=settings.baseline_offset,
            max_concurrent_fetches=settings.max_concurrent_fetches,
        )

    def with_changes(self, **changes) -> "EmojiEnvironment":
        return replace(self, **changes)


_default_environment = EmojiEnvironment()
_scoped: "weakref.WeakKeyDictionary[QWidget, EmojiEnvironment]" = weakref.WeakKeyDictionary()


def default_environment() -> EmojiEnvironment:
    """Get the application-wide environment."""
    return _default_environment


def set_default_environment(env: EmojiEnvironment) -> None:
    """Replace the application-wide environment.

    Existing widgets switch over on their next refresh.
    """
    global _default_environment
    _default_environment = env
    logger.debug(f"Default emoji environment set (pipeline={type(env.image_pipeline).__name__})")


def set_environment(widget: QWidget, env: EmojiEnvironment | None) -> None:
    """Scope an environment to a widget and its descendants (None removes it).

    EmojiText widgets already in the subtree pick up the change right away.
    """
    from .emoji_text import EmojiText

    if env is None:
        _scoped.pop(widget, None)
    else:
        _scoped[widget] = env

    targets = widget.findChildren(EmojiText)
    if isinstance(widget, EmojiText):
        targets.append(widget)
    for target in targets:
        target.environment_changed()


def environment_for(widget: QWidget | None) -> EmojiEnvironment:
    """Find the closest environment walking up the parent chain."""
    while widget is not None:
        env = _scoped.get(widget)
        if env is not None:
            return env
        widget = widget.parentWidget()
    return _default_environment
