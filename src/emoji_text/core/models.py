"""Data models for custom emojis."""

from dataclasses import dataclass, field

from PySide6.QtGui import QImage

DEFAULT_PLACEHOLDER_ICON = "image-missing"


@dataclass(frozen=True)
class CustomEmoji:
    """Base class for a custom emoji descriptor.

    The shortcode is the text between the colons (``:blobcat:`` -> ``blobcat``)
    and must be unique within one EmojiText.
    """

    shortcode: str

    def identity_key(self) -> tuple:
        """Hashable key describing this emoji's source."""
        return ("custom", self.shortcode)


@dataclass(frozen=True)
class RemoteEmoji(CustomEmoji):
    """Emoji whose image is fetched through the image pipeline."""

    url: str = ""

    def identity_key(self) -> tuple:
        return ("remote", self.shortcode, self.url)


@dataclass(frozen=True)
class LocalEmoji(CustomEmoji):
    """Emoji backed by an already decoded image."""

    image: QImage = field(default_factory=QImage, compare=False)

    def identity_key(self) -> tuple:
        return ("local", self.shortcode, self.image.cacheKey())


@dataclass(frozen=True)
class SymbolEmoji(CustomEmoji):
    """Emoji drawn from the platform icon theme (``QIcon.fromTheme``)."""

    icon_name: str | None = None  # Defaults to the shortcode

    @property
    def symbol(self) -> str:
        return self.icon_name or self.shortcode

    def identity_key(self) -> tuple:
        return ("symbol", self.shortcode, self.symbol)


@dataclass
class RenderedEmoji:
    """A resolved emoji visual ready for display."""

    image: QImage
    width: float
    height: float
    baseline_offset: float | None = None
    symbol: str | None = None  # Icon name for theme glyphs

    @property
    def is_symbol(self) -> bool:
        return self.symbol is not None


@dataclass(frozen=True)
class Placeholder:
    """Visual shown for a remote emoji while its image is loading."""

    symbol: str | None = DEFAULT_PLACEHOLDER_ICON
    image: QImage | None = field(default=None, compare=False)

    @classmethod
    def from_symbol(cls, name: str) -> "Placeholder":
        return cls(symbol=name)

    @classmethod
    def from_image(cls, image: QImage) -> "Placeholder":
        return cls(symbol=None, image=image)
