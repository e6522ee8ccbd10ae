"""Version information for EmojiText."""

__version__ = "1.0.0"
