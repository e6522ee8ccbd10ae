"""Emoji models, text segmentation and settings."""

from .models import CustomEmoji, LocalEmoji, Placeholder, RemoteEmoji, RenderedEmoji, SymbolEmoji
from .segments import EmojiSegment, TextSegment, content_identity, resolve_segments
from .settings import EmojiTextSettings

__all__ = [
    "CustomEmoji",
    "RemoteEmoji",
    "LocalEmoji",
    "SymbolEmoji",
    "RenderedEmoji",
    "Placeholder",
    "TextSegment",
    "EmojiSegment",
    "content_identity",
    "resolve_segments",
    "EmojiTextSettings",
]
