"""Qt widgets for emoji text."""

from .emoji_text import EmojiText, LoadState
from .environment import (
    EmojiEnvironment,
    default_environment,
    environment_for,
    set_default_environment,
    set_environment,
)

__all__ = [
    "EmojiText",
    "LoadState",
    "EmojiEnvironment",
    "default_environment",
    "environment_for",
    "set_default_environment",
    "set_environment",
]
