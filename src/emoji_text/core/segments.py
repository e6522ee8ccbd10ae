"""Shortcode substitution - splits text into text and emoji segments."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .models import CustomEmoji, RenderedEmoji

# Private-use delimiter wrapped around substituted shortcodes
SEPARATOR = "\ue000"

SHORTCODE_RE = re.compile(r":([A-Za-z0-9_.+\-]+):")


@dataclass
class TextSegment:
    """A literal text portion of the rendered output."""

    text: str


@dataclass
class EmojiSegment:
    """An emoji portion of the rendered output."""

    shortcode: str
    emoji: RenderedEmoji


Segment = TextSegment | EmojiSegment


def content_identity(raw: str, emojis: Iterable[CustomEmoji]) -> int:
    """Hash of the text and the ordered emoji descriptors.

    Only used to decide whether emojis need to be resolved again.
    """
    return hash((raw, tuple(emoji.identity_key() for emoji in emojis)))


def find_shortcodes(text: str) -> list[str]:
    """Return the shortcodes referenced in text, in order of first use."""
    seen: dict[str, None] = {}
    for match in SHORTCODE_RE.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


def pre_render(raw: str, shortcodes: Iterable[str]) -> str:
    """Wrap every known ``:shortcode:`` in separators.

    Shortcodes not in ``shortcodes`` are left untouched so they show up
    as literal text.
    """
    text = raw.replace(SEPARATOR, "")
    # Longest first so "cat_happy" wins over "cat" in the alternation
    names = sorted({name for name in shortcodes if name}, key=len, reverse=True)
    if not names:
        return text
    pattern = re.compile(":(" + "|".join(re.escape(name) for name in names) + "):")
    return pattern.sub(lambda m: f"{SEPARATOR}{m.group(1)}{SEPARATOR}", text)


def split_segments(pre_rendered: str, rendered: Mapping[str, RenderedEmoji]) -> list[Segment]:
    """Split pre-rendered text on the separator into display segments."""
    segments: list[Segment] = []
    parts = pre_rendered.split(SEPARATOR)
    for index, part in enumerate(parts):
        if index % 2 == 1:
            emoji = rendered.get(part)
            if emoji is not None:
                segments.append(EmojiSegment(shortcode=part, emoji=emoji))
            else:
                segments.append(TextSegment(text=f":{part}:"))
        elif part:
            segments.append(TextSegment(text=part))
    return segments


def resolve_segments(raw: str, rendered: Mapping[str, RenderedEmoji]) -> list[Segment]:
    """Resolve raw text into text and emoji segments.

    Args:
        raw: Text containing ``:shortcode:`` references.
        rendered: Map of shortcode -> resolved emoji.

    Returns:
        List of TextSegment and EmojiSegment in display order.
    """
    if not raw:
        return []
    if not rendered:
        return [TextSegment(text=raw)]
    return split_segments(pre_render(raw, rendered.keys()), rendered)


def describe_segments(segments: Iterable[Segment]) -> str:
    """Render segments as plain text.

    Resolved emojis appear as ``<icon:name>`` (theme glyphs) or
    ``<image:shortcode>``.
    """
    out: list[str] = []
    for segment in segments:
        if isinstance(segment, EmojiSegment):
            if segment.emoji.is_symbol:
                out.append(f"<icon:{segment.emoji.symbol}>")
            else:
                out.append(f"<image:{segment.shortcode}>")
        else:
            out.append(segment.text)
    return "".join(out)
