"""Tests for the EmojiText widget."""

import asyncio
import math

import pytest
from conftest import FakePipeline, make_image, wait_until
from PySide6.QtGui import QColor, QFont, QImage, QPainter
from PySide6.QtWidgets import QWidget

from emoji_text.core.models import (
    LocalEmoji,
    Placeholder,
    RemoteEmoji,
    RenderedEmoji,
    SymbolEmoji,
)
from emoji_text.gui.emoji_text import EmojiText, LoadState
from emoji_text.gui.environment import EmojiEnvironment, set_default_environment, set_environment
from emoji_text.loading import worker as worker_module
from emoji_text.loading.pipeline import ImagePipeline

OK_URL = "https://example.com/ok.png"
BAD_URL = "https://example.com/bad.png"
SLOW_URL = "https://example.com/slow.png"


class _DelayedPipeline(ImagePipeline):
    """Serves every URL with the same image after a per-URL delay."""

    def __init__(self, image: QImage, delays: dict[str, float]):
        self.image_data = image
        self.delays = delays

    async def image(self, url: str) -> QImage:
        await asyncio.sleep(self.delays.get(url, 0))
        return self.image_data


class _NonImagePipeline(ImagePipeline):
    async def image(self, url: str):
        return None


def _resolve(qapp, widget: EmojiText) -> None:
    assert wait_until(qapp, lambda: widget.state == LoadState.RESOLVED)


def _red_rows(document) -> list[int]:
    """Rows of the rendered document containing red emoji pixels."""
    document.setTextWidth(400)
    size = document.size()
    image = QImage(math.ceil(size.width()), math.ceil(size.height()), QImage.Format.Format_ARGB32)
    image.fill(QColor("white"))
    painter = QPainter(image)
    document.drawContents(painter)
    painter.end()

    rows = []
    for y in range(image.height()):
        for x in range(image.width()):
            color = image.pixelColor(x, y)
            if color.red() > 200 and color.green() < 60 and color.blue() < 60:
                rows.append(y)
                break
    return rows


def _baseline(document) -> float:
    layout = document.begin().layout()
    line = layout.lineAt(0)
    return layout.position().y() + line.y() + line.ascent()


# --- Construction ---


def test_no_emojis_shows_literal_text(qapp):
    widget = EmojiText("Hello :notAnEmoji:", [])
    assert widget.state == LoadState.IDLE
    assert widget.resolved_emojis() == {}
    assert widget.plain_text() == "Hello :notAnEmoji:"
    assert widget.document().toPlainText() == "Hello :notAnEmoji:"


def test_local_and_symbol_resolve_synchronously(qapp):
    local = LocalEmoji("blob", image=make_image())
    widget = EmojiText("A :blob: and :star:", [local, SymbolEmoji("star")])

    assert widget.state == LoadState.RESOLVED
    assert widget._worker is None
    assert widget.plain_text() == "A <image:blob> and <icon:star>"


def test_remote_shows_placeholder_then_image(qapp, fake_pipeline):
    widget = EmojiText("Look :ok:", [RemoteEmoji("ok", url=OK_URL)])
    widget.image_pipeline(fake_pipeline)

    assert widget.state == LoadState.PLACEHOLDERS_SHOWN
    assert widget.resolved_emojis()["ok"].symbol == "image-missing"

    _resolve(qapp, widget)
    rendered = widget.resolved_emojis()["ok"]
    assert rendered.symbol is None
    assert rendered.baseline_offset is not None
    assert widget.plain_text() == "Look <image:ok>"


def test_failed_remote_falls_back_to_shortcode(qapp):
    emojis = [SymbolEmoji("a"), RemoteEmoji("b", url=BAD_URL)]
    widget = EmojiText("Hi :a: :b:", emojis)

    _resolve(qapp, widget)
    assert set(widget.resolved_emojis()) == {"a"}
    assert widget.plain_text() == "Hi <icon:a> :b:"
    assert ":b:" in widget.document().toPlainText()


def test_non_image_result_falls_back_to_shortcode(qapp):
    emojis = [SymbolEmoji("a"), RemoteEmoji("b", url=OK_URL)]
    widget = EmojiText("Hi :a: :b:", emojis).image_pipeline(_NonImagePipeline())

    _resolve(qapp, widget)
    assert set(widget.resolved_emojis()) == {"a"}
    assert widget.plain_text() == "Hi <icon:a> :b:"


def test_failed_pass_drops_placeholders(qapp, fake_pipeline, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("resolution crashed")

    monkeypatch.setattr(worker_module, "fetch_remote", broken)
    emojis = [SymbolEmoji("a"), RemoteEmoji("b", url=OK_URL)]
    widget = EmojiText("Hi :a: :b:", emojis).image_pipeline(fake_pipeline)

    _resolve(qapp, widget)
    assert set(widget.resolved_emojis()) == {"a"}
    assert widget.plain_text() == "Hi <icon:a> :b:"


def test_unknown_shortcode_stays_literal(qapp):
    widget = EmojiText("Hi :a: :zzz:", [SymbolEmoji("a")])
    assert widget.plain_text() == "Hi <icon:a> :zzz:"


def test_emojis_resolved_signal(qapp, fake_pipeline):
    fired = []
    widget = EmojiText("x :ok:", [RemoteEmoji("ok", url=OK_URL)])
    widget.emojis_resolved.connect(lambda: fired.append(True))
    widget.image_pipeline(fake_pipeline)
    _resolve(qapp, widget)
    assert fired == [True]


# --- Identity ---


def test_unchanged_identity_does_not_resolve_again(qapp, fake_pipeline):
    emojis = [RemoteEmoji("ok", url=OK_URL)]
    widget = EmojiText("x :ok:", emojis).image_pipeline(fake_pipeline)
    _resolve(qapp, widget)
    before = widget.resolved_emojis()
    requested = list(fake_pipeline.requested)

    widget.set_content("x :ok:", list(emojis))

    assert widget.state == LoadState.RESOLVED
    assert widget.resolved_emojis() == before
    assert fake_pipeline.requested == requested


def test_new_content_supersedes_previous(qapp, fake_pipeline):
    widget = EmojiText("x :ok:", [RemoteEmoji("ok", url=OK_URL)]).image_pipeline(fake_pipeline)
    widget.set_content("y :star:", [SymbolEmoji("star")])

    assert widget.state == LoadState.RESOLVED
    wait_until(qapp, lambda: False, timeout=0.2)
    assert set(widget.resolved_emojis()) == {"star"}
    assert widget.plain_text() == "y <icon:star>"


def test_newer_remote_pass_ignores_older_results(qapp, red_image):
    pipeline = _DelayedPipeline(red_image, {SLOW_URL: 0.3})
    widget = EmojiText("x :a:", [RemoteEmoji("a", url=SLOW_URL)]).image_pipeline(pipeline)
    assert wait_until(qapp, lambda: widget._worker is not None)
    first = widget._worker

    widget.set_content("y :b:", [RemoteEmoji("b", url=OK_URL)])
    assert widget._worker is None

    # Late results from the first worker arrive after the content changed
    stale = RenderedEmoji(image=red_image, width=16, height=16)
    first.emoji_resolved.emit(first.token, "a", stale)
    first.resolution_finished.emit(first.token, {"a": stale})
    assert widget.state == LoadState.PLACEHOLDERS_SHOWN
    assert set(widget.resolved_emojis()) == {"b"}
    assert widget.resolved_emojis()["b"].symbol == "image-missing"

    _resolve(qapp, widget)
    wait_until(qapp, lambda: False, timeout=0.5)
    assert set(widget.resolved_emojis()) == {"b"}
    assert widget.plain_text() == "y <image:b>"


def test_clearing_emojis_returns_to_idle(qapp):
    widget = EmojiText("x :star:", [SymbolEmoji("star")])
    widget.set_emojis([])
    assert widget.state == LoadState.IDLE
    assert widget.plain_text() == "x :star:"


def test_state_changes_are_signalled(qapp, fake_pipeline):
    states = []
    widget = EmojiText("x", [])
    widget.state_changed.connect(states.append)
    widget.image_pipeline(fake_pipeline)
    widget.set_content("x :ok:", [RemoteEmoji("ok", url=OK_URL)])
    _resolve(qapp, widget)
    assert states == [LoadState.PLACEHOLDERS_SHOWN, LoadState.RESOLVED]


# --- Modifiers ---


def test_prepend_and_append(qapp):
    widget = (
        EmojiText("mid :star:", [SymbolEmoji("star")])
        .prepend(lambda: "Prepended - ")
        .append(lambda: " - Appended")
    )
    assert widget.plain_text() == "Prepended - mid <icon:star> - Appended"
    assert widget.document().toPlainText().startswith("Prepended - mid ")


def test_bold_text(qapp):
    widget = EmojiText("Hello", []).bold()
    block = widget.document().begin()
    fragment = block.begin().fragment()
    assert fragment.text() == "Hello"
    assert fragment.charFormat().font().bold()


def test_markdown_text(qapp):
    widget = EmojiText.from_markdown("**Hello** *World* :star:", [SymbolEmoji("star")])
    assert widget.is_markdown()
    text = widget.document().toPlainText()
    assert "**" not in text
    assert "Hello" in text and "World" in text


def test_emoji_size_override(qapp):
    local = LocalEmoji("blob", image=make_image(64, 64))
    widget = EmojiText(":blob:", [local]).emoji_size(34)
    rendered = widget.resolved_emojis()["blob"]
    assert (rendered.width, rendered.height) == (34, 34)
    assert rendered.image.width() == 34


def test_baseline_offset_override(qapp, fake_pipeline):
    widget = (
        EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)])
        .image_pipeline(fake_pipeline)
        .emoji_baseline_offset(-8.5)
    )
    _resolve(qapp, widget)
    assert widget.resolved_emojis()["ok"].baseline_offset == -8.5


@pytest.mark.parametrize("offset", [-6.0, 0.0, 6.0])
def test_baseline_offset_moves_rendered_image(qapp, fake_pipeline, offset):
    font = QFont()
    font.setPixelSize(14)
    widget = EmojiText("Hxg :ok: Hxg", [RemoteEmoji("ok", url=OK_URL)])
    widget.setFont(font)
    widget.image_pipeline(fake_pipeline).emoji_size(8).emoji_baseline_offset(offset)
    _resolve(qapp, widget)

    rows = _red_rows(widget.document())
    assert 7 <= len(rows) <= 9
    # Bottom edge of the emoji sits ``offset`` pixels above the baseline
    bottom = rows[-1] + 1
    assert abs(bottom - (_baseline(widget.document()) - offset)) <= 2


def test_baseline_offsets_differ_on_screen(qapp, fake_pipeline):
    bottoms = {}
    for offset in (-6.0, 6.0):
        widget = EmojiText(":ok: Hxg", [RemoteEmoji("ok", url=OK_URL)])
        widget.image_pipeline(fake_pipeline).emoji_size(8).emoji_baseline_offset(offset)
        _resolve(qapp, widget)
        rows = _red_rows(widget.document())
        bottoms[offset] = rows[-1] - _baseline(widget.document())
    assert abs((bottoms[-6.0] - bottoms[6.0]) - 12) <= 1.5


def test_placeholder_override(qapp):
    widget = EmojiText(":r:", [RemoteEmoji("r", url=BAD_URL)]).placeholder(
        Placeholder.from_symbol("view-refresh")
    )
    assert widget.resolved_emojis()["r"].symbol == "view-refresh"
    _resolve(qapp, widget)
    assert widget.resolved_emojis() == {}


# --- Environment ---


def test_default_environment_pipeline(qapp, fake_pipeline):
    set_default_environment(EmojiEnvironment(image_pipeline=fake_pipeline))
    widget = EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)])
    _resolve(qapp, widget)
    assert "ok" in widget.resolved_emojis()


def test_scoped_environment_from_parent(qapp, red_image):
    parent = QWidget()
    set_environment(parent, EmojiEnvironment(image_pipeline=FakePipeline({OK_URL: red_image})))
    widget = EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)], parent=parent)
    _resolve(qapp, widget)
    assert "ok" in widget.resolved_emojis()


def test_widget_override_beats_environment(qapp, fake_pipeline):
    set_default_environment(EmojiEnvironment(image_pipeline=fake_pipeline))
    widget = EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)]).image_pipeline(ImagePipeline())
    _resolve(qapp, widget)
    assert widget.resolved_emojis() == {}


def test_environment_set_later_reaches_existing_widget(qapp, fake_pipeline):
    parent = QWidget()
    widget = EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)], parent=parent)
    _resolve(qapp, widget)
    assert widget.resolved_emojis() == {}

    set_environment(parent, EmojiEnvironment(image_pipeline=fake_pipeline))
    assert widget.state == LoadState.PLACEHOLDERS_SHOWN
    _resolve(qapp, widget)
    assert "ok" in widget.resolved_emojis()


def test_environment_on_widget_itself(qapp, fake_pipeline):
    widget = EmojiText(":ok:", [RemoteEmoji("ok", url=OK_URL)])
    set_environment(widget, EmojiEnvironment(image_pipeline=fake_pipeline))
    _resolve(qapp, widget)
    assert "ok" in widget.resolved_emojis()


# --- Layout ---


def test_size_hint_grows_with_text(qapp):
    short = EmojiText("Hi", [])
    long = EmojiText("Hi there, this is a much longer line of text", [])
    assert long.sizeHint().width() > short.sizeHint().width()
    assert short.hasHeightForWidth()
    assert long.heightForWidth(40) >= long.heightForWidth(1000)
