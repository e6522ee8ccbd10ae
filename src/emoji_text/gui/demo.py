"""Demo window showing EmojiText samples."""

import logging
import sys

from PySide6.QtWidgets import (
    QApplication,
    QGroupBox,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from ..core.models import RemoteEmoji, SymbolEmoji
from ..core.settings import EmojiTextSettings
from ..loading.pipeline import AiohttpImagePipeline
from .emoji_text import EmojiText
from .environment import EmojiEnvironment, set_default_environment

logger = logging.getLogger(__name__)

MASTODON_EMOJI_URL = (
    "https://files.mastodon.social/custom_emojis/images/000/003/675/original/089aaae26a2abcc1.png"
)


def _sample_emojis() -> list:
    return [
        RemoteEmoji("mastodon", url=MASTODON_EMOJI_URL),
        SymbolEmoji("computer", icon_name="computer"),
    ]


class DemoWindow(QWidget):
    """Window listing verbatim and Markdown EmojiText samples."""

    def __init__(self, parent: QWidget | None = None):
        super().__init__(parent)
        self.setWindowTitle("EmojiText")
        self.resize(520, 640)

        content = QWidget()
        layout = QVBoxLayout(content)
        layout.addWidget(self._build_text_section())
        layout.addWidget(self._build_markdown_section())
        layout.addStretch()

        scroll = QScrollArea(self)
        scroll.setWidgetResizable(True)
        scroll.setWidget(content)
        outer = QVBoxLayout(self)
        outer.setContentsMargins(0, 0, 0, 0)
        outer.addWidget(scroll)

    def _build_text_section(self) -> QGroupBox:
        emojis = _sample_emojis()
        box = QGroupBox("Text")
        layout = QVBoxLayout(box)
        layout.addWidget(
            EmojiText.from_verbatim(
                "Hello Moon & Stars :weather-clear-night:",
                [SymbolEmoji("weather-clear-night")],
            )
        )
        layout.addWidget(
            EmojiText.from_verbatim("Hello World :mastodon: with a remote emoji", emojis)
        )
        layout.addWidget(
            EmojiText.from_verbatim("Hello World :computer: with a local emoji", emojis)
        )

        large = EmojiText.from_verbatim("Hello World :mastodon: with a remote emoji", emojis)
        font = large.font()
        font.setPointSizeF(font.pointSizeF() * 2)
        large.setFont(font)
        layout.addWidget(large)

        layout.addWidget(
            EmojiText.from_verbatim(
                "Hello World :mastodon: with a custom emoji size", emojis
            )
            .emoji_size(34)
            .emoji_baseline_offset(-8.5)
        )
        return box

    def _build_markdown_section(self) -> QGroupBox:
        emojis = _sample_emojis()
        box = QGroupBox("Markdown")
        layout = QVBoxLayout(box)
        layout.addWidget(
            EmojiText.from_markdown("**Hello** *World* :mastodon: with a remote emoji", emojis)
        )
        layout.addWidget(
            EmojiText.from_markdown(
                "**Hello** *World* :mastodon: :test: with a remote emoji and a fake emoji",
                emojis,
            )
        )
        layout.addWidget(
            EmojiText.from_markdown(
                "**Hello** *World* :test: with a remote emoji that will not respond properly",
                [RemoteEmoji("test", url="about:blank")],
            )
        )
        layout.addWidget(
            EmojiText.from_markdown("**Hello** *World* :notAnEmoji: with no emojis", [])
        )
        layout.addWidget(
            EmojiText.from_markdown("**Hello** *World* :mastodon:", emojis)
            .bold()
            .prepend(lambda: "Prepended - ")
            .append(lambda: " - Appended")
        )
        return box


def run(settings: EmojiTextSettings | None = None) -> int:
    """Run the demo application."""
    settings = settings or EmojiTextSettings.load()
    app = QApplication.instance() or QApplication(sys.argv)

    pipeline = AiohttpImagePipeline(
        timeout=settings.fetch_timeout,
        max_entries=settings.memory_cache_entries,
    )
    set_default_environment(EmojiEnvironment.from_settings(settings, pipeline))

    window = DemoWindow()
    window.show()
    logger.info("EmojiText demo started")
    return app.exec()
