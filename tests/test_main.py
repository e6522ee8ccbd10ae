"""Tests for the demo entry point."""

import logging
import sys

from emoji_text import main


def test_main_without_gui_returns_error(monkeypatch, caplog):
    # A None entry makes the import system raise ImportError
    monkeypatch.setitem(sys.modules, "emoji_text.gui.demo", None)
    with caplog.at_level(logging.ERROR):
        assert main.main() == 1
    assert "Failed to import GUI" in caplog.text


def test_main_runs_demo_with_loaded_settings(monkeypatch, tmp_path):
    from emoji_text.core import settings as settings_module
    from emoji_text.gui import demo

    monkeypatch.setattr(settings_module, "get_config_dir", lambda: tmp_path)
    seen = []
    monkeypatch.setattr(demo, "run", lambda settings: seen.append(settings) or 0)

    assert main.main() == 0
    assert seen[0].placeholder_icon == "image-missing"
