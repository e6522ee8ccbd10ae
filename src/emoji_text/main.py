#!/usr/bin/env python3
"""Entry point for the EmojiText demo."""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def main() -> int:
    """Main entry point."""
    try:
        from .core.settings import EmojiTextSettings
        from .gui.demo import run
    except ImportError as e:
        setup_logging()
        logging.error(f"Failed to import GUI: {e}")
        logging.error("Make sure PySide6 is installed:")
        logging.error("  pip install PySide6")
        return 1

    settings = EmojiTextSettings.load()
    setup_logging(settings.log_level)
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
