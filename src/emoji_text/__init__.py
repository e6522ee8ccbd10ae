"""Qt widget rendering text with inline custom emojis.

The widget lives in ``emoji_text.gui``, descriptors in ``emoji_text.core``
and image pipelines in ``emoji_text.loading``.
"""

from .__version__ import __version__

__all__ = ["__version__"]
