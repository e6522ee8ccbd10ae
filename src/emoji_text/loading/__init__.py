"""Image pipelines and emoji resolution."""

from .pipeline import (
    AiohttpImagePipeline,
    ImageDecodeError,
    ImageFetchError,
    ImagePipeline,
    ImagePipelineError,
    ImagePipelineNotConfiguredError,
)
from .resolver import EmojiMetrics, emoji_metrics, load_emojis, load_placeholders
from .worker import EmojiLoadWorker

__all__ = [
    "ImagePipeline",
    "AiohttpImagePipeline",
    "ImagePipelineError",
    "ImagePipelineNotConfiguredError",
    "ImageFetchError",
    "ImageDecodeError",
    "EmojiMetrics",
    "emoji_metrics",
    "load_emojis",
    "load_placeholders",
    "EmojiLoadWorker",
]
