"""Publish Word and PDF documents to WordPress."""

from .config import AppConfig, load_config
from .core import PublishingService
from .models import PublishRequest, PublishResult
from .resources import Resources, build_resources

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "PublishRequest",
    "PublishResult",
    "PublishingService",
    "Resources",
    "build_resources",
    "load_config",
]
