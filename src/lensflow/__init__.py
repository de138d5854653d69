"""LensFlow - AI-enriched photo timeline with image-to-video generation."""

__version__ = "0.1.0"
__author__ = "LensFlow Team"
__description__ = "Photo collection enriched by a vision model, with optional generated motion clips"

from .core.config import Config, get_config
from .core.logger import get_logger, setup_logging
from .pipeline.orchestrator import PipelineOrchestrator
from .pipeline.store import PhotoStore
from .pipeline.views import LiveView, filter_photos, group_by_month

__all__ = [
    'Config',
    'get_config',
    'get_logger',
    'setup_logging',
    'PipelineOrchestrator',
    'PhotoStore',
    'LiveView',
    'filter_photos',
    'group_by_month',
]
