"""Clients for the external vision and video services."""

from lensflow.analyzer.vision_client import VisionAnalyzerClient
from lensflow.analyzer.video_client import VideoGeneratorClient

__all__ = [
    "VisionAnalyzerClient",
    "VideoGeneratorClient",
]
