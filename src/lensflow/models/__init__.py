"""Data models for LensFlow."""

from .photo import ALL_CATEGORIES, MUTABLE_FIELDS, Category, Photo, PhotoState
from .analysis import AnalysisResult
from .media import MediaPayload

__all__ = [
    'ALL_CATEGORIES',
    'MUTABLE_FIELDS',
    'Category',
    'Photo',
    'PhotoState',
    'AnalysisResult',
    'MediaPayload',
]
