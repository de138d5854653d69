"""Utility modules for LensFlow."""

from .media import MediaIngestAdapter, to_data_url
from .object_urls import ObjectURLRegistry
from .date_utils import DateUtils, month_label, parse_guessed_date

__all__ = [
    'MediaIngestAdapter',
    'ObjectURLRegistry',
    'DateUtils',
    'to_data_url',
    'month_label',
    'parse_guessed_date',
]
