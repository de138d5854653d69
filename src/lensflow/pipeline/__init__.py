"""Photo pipeline: store, orchestration and derived views."""

from .store import PhotoStore
from .views import LiveView, TimelineGroup, filter_photos, group_by_month
from .orchestrator import PipelineOrchestrator

__all__ = [
    'PhotoStore',
    'LiveView',
    'TimelineGroup',
    'filter_photos',
    'group_by_month',
    'PipelineOrchestrator',
]
