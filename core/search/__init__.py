# Path: core/search/__init__.py
# Purpose: Package initializer for result filters and pipeline orchestration.
# Layer: core/search.
# Details: Exposes filter interfaces and the main search pipeline entrypoint.

from .filters import (
    DistanceRangeFilter,
    ExcludeImageFilter,
    RecordNameFilter,
    ResultFilter,
    SearchFilters,
    TextFilter,
)
from .pipeline import SearchPipeline

__all__ = [
    "SearchPipeline",
    "SearchFilters",
    "ResultFilter",
    "TextFilter",
    "RecordNameFilter",
    "DistanceRangeFilter",
    "ExcludeImageFilter",
]
