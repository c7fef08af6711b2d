# Path: core/search/filters.py
# Purpose: Define post-resolution filters applied to ranked search matches.
# Layer: core/search.
# Details: Filters see resolved metadata only; they drop matches and never reorder survivors.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from core.errors import InvalidRequestError
from core.models.domain import RankedMatch


class ResultFilter(ABC):
    """Interface for predicates over resolved matches."""

    id: str
    description: str

    @abstractmethod
    def accepts(self, match: RankedMatch) -> bool:
        """Return True when the match should stay in the result list."""


class TextFilter(ResultFilter):
    """Case-insensitive substring match against the record description and name."""

    id = "text"
    description = "Keep matches whose record description or name contains the query text."

    def __init__(self, text: str) -> None:
        self.text = text.strip().lower()

    def accepts(self, match: RankedMatch) -> bool:
        if not self.text:
            return True
        return self.text in (match.description or "").lower() or self.text in (match.record_name or "").lower()


class RecordNameFilter(ResultFilter):
    """Case-insensitive substring match against the record name only."""

    id = "record_name"
    description = "Keep matches whose record name contains the given text."

    def __init__(self, name: str) -> None:
        self.name = name.strip().lower()

    def accepts(self, match: RankedMatch) -> bool:
        return not self.name or self.name in (match.record_name or "").lower()


class DistanceRangeFilter(ResultFilter):
    """Inclusive bounds on the index distance."""

    id = "distance_range"
    description = "Keep matches whose distance lies inside [min_distance, max_distance]."

    def __init__(self, min_distance: Optional[float] = None, max_distance: Optional[float] = None) -> None:
        if min_distance is not None and max_distance is not None and min_distance > max_distance:
            raise InvalidRequestError("min_distance must not exceed max_distance", step="filter")
        self.min_distance = min_distance
        self.max_distance = max_distance

    def accepts(self, match: RankedMatch) -> bool:
        if self.min_distance is not None and match.distance < self.min_distance:
            return False
        if self.max_distance is not None and match.distance > self.max_distance:
            return False
        return True


class ExcludeImageFilter(ResultFilter):
    """Drop a single image, used by find-similar to hide the source image."""

    id = "exclude_image"
    description = "Drop the match for one image id."

    def __init__(self, image_id: int) -> None:
        self.image_id = image_id

    def accepts(self, match: RankedMatch) -> bool:
        return match.image_id != self.image_id


class SearchFilters:
    """Conjunction of filters."""

    def __init__(self, filters: Optional[Iterable[ResultFilter]] = None) -> None:
        self.filters: List[ResultFilter] = list(filters or [])

    @classmethod
    def build(
        cls,
        text: Optional[str] = None,
        record_name: Optional[str] = None,
        min_distance: Optional[float] = None,
        max_distance: Optional[float] = None,
    ) -> "SearchFilters":
        """Build the filter set used by the advanced search surface; blank arguments add nothing."""

        filters: List[ResultFilter] = []
        if text and text.strip():
            filters.append(TextFilter(text))
        if record_name and record_name.strip():
            filters.append(RecordNameFilter(record_name))
        if min_distance is not None or max_distance is not None:
            filters.append(DistanceRangeFilter(min_distance, max_distance))
        return cls(filters)

    def add(self, result_filter: ResultFilter) -> "SearchFilters":
        return SearchFilters([*self.filters, result_filter])

    def __bool__(self) -> bool:
        return bool(self.filters)

    def accepts(self, match: RankedMatch) -> bool:
        return all(result_filter.accepts(match) for result_filter in self.filters)

    def apply(self, matches: Iterable[RankedMatch]) -> List[RankedMatch]:
        return [match for match in matches if self.accepts(match)]
