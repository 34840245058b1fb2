from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class UserProgress:
    """Per-user completion of one dataset."""

    annotated: int
    total: int

    @property
    def percentage(self) -> float:
        # Empty datasets count as 0% complete.
        if self.total == 0:
            return 0.0
        return round(self.annotated / self.total * 100, 2)

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.annotated == self.total

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "percentage": self.percentage, "complete": self.complete}


@dataclass
class DatasetCoverage:
    """Multi-annotator coverage of one dataset."""

    total_records: int
    annotated_records: int
    distinct_annotators: int

    @property
    def coverage_pct(self) -> float:
        if self.total_records == 0:
            return 0.0
        return round(self.annotated_records / self.total_records * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {**asdict(self), "coverage_pct": self.coverage_pct}


@dataclass
class UserStats:
    total_annotations: int
    datasets_worked_on: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AnnotatorCount:
    """Records annotated by one user in one dataset."""

    annotator: str
    annotated: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlatformStats:
    total_datasets: int
    total_records: int
    total_users: int
    total_annotations: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ResumePosition:
    """Where navigation opens for a returning user.

    `wrapped` is set when the user's last save was on the final record and
    the index wrapped to 0, so callers can show completion instead of looping.
    """

    index: int
    wrapped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
