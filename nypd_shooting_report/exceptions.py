"""Errors raised or collected by the report pipeline."""
from __future__ import annotations

from typing import Iterable, Optional


class ReportError(Exception):
    """Base class for every pipeline error."""


class SourceUnavailable(ReportError):
    """An input resource could not be fetched or parsed."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"Source unavailable: {source} ({reason})")


class SchemaError(ReportError):
    """A loaded table does not have the expected columns."""

    def __init__(self, dataset: str, missing: Iterable[str] = (), duplicates: Iterable[str] = ()) -> None:
        self.dataset = dataset
        self.missing = tuple(missing)
        self.duplicates = tuple(duplicates)
        problems = []
        if self.missing:
            problems.append(f"missing required columns: {', '.join(self.missing)}")
        if self.duplicates:
            problems.append(f"duplicate columns after canonicalization: {', '.join(self.duplicates)}")
        super().__init__(f"{dataset} table is invalid ({'; '.join(problems)})")


class DataQualityError(ReportError):
    """A data anomaly. Row-level instances are collected as warnings rather than raised."""


class MalformedDate(DataQualityError):
    def __init__(self, row: object, raw_value: Optional[object]) -> None:
        self.row = row
        self.raw_value = raw_value
        super().__init__(f"Row {row}: cannot parse occurrence date {raw_value!r}")


class MissingPopulationRow(DataQualityError):
    def __init__(self, borough: str) -> None:
        self.borough = borough
        super().__init__(f"No usable population figure for borough {borough!r}")


__all__ = [
    "ReportError",
    "SourceUnavailable",
    "SchemaError",
    "DataQualityError",
    "MalformedDate",
    "MissingPopulationRow",
]
