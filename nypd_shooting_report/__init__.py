"""NYPD shooting incident report pipeline."""

from .aggregate import AggregateBucket, AggregateSet, borough_rates, build_aggregates, count_by
from .cli import main as cli_main
from .ingest import DatasetLoader, LoadStats, load_sources
from .report import generate_report
from .transform import IncidentRecord, NormalizationResult, normalize_incidents

__all__ = [
    "cli_main",
    "DatasetLoader",
    "LoadStats",
    "load_sources",
    "normalize_incidents",
    "IncidentRecord",
    "NormalizationResult",
    "count_by",
    "borough_rates",
    "build_aggregates",
    "AggregateBucket",
    "AggregateSet",
    "generate_report",
]
