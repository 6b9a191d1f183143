"""Column naming and load-time schema validation."""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Iterable, Mapping, Optional

import pandas as pd

from . import config
from .exceptions import SchemaError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def canonicalize_column_name(name: object) -> str:
    """Lowercase a raw header and replace whitespace runs with underscores."""
    return _WHITESPACE.sub("_", str(name).strip().lower())


def canonicalize_columns(
    df: pd.DataFrame,
    *,
    renames: Optional[Mapping[str, str]] = None,
    dataset: str = "input",
) -> pd.DataFrame:
    canonical = [canonicalize_column_name(column) for column in df.columns]
    if renames:
        canonical = [renames.get(column, column) for column in canonical]

    duplicates = sorted(name for name, count in Counter(canonical).items() if count > 1)
    if duplicates:
        raise SchemaError(dataset, duplicates=duplicates)

    renamed = df.copy()
    renamed.columns = canonical
    return renamed


def validate_columns(df: pd.DataFrame, required: Iterable[str], *, dataset: str) -> None:
    missing = [column for column in required if column not in df.columns]
    if missing:
        raise SchemaError(dataset, missing=missing)
    logger.debug("%s schema OK (%s columns)", dataset, len(df.columns))


def prepare_incident_table(raw: pd.DataFrame) -> pd.DataFrame:
    df = canonicalize_columns(raw, renames=config.INCIDENT_COLUMN_RENAMES, dataset="incidents")
    validate_columns(df, config.REQUIRED_INCIDENT_COLUMNS, dataset="incidents")
    absent = [column for column in config.OPTIONAL_INCIDENT_COLUMNS if column not in df.columns]
    if absent:
        logger.info("Optional incident columns not present: %s", ", ".join(absent))
    return df


def prepare_population_table(raw: pd.DataFrame, *, year_column: str = config.DEFAULT_POPULATION_YEAR) -> pd.DataFrame:
    df = canonicalize_columns(raw, dataset="population")
    validate_columns(df, (*config.REQUIRED_POPULATION_COLUMNS, year_column), dataset="population")
    return df


__all__ = [
    "canonicalize_column_name",
    "canonicalize_columns",
    "validate_columns",
    "prepare_incident_table",
    "prepare_population_table",
]
