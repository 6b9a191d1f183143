"""Normalization of raw shooting incident rows."""
from __future__ import annotations

import datetime as dt
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from . import config
from .exceptions import DataQualityError, MalformedDate

logger = logging.getLogger(__name__)

_TIME_PATTERN = re.compile(r"^(\d{1,2})(?::(\d{2}))?(?::(\d{2}))?\s*([AaPp][Mm])?$")

OUTPUT_COLUMNS: tuple[str, ...] = (
    "incident_key",
    "occurred_on",
    "date_valid",
    "year",
    "month",
    "weekday",
    "occurred_at_hour",
    "hour_imputed",
    *config.CATEGORICAL_COLUMNS,
    "is_statistical_murder",
    *config.NUMERIC_COLUMNS,
)


@dataclass(frozen=True)
class IncidentRecord:
    incident_key: str
    occurred_on: Optional[dt.date]
    year: Optional[int]
    month: Optional[int]
    weekday: Optional[str]
    occurred_at_hour: int
    hour_imputed: bool
    borough: str
    location_of_occurrence: str
    location_description: str
    perpetrator_age_group: str
    perpetrator_sex: str
    perpetrator_race: str
    victim_age_group: str
    victim_sex: str
    victim_race: str
    is_statistical_murder: bool
    precinct: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class NormalizationResult:
    incidents: pd.DataFrame
    issues: List[DataQualityError] = field(default_factory=list)
    median_hour: Optional[int] = None

    @property
    def rows(self) -> int:
        return len(self.incidents)

    @property
    def malformed_dates(self) -> int:
        return sum(isinstance(issue, MalformedDate) for issue in self.issues)

    @property
    def imputed_hours(self) -> int:
        return int(self.incidents["hour_imputed"].sum()) if self.rows else 0


def parse_occurrence_dates(df: pd.DataFrame, *, strict: bool = False) -> Tuple[pd.DataFrame, List[MalformedDate]]:
    """Parse ``occurred_on_raw`` (MM/DD/YYYY) into ``occurred_on``.

    Rows that fail to parse keep ``NaT`` and ``date_valid = False`` so they
    drop out of date-based aggregates only. With ``strict`` the first failure
    is raised instead.
    """
    df = df.copy()
    raw = df["occurred_on_raw"]
    text = raw.where(raw.notna(), "").astype(str).str.strip()
    parsed = pd.to_datetime(text, format=config.DATE_FORMAT, errors="coerce")

    invalid = parsed.isna()
    issues = [MalformedDate(index, raw.loc[index]) for index in df.index[invalid.to_numpy()]]
    if issues and strict:
        raise issues[0]

    df["occurred_on"] = parsed
    df["date_valid"] = ~invalid
    if issues:
        logger.warning(
            "%s rows have malformed occurrence dates and are excluded from date-based aggregates",
            len(issues),
        )
        for issue in issues:
            logger.debug("%s", issue)
    return df, issues


def add_calendar_fields(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    occurred = df["occurred_on"].dt
    df["year"] = occurred.year.astype("Int64")
    df["month"] = occurred.month.astype("Int64")
    df["weekday"] = occurred.day_name()
    return df


def parse_hour(value: object) -> Optional[int]:
    """Extract the hour (0-23) from a free-text time, or ``None``."""
    if value is None or value is pd.NA or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (dt.time, dt.datetime)):
        return value.hour
    if isinstance(value, (int, np.integer)):
        return int(value) if 0 <= value <= 23 else None
    if isinstance(value, (float, np.floating)):
        if math.isnan(value) or not float(value).is_integer():
            return None
        return int(value) if 0 <= value <= 23 else None

    match = _TIME_PATTERN.match(str(value).strip())
    if not match:
        return None
    hour_text, minute_text, second_text, suffix = match.groups()
    if minute_text is not None and int(minute_text) > 59:
        return None
    if second_text is not None and int(second_text) > 59:
        return None

    hour = int(hour_text)
    if suffix:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if suffix.upper() == "PM" else 0)
    return hour if 0 <= hour <= 23 else None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def impute_hours(hours: Iterable[Optional[int]]) -> Tuple[pd.Series, Optional[int]]:
    """Fill every missing hour with the median of the known hours.

    The median is taken over the whole batch before anything is filled, and
    fractional medians round half up. Returns the filled series and the
    median used (``None`` when no hour is known and nothing is missing).
    """
    hours = pd.Series(hours)
    if not isinstance(hours.dtype, pd.Int64Dtype):
        hours = hours.astype("Int64")

    missing = hours.isna()
    known = hours[~missing]
    if known.empty:
        if missing.any():
            raise DataQualityError("No parseable occurrence hour in the batch; cannot impute missing hours")
        return hours.astype("int64"), None

    median = _round_half_up(float(known.median()))
    return hours.fillna(median).astype("int64"), median


def fill_categoricals(df: pd.DataFrame, columns: Iterable[str] = config.CATEGORICAL_COLUMNS) -> pd.DataFrame:
    """Replace null, empty and ``"(null)"`` values with the UNKNOWN sentinel."""
    df = df.copy()
    for column in columns:
        if column not in df.columns:
            df[column] = config.UNKNOWN
            continue
        values = df[column].astype(object)
        missing = values.isna() | values.isin(config.NULL_PLACEHOLDERS)
        df[column] = values.where(~missing, config.UNKNOWN)
    return df


def normalize_boroughs(df: pd.DataFrame) -> pd.DataFrame:
    """Strip and uppercase ``borough``; anything outside the five boroughs becomes UNKNOWN."""
    df = df.copy()
    boroughs = df["borough"].astype(object).where(df["borough"].notna(), config.UNKNOWN)
    boroughs = boroughs.astype(str).str.strip().str.upper()
    outside = ~boroughs.isin(config.BOROUGHS)
    unexpected = int((outside & (boroughs != config.UNKNOWN)).sum())
    if unexpected:
        logger.warning("Mapped %s rows with an unrecognized borough to %s", unexpected, config.UNKNOWN)
    df["borough"] = boroughs.where(~outside, config.UNKNOWN)
    return df


def normalize_murder_flag(value: object) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def normalize_incidents(raw: pd.DataFrame, *, strict: bool = False) -> NormalizationResult:
    """Turn a schema-checked incident table into normalized incident rows."""
    df, issues = parse_occurrence_dates(raw.reset_index(drop=True), strict=strict)
    df = add_calendar_fields(df)

    parsed_hours = pd.Series(
        pd.array([parse_hour(value) for value in df["occurred_at_raw"]], dtype="Int64"),
        index=df.index,
    )
    hours, median = impute_hours(parsed_hours)
    df["hour_imputed"] = parsed_hours.isna().astype(bool)
    df["occurred_at_hour"] = hours

    df = normalize_boroughs(fill_categoricals(df))
    df["is_statistical_murder"] = df["is_statistical_murder"].map(normalize_murder_flag).astype(bool)

    for column in config.NUMERIC_COLUMNS:
        if column in df.columns:
            df[column] = pd.to_numeric(df[column], errors="coerce")
        else:
            df[column] = np.nan

    if "incident_key" in df.columns:
        df["incident_key"] = df["incident_key"].fillna("").astype(str)
    else:
        df["incident_key"] = ""

    result = NormalizationResult(
        incidents=df.loc[:, list(OUTPUT_COLUMNS)].reset_index(drop=True),
        issues=list(issues),
        median_hour=median,
    )
    logger.info(
        "Normalized %s incidents (%s malformed dates, %s imputed hours, median hour %s)",
        result.rows,
        result.malformed_dates,
        result.imputed_hours,
        median,
    )
    return result


def _optional(value: object) -> object:
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def iter_records(df: pd.DataFrame) -> Iterator[IncidentRecord]:
    for row in df.itertuples(index=False):
        occurred_on = _optional(row.occurred_on)
        year = _optional(row.year)
        month = _optional(row.month)
        yield IncidentRecord(
            incident_key=row.incident_key,
            occurred_on=occurred_on.date() if occurred_on is not None else None,
            year=int(year) if year is not None else None,
            month=int(month) if month is not None else None,
            weekday=_optional(row.weekday),
            occurred_at_hour=int(row.occurred_at_hour),
            hour_imputed=bool(row.hour_imputed),
            borough=row.borough,
            location_of_occurrence=row.location_of_occurrence,
            location_description=row.location_description,
            perpetrator_age_group=row.perpetrator_age_group,
            perpetrator_sex=row.perpetrator_sex,
            perpetrator_race=row.perpetrator_race,
            victim_age_group=row.victim_age_group,
            victim_sex=row.victim_sex,
            victim_race=row.victim_race,
            is_statistical_murder=bool(row.is_statistical_murder),
            precinct=_optional(row.precinct),
            latitude=_optional(row.latitude),
            longitude=_optional(row.longitude),
        )


__all__ = [
    "IncidentRecord",
    "NormalizationResult",
    "parse_occurrence_dates",
    "add_calendar_fields",
    "parse_hour",
    "impute_hours",
    "fill_categoricals",
    "normalize_boroughs",
    "normalize_murder_flag",
    "normalize_incidents",
    "iter_records",
]
