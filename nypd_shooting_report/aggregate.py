"""Grouped counts and per-capita rates over normalized incidents."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from . import config
from .exceptions import DataQualityError, MissingPopulationRow

logger = logging.getLogger(__name__)

# Grouping key -> column of the normalized incident table
KEY_COLUMNS: Dict[str, str] = {
    "year": "year",
    "month": "month",
    "weekday": "weekday",
    "borough": "borough",
    "hour": "occurred_at_hour",
}

DATE_KEYS = {"year", "month", "weekday"}
CHRONOLOGICAL_KEYS = {"year", "month"}


@dataclass(frozen=True)
class AggregateBucket:
    key: object
    count: int
    rate: Optional[float] = None


def _check_keys(keys: Tuple[str, ...]) -> None:
    if not 1 <= len(keys) <= 2:
        raise ValueError(f"Expected one or two grouping keys, got {len(keys)}")
    unknown = [key for key in keys if key not in KEY_COLUMNS]
    if unknown:
        raise ValueError(f"Unsupported grouping key(s): {', '.join(unknown)}")


def _rows_for(df: pd.DataFrame, keys: Tuple[str, ...]) -> pd.DataFrame:
    if DATE_KEYS.intersection(keys):
        return df[df["date_valid"]]
    return df


def count_by(df: pd.DataFrame, *keys: str) -> pd.DataFrame:
    """Count incidents per value of one or two keys.

    Date-derived keys only see rows whose occurrence date parsed. The result
    has one row per distinct key combination, sorted by key.
    """
    _check_keys(keys)
    rows = _rows_for(df, keys)
    columns = [KEY_COLUMNS[key] for key in keys]
    counts = (
        rows.groupby(columns)
        .size()
        .reset_index(name="count")
        .rename(columns={column: key for key, column in zip(keys, columns)})
    )
    counts["count"] = counts["count"].astype("int64")
    return counts.sort_values(list(keys)).reset_index(drop=True)


def order_for_display(counts: pd.DataFrame, key: str, *, value: str = "count") -> pd.DataFrame:
    if key in CHRONOLOGICAL_KEYS:
        return counts.sort_values(key).reset_index(drop=True)
    if key == "weekday":
        order = pd.Categorical(counts["weekday"], categories=config.DAY_NAME_ORDER, ordered=True)
        return counts.assign(_order=order).sort_values("_order").drop(columns="_order").reset_index(drop=True)
    return counts.sort_values([value, key], ascending=[False, True]).reset_index(drop=True)


def prepare_population(population: pd.DataFrame, *, year_column: str = config.DEFAULT_POPULATION_YEAR) -> pd.DataFrame:
    """Reduce the population table to one ``(borough, population)`` row per borough."""
    df = population.copy()
    df["borough"] = df["borough"].astype(str).str.strip().str.upper()
    figures = df[year_column].astype(str).str.replace(",", "", regex=False).str.strip()
    df["population"] = pd.to_numeric(figures, errors="coerce")
    df = df[df["borough"] != config.POPULATION_TOTAL_LABEL]
    df = df.drop_duplicates(subset="borough", keep="first")
    return df.loc[:, ["borough", "population"]].reset_index(drop=True)


def borough_rates(
    counts: pd.DataFrame,
    population: pd.DataFrame,
    *,
    base: int = config.RATE_BASE,
) -> Tuple[pd.DataFrame, List[MissingPopulationRow]]:
    """Join borough counts to population and compute incidents per ``base`` residents.

    ``population`` is the output of :func:`prepare_population`. Boroughs with
    no positive population figure get a missing rate and an issue; they are
    never reported as zero or infinity.
    """
    merged = counts.assign(_join=counts["borough"].astype(str).str.strip().str.upper()).merge(
        population.rename(columns={"borough": "_join"}),
        on="_join",
        how="left",
    )
    usable = merged["population"] > 0
    merged["rate_per_100k"] = (merged["count"] * base).div(merged["population"].where(usable))

    issues = [MissingPopulationRow(borough) for borough in merged.loc[~usable, "borough"]]
    for issue in issues:
        logger.warning("%s; rate reported as missing", issue)
    return merged.drop(columns="_join"), issues


def murder_share_by(df: pd.DataFrame, key: str) -> pd.DataFrame:
    _check_keys((key,))
    column = KEY_COLUMNS[key]
    summary = (
        _rows_for(df, (key,))
        .groupby(column)
        .agg(incidents=("is_statistical_murder", "size"), murders=("is_statistical_murder", "sum"))
        .reset_index()
        .rename(columns={column: key})
    )
    summary["murders"] = summary["murders"].astype("int64")
    summary["murder_share"] = summary["murders"] / summary["incidents"]
    return summary


def _scalar(value: object) -> object:
    return value.item() if hasattr(value, "item") else value


def to_buckets(frame: pd.DataFrame, key: str, *, rate_column: Optional[str] = None) -> List[AggregateBucket]:
    buckets: List[AggregateBucket] = []
    for row in frame.to_dict(orient="records"):
        rate = None
        if rate_column is not None and pd.notna(row[rate_column]):
            rate = float(row[rate_column])
        buckets.append(AggregateBucket(key=_scalar(row[key]), count=int(row["count"]), rate=rate))
    return buckets


@dataclass
class AggregateSet:
    yearly: pd.DataFrame
    by_borough: pd.DataFrame
    borough_rates: pd.DataFrame
    by_hour: pd.DataFrame
    by_year_borough: pd.DataFrame
    murder_share_by_borough: pd.DataFrame
    incident_points: pd.DataFrame
    issues: List[DataQualityError] = field(default_factory=list)

    def frames(self) -> Dict[str, pd.DataFrame]:
        return {
            "yearly_counts": self.yearly,
            "borough_counts": self.by_borough,
            "borough_rates": self.borough_rates,
            "hourly_counts": self.by_hour,
            "year_borough_counts": self.by_year_borough,
            "borough_murder_share": self.murder_share_by_borough,
            "incident_points": self.incident_points,
        }

    def write_parquet(self, directory: Path | str) -> Dict[str, Path]:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        written: Dict[str, Path] = {}
        for name, frame in self.frames().items():
            path = directory / f"{name}.parquet"
            frame.to_parquet(path, index=False)
            written[name] = path
        logger.info("Wrote %s aggregate datasets to %s", len(written), directory)
        return written


def build_aggregates(
    incidents: pd.DataFrame,
    population: pd.DataFrame,
    *,
    year_column: str = config.DEFAULT_POPULATION_YEAR,
) -> AggregateSet:
    by_borough = count_by(incidents, "borough")
    rates, issues = borough_rates(by_borough, prepare_population(population, year_column=year_column))
    points = incidents.loc[:, ["latitude", "longitude", "borough", "year", "is_statistical_murder"]].dropna(
        subset=["latitude", "longitude"]
    )

    aggregates = AggregateSet(
        yearly=order_for_display(count_by(incidents, "year"), "year"),
        by_borough=order_for_display(by_borough, "borough"),
        borough_rates=order_for_display(rates, "borough", value="rate_per_100k"),
        by_hour=order_for_display(count_by(incidents, "hour"), "hour"),
        by_year_borough=count_by(incidents, "year", "borough"),
        murder_share_by_borough=murder_share_by(incidents, "borough"),
        incident_points=points.reset_index(drop=True),
        issues=list(issues),
    )
    logger.info(
        "Aggregated %s incidents across %s years and %s boroughs",
        len(incidents),
        len(aggregates.yearly),
        len(aggregates.by_borough),
    )
    return aggregates


__all__ = [
    "AggregateBucket",
    "AggregateSet",
    "count_by",
    "order_for_display",
    "prepare_population",
    "borough_rates",
    "murder_share_by",
    "to_buckets",
    "build_aggregates",
]
