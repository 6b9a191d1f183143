"""Utilities to load the incident and population tables."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd
import requests

from . import config
from .exceptions import SourceUnavailable
from .schema import prepare_incident_table, prepare_population_table

logger = logging.getLogger(__name__)


@dataclass
class LoadStats:
    """Capture summary statistics for one fetch."""

    source: str
    rows: int = 0
    columns: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, object]:
        return {
            "source": self.source,
            "rows": self.rows,
            "columns": self.columns,
            "duration_seconds": round((datetime.now(timezone.utc) - self.start_time).total_seconds(), 2),
        }


def _is_url(locator: str) -> bool:
    return locator.lower().startswith(("http://", "https://"))


class DatasetLoader:
    """Fetches CSV tables from the Open Data portal or the local filesystem."""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = config.HTTP_TIMEOUT,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def _read_url(self, url: str) -> pd.DataFrame:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SourceUnavailable(url, str(exc)) from exc
        return self._parse_csv(io.StringIO(response.text), url)

    def _read_path(self, path: str) -> pd.DataFrame:
        if not Path(path).is_file():
            raise SourceUnavailable(path, "file not found")
        return self._parse_csv(path, path)

    @staticmethod
    def _parse_csv(handle, source: str) -> pd.DataFrame:
        try:
            # Every column stays textual; the normalizer owns type conversion.
            return pd.read_csv(handle, dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as exc:
            raise SourceUnavailable(source, f"unreadable CSV: {exc}") from exc

    def fetch_table(self, locator: str | Path) -> pd.DataFrame:
        locator = str(locator)
        stats = LoadStats(source=locator)
        df = self._read_url(locator) if _is_url(locator) else self._read_path(locator)
        stats.rows, stats.columns = df.shape
        logger.info("Loaded table: %s", stats.as_dict())
        return df

    def load_incidents(self, locator: str | Path = config.INCIDENTS_URL) -> pd.DataFrame:
        return prepare_incident_table(self.fetch_table(locator))

    def load_population(
        self,
        locator: str | Path = config.POPULATION_URL,
        *,
        year_column: str = config.DEFAULT_POPULATION_YEAR,
    ) -> pd.DataFrame:
        return prepare_population_table(self.fetch_table(locator), year_column=year_column)


def load_sources(
    incidents_locator: str | Path = config.INCIDENTS_URL,
    population_locator: str | Path = config.POPULATION_URL,
    *,
    year_column: str = config.DEFAULT_POPULATION_YEAR,
    timeout: float = config.HTTP_TIMEOUT,
    session: Optional[requests.Session] = None,
    loader: Optional[DatasetLoader] = None,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Load both source tables, incidents first; an explicit ``loader`` wins over ``session``/``timeout``."""
    loader = loader or DatasetLoader(session=session, timeout=timeout)
    incidents = loader.load_incidents(incidents_locator)
    population = loader.load_population(population_locator, year_column=year_column)
    return incidents, population


__all__ = ["DatasetLoader", "LoadStats", "load_sources"]
