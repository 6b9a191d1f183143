from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd
import pytest
import requests

from nypd_shooting_report.schema import prepare_incident_table

RAW_COLUMNS = [
    "INCIDENT_KEY",
    "OCCUR_DATE",
    "OCCUR_TIME",
    "BORO",
    "LOC_OF_OCCUR_DESC",
    "PRECINCT",
    "LOCATION_DESC",
    "STATISTICAL_MURDER_FLAG",
    "PERP_AGE_GROUP",
    "PERP_SEX",
    "PERP_RACE",
    "VIC_AGE_GROUP",
    "VIC_SEX",
    "VIC_RACE",
    "Latitude",
    "Longitude",
]

POPULATION_CSV = """Age Group,Borough,2010,2020
Total Population,NYC Total,"8,242,624","8,804,190"
Total Population, Bronx,"1,385,108","1,472,654"
Total Population, Brooklyn,"2,552,911","2,736,074"
Total Population, Manhattan,"1,585,873","1,694,251"
Total Population, Queens,"2,250,002","2,405,464"
"""


def make_raw_row(**overrides: object) -> Dict[str, object]:
    row: Dict[str, object] = {
        "INCIDENT_KEY": "100",
        "OCCUR_DATE": "07/04/2020",
        "OCCUR_TIME": "21:30:00",
        "BORO": "BROOKLYN",
        "LOC_OF_OCCUR_DESC": "OUTSIDE",
        "PRECINCT": "75",
        "LOCATION_DESC": "MULTI DWELL - PUBLIC HOUS",
        "STATISTICAL_MURDER_FLAG": "false",
        "PERP_AGE_GROUP": "18-24",
        "PERP_SEX": "M",
        "PERP_RACE": "BLACK",
        "VIC_AGE_GROUP": "25-44",
        "VIC_SEX": "M",
        "VIC_RACE": "BLACK",
        "Latitude": "40.6679",
        "Longitude": "-73.8831",
    }
    row.update(overrides)
    return row


def make_raw_frame(rows: List[Dict[str, object]]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=RAW_COLUMNS)


def synthetic_rows(count: int = 240, seed: int = 7) -> List[Dict[str, object]]:
    rng = np.random.default_rng(seed)
    boroughs = ["BRONX", "BROOKLYN", "MANHATTAN", "QUEENS", "STATEN ISLAND"]
    age_groups = ["<18", "18-24", "25-44"]
    sexes = ["M", "F"]
    rows = []
    for index in range(count):
        year = 2018 + index % 4
        month = 1 + index % 12
        day = 1 + index % 28
        rows.append(
            make_raw_row(
                INCIDENT_KEY=str(1000 + index),
                OCCUR_DATE=f"{month:02d}/{day:02d}/{year}",
                OCCUR_TIME=f"{int(rng.integers(0, 24)):02d}:{int(rng.integers(0, 60)):02d}:00",
                BORO=boroughs[index % len(boroughs)],
                VIC_AGE_GROUP=age_groups[index % len(age_groups)],
                VIC_SEX=sexes[(index // 3) % len(sexes)],
                STATISTICAL_MURDER_FLAG="true" if rng.random() < 0.3 else "false",
                Latitude=f"{40.6 + rng.random() * 0.2:.5f}",
                Longitude=f"{-74.0 + rng.random() * 0.2:.5f}",
            )
        )
    return rows


@pytest.fixture
def raw_incidents() -> pd.DataFrame:
    return prepare_incident_table(
        make_raw_frame(
            [
                make_raw_row(INCIDENT_KEY="1", OCCUR_DATE="01/15/2019", OCCUR_TIME="05:10:00", BORO="BRONX"),
                make_raw_row(INCIDENT_KEY="2", OCCUR_DATE="03/02/2019", OCCUR_TIME="09:00:00", PERP_SEX="(null)"),
                make_raw_row(INCIDENT_KEY="3", OCCUR_DATE="11/30/2020", OCCUR_TIME="09:45:00", PERP_RACE=""),
                make_raw_row(INCIDENT_KEY="4", OCCUR_DATE="13/45/2020", OCCUR_TIME="", STATISTICAL_MURDER_FLAG="TRUE"),
                make_raw_row(INCIDENT_KEY="5", OCCUR_DATE="06/01/2021", OCCUR_TIME="noon", BORO=None),
            ]
        )
    )


@pytest.fixture
def population_csv(tmp_path: Path) -> Path:
    path = tmp_path / "population.csv"
    path.write_text(POPULATION_CSV, encoding="utf-8")
    return path


@pytest.fixture
def incidents_csv(tmp_path: Path) -> Path:
    path = tmp_path / "incidents.csv"
    make_raw_frame(synthetic_rows()).to_csv(path, index=False)
    return path


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """Stands in for ``requests.Session``; maps URLs to responses or exceptions."""

    def __init__(self, responses: Dict[str, object]) -> None:
        self.responses = responses
        self.calls: List[tuple] = []

    def get(self, url: str, timeout: float | None = None, **kwargs: object) -> FakeResponse:
        self.calls.append((url, timeout))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response
