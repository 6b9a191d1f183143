from __future__ import annotations

import pandas as pd
import pytest
import requests

from conftest import POPULATION_CSV, FakeResponse, FakeSession, make_raw_frame, make_raw_row
from nypd_shooting_report.exceptions import SchemaError, SourceUnavailable
from nypd_shooting_report.ingest import DatasetLoader, LoadStats, load_sources
from nypd_shooting_report.schema import canonicalize_column_name, canonicalize_columns, validate_columns

INCIDENTS_URL = "https://example.test/incidents.csv"
POPULATION_URL = "https://example.test/population.csv"


def _incidents_text() -> str:
    return make_raw_frame([make_raw_row(), make_raw_row(INCIDENT_KEY="101", BORO="QUEENS")]).to_csv(index=False)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("OCCUR_DATE", "occur_date"),
        ("Age Group", "age_group"),
        ("  Lon_Lat ", "lon_lat"),
        ("Borough  Name\tText", "borough_name_text"),
        ("2020", "2020"),
    ],
)
def test_canonicalize_column_name(raw, expected):
    assert canonicalize_column_name(raw) == expected


def test_canonicalize_columns_applies_renames():
    df = pd.DataFrame(columns=["OCCUR_DATE", "BORO", "Latitude"])
    result = canonicalize_columns(df, renames={"occur_date": "occurred_on_raw", "boro": "borough"})
    assert list(result.columns) == ["occurred_on_raw", "borough", "latitude"]
    assert list(df.columns) == ["OCCUR_DATE", "BORO", "Latitude"]


def test_canonicalize_columns_rejects_collisions():
    df = pd.DataFrame([[1, 2]], columns=["Borough", "BOROUGH"])
    with pytest.raises(SchemaError) as excinfo:
        canonicalize_columns(df, dataset="population")
    assert excinfo.value.duplicates == ("borough",)


def test_validate_columns_lists_missing_columns():
    with pytest.raises(SchemaError) as excinfo:
        validate_columns(pd.DataFrame(columns=["borough"]), ["borough", "2020"], dataset="population")
    assert excinfo.value.missing == ("2020",)
    assert "2020" in str(excinfo.value)


def test_load_incidents_from_url():
    session = FakeSession({INCIDENTS_URL: FakeResponse(_incidents_text())})
    loader = DatasetLoader(session=session, timeout=5)

    df = loader.load_incidents(INCIDENTS_URL)

    assert session.calls == [(INCIDENTS_URL, 5)]
    assert len(df) == 2
    assert {"occurred_on_raw", "occurred_at_raw", "borough", "victim_sex"} <= set(df.columns)
    assert df.loc[1, "borough"] == "QUEENS"


def test_load_keeps_values_textual(tmp_path):
    path = tmp_path / "incidents.csv"
    make_raw_frame([make_raw_row(PERP_SEX="", PRECINCT="075")]).to_csv(path, index=False)

    df = DatasetLoader().load_incidents(path)

    assert df.loc[0, "perpetrator_sex"] == ""
    assert df.loc[0, "precinct"] == "075"


def test_load_population_from_path(population_csv):
    df = DatasetLoader().load_population(population_csv)
    assert {"age_group", "borough", "2010", "2020"} <= set(df.columns)
    assert len(df) == 5


def test_load_population_requires_year_column(population_csv):
    with pytest.raises(SchemaError) as excinfo:
        DatasetLoader().load_population(population_csv, year_column="2030")
    assert excinfo.value.missing == ("2030",)


def test_missing_incident_columns_raise_schema_error():
    text = make_raw_frame([make_raw_row()]).drop(columns=["OCCUR_TIME", "VIC_RACE"]).to_csv(index=False)
    loader = DatasetLoader(session=FakeSession({INCIDENTS_URL: FakeResponse(text)}))

    with pytest.raises(SchemaError) as excinfo:
        loader.load_incidents(INCIDENTS_URL)
    assert set(excinfo.value.missing) == {"occurred_at_raw", "victim_race"}


@pytest.mark.parametrize(
    "response",
    [
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
        FakeResponse("", status_code=503),
        FakeResponse(""),
    ],
)
def test_unreachable_url_raises_source_unavailable(response):
    loader = DatasetLoader(session=FakeSession({INCIDENTS_URL: response}))
    with pytest.raises(SourceUnavailable) as excinfo:
        loader.fetch_table(INCIDENTS_URL)
    assert excinfo.value.source == INCIDENTS_URL


def test_missing_file_raises_source_unavailable(tmp_path):
    with pytest.raises(SourceUnavailable, match="file not found"):
        DatasetLoader().fetch_table(tmp_path / "absent.csv")


def test_empty_file_raises_source_unavailable(tmp_path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(SourceUnavailable, match="unreadable CSV"):
        DatasetLoader().fetch_table(path)


def test_load_sources_fetches_both_tables():
    session = FakeSession(
        {
            INCIDENTS_URL: FakeResponse(_incidents_text()),
            POPULATION_URL: FakeResponse(POPULATION_CSV),
        }
    )
    incidents, population = load_sources(INCIDENTS_URL, POPULATION_URL, session=session)

    assert [url for url, _ in session.calls] == [INCIDENTS_URL, POPULATION_URL]
    assert len(incidents) == 2
    assert "2020" in population.columns


def test_load_stats_as_dict():
    stats = LoadStats(source="incidents.csv", rows=10, columns=4)
    payload = stats.as_dict()
    assert payload["rows"] == 10
    assert payload["columns"] == 4
    assert payload["duration_seconds"] >= 0


def test_load_sources_uses_given_loader():
    session = FakeSession(
        {
            INCIDENTS_URL: FakeResponse(_incidents_text()),
            POPULATION_URL: FakeResponse(POPULATION_CSV),
        }
    )
    loader = DatasetLoader(session=session, timeout=12)

    load_sources(INCIDENTS_URL, POPULATION_URL, loader=loader, timeout=99)

    assert session.calls == [(INCIDENTS_URL, 12), (POPULATION_URL, 12)]
