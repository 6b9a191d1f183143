"""Configuration constants for the shooting incident report pipeline."""
from __future__ import annotations

from pathlib import Path

# NYPD Shooting Incident Data (Historic), CSV export from NYC Open Data
INCIDENTS_URL: str = "https://data.cityofnewyork.us/api/views/833y-fsy8/rows.csv?accessType=DOWNLOAD"

# New York City Population by Borough, 1950 - 2040
POPULATION_URL: str = "https://data.cityofnewyork.us/api/views/xywu-7bv9/rows.csv?accessType=DOWNLOAD"

# Timeout (seconds) for HTTP requests to the Open Data portal
HTTP_TIMEOUT: int = 60

# Directory the generated report, figures and derived datasets are written to
DEFAULT_OUTPUT_DIR: Path = Path("reports")
FIGURES_DIRNAME: str = "figures"
DERIVED_DIRNAME: str = "derived"
REPORT_FILENAME: str = "report.md"

# Raw date format of the OCCUR_DATE column
DATE_FORMAT: str = "%m/%d/%Y"

# Sentinel category for missing categorical values
UNKNOWN: str = "UNKNOWN"

# Raw values treated as missing in categorical columns (exact match, no strip)
NULL_PLACEHOLDERS = {"", "(null)"}

BOROUGHS: tuple[str, ...] = (
    "BRONX",
    "BROOKLYN",
    "MANHATTAN",
    "QUEENS",
    "STATEN ISLAND",
)

# Population column used for per-capita rates
DEFAULT_POPULATION_YEAR: str = "2020"

# Rates are expressed per this many residents
RATE_BASE: int = 100_000

# Canonical raw names (lowercase, underscores) mapped to the names used downstream
INCIDENT_COLUMN_RENAMES: dict[str, str] = {
    "occur_date": "occurred_on_raw",
    "occur_time": "occurred_at_raw",
    "boro": "borough",
    "loc_of_occur_desc": "location_of_occurrence",
    "location_desc": "location_description",
    "statistical_murder_flag": "is_statistical_murder",
    "perp_age_group": "perpetrator_age_group",
    "perp_sex": "perpetrator_sex",
    "perp_race": "perpetrator_race",
    "vic_age_group": "victim_age_group",
    "vic_sex": "victim_sex",
    "vic_race": "victim_race",
}

REQUIRED_INCIDENT_COLUMNS: tuple[str, ...] = (
    "occurred_on_raw",
    "occurred_at_raw",
    "borough",
    "is_statistical_murder",
    "perpetrator_age_group",
    "perpetrator_sex",
    "perpetrator_race",
    "victim_age_group",
    "victim_sex",
    "victim_race",
)

# Present in the published dataset but not required by the pipeline
OPTIONAL_INCIDENT_COLUMNS: tuple[str, ...] = (
    "incident_key",
    "location_of_occurrence",
    "location_description",
    "precinct",
    "latitude",
    "longitude",
)

# Fields that receive the UNKNOWN sentinel during normalization
CATEGORICAL_COLUMNS: tuple[str, ...] = (
    "borough",
    "location_of_occurrence",
    "location_description",
    "perpetrator_age_group",
    "perpetrator_sex",
    "perpetrator_race",
    "victim_age_group",
    "victim_sex",
    "victim_race",
)

NUMERIC_COLUMNS: tuple[str, ...] = ("precinct", "latitude", "longitude")

REQUIRED_POPULATION_COLUMNS: tuple[str, ...] = ("borough",)

# Aggregate row in the population table that is not a borough
POPULATION_TOTAL_LABEL: str = "NYC TOTAL"

DAY_NAME_ORDER = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]
