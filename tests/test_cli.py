from __future__ import annotations

import pandas as pd

from nypd_shooting_report import config
from nypd_shooting_report.cli import main, parse_args


def test_parse_args_defaults():
    args = parse_args(["report"])
    assert args.command == "report"
    assert args.incidents == config.INCIDENTS_URL
    assert args.population == config.POPULATION_URL
    assert args.population_year == config.DEFAULT_POPULATION_YEAR
    assert args.timeout == config.HTTP_TIMEOUT
    assert not args.strict


def test_report_command(incidents_csv, population_csv, tmp_path):
    output_dir = tmp_path / "out"
    exit_code = main(
        ["report", "--incidents", str(incidents_csv), "--population", str(population_csv), "--output", str(output_dir)]
    )
    assert exit_code == 0
    assert (output_dir / config.REPORT_FILENAME).exists()


def test_aggregate_command_writes_parquet(incidents_csv, population_csv, tmp_path):
    output_dir = tmp_path / "out"
    exit_code = main(
        ["aggregate", "--incidents", str(incidents_csv), "--population", str(population_csv), "--output", str(output_dir)]
    )
    assert exit_code == 0
    yearly = pd.read_parquet(output_dir / config.DERIVED_DIRNAME / "yearly_counts.parquet")
    assert yearly["count"].sum() == 240
    assert not (output_dir / config.REPORT_FILENAME).exists()


def test_unavailable_source_exits_with_error(population_csv, tmp_path):
    output_dir = tmp_path / "out"
    exit_code = main(
        ["report", "--incidents", str(tmp_path / "missing.csv"), "--population", str(population_csv), "--output", str(output_dir)]
    )
    assert exit_code == 1
    assert not output_dir.exists()


def test_strict_mode_exits_with_error_on_malformed_date(population_csv, tmp_path):
    incidents = tmp_path / "incidents.csv"
    incidents.write_text(
        "OCCUR_DATE,OCCUR_TIME,BORO,STATISTICAL_MURDER_FLAG,PERP_AGE_GROUP,PERP_SEX,PERP_RACE,VIC_AGE_GROUP,VIC_SEX,VIC_RACE\n"
        "2020-01-01,10:00:00,BRONX,false,18-24,M,BLACK,25-44,M,BLACK\n",
        encoding="utf-8",
    )
    exit_code = main(
        ["report", "--strict", "--incidents", str(incidents), "--population", str(population_csv), "--output", str(tmp_path / "out")]
    )
    assert exit_code == 1
