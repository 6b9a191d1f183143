"""Command line interface for the shooting incident report pipeline."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .aggregate import build_aggregates
from .exceptions import DataQualityError, SchemaError, SourceUnavailable
from .ingest import DatasetLoader, load_sources
from .report import generate_report
from .transform import normalize_incidents

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="NYPD shooting incident report pipeline")
    parser.add_argument("command", choices=["report", "aggregate"], help="Pipeline stage to execute")
    parser.add_argument("--incidents", dest="incidents", default=config.INCIDENTS_URL, help="Incident CSV URL or path")
    parser.add_argument("--population", dest="population", default=config.POPULATION_URL, help="Borough population CSV URL or path")
    parser.add_argument(
        "--population-year",
        dest="population_year",
        default=config.DEFAULT_POPULATION_YEAR,
        help="Population column used for per-capita rates",
    )
    parser.add_argument("--output", dest="output_dir", default=str(config.DEFAULT_OUTPUT_DIR), help="Output directory")
    parser.add_argument("--timeout", dest="timeout", type=float, default=config.HTTP_TIMEOUT, help="HTTP timeout in seconds")
    parser.add_argument("--strict", dest="strict", action="store_true", help="Fail on the first malformed date instead of warning")
    parser.add_argument("--write-datasets", dest="write_datasets", action="store_true", help="Also write parquet aggregates when reporting")
    parser.add_argument("--verbose", dest="verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def _run_aggregate(args: argparse.Namespace, loader: DatasetLoader) -> None:
    incidents, population = load_sources(
        args.incidents, args.population, year_column=args.population_year, loader=loader
    )
    normalization = normalize_incidents(incidents, strict=args.strict)
    aggregates = build_aggregates(normalization.incidents, population, year_column=args.population_year)
    aggregates.write_parquet(Path(args.output_dir) / config.DERIVED_DIRNAME)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    loader = DatasetLoader(timeout=args.timeout)

    try:
        if args.command == "report":
            generate_report(
                args.incidents,
                args.population,
                output_dir=args.output_dir,
                year_column=args.population_year,
                strict=args.strict,
                write_datasets=args.write_datasets,
                loader=loader,
            )
            return 0

        if args.command == "aggregate":
            _run_aggregate(args, loader)
            return 0
    except (SourceUnavailable, SchemaError, DataQualityError) as exc:
        logger.error("%s", exc)
        return 1

    raise ValueError(f"Unsupported command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
