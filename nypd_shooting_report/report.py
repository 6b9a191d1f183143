"""Chart rendering and Markdown report generation."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import matplotlib

matplotlib.use("Agg")

import pandas as pd
import seaborn as sns
from matplotlib import pyplot as plt

from . import config
from .aggregate import AggregateBucket, AggregateSet, build_aggregates, to_buckets
from .exceptions import DataQualityError, MalformedDate, MissingPopulationRow
from .ingest import DatasetLoader, load_sources
from .model import ModelSummary, fit_murder_model
from .transform import IncidentRecord, NormalizationResult, iter_records, normalize_incidents

logger = logging.getLogger(__name__)

CHART_KINDS = {"line", "bar"}
CHART_VALUES = {"count", "rate"}
MISSING_VALUE = "n/a"
HEAD_COLUMNS = [
    "incident_key",
    "occurred_on",
    "occurred_at_hour",
    "borough",
    "victim_age_group",
    "victim_sex",
    "is_statistical_murder",
]


@dataclass
class ReportResult:
    report_path: Path
    figures: Dict[str, Path]
    normalization: NormalizationResult
    aggregates: AggregateSet
    model: Optional[ModelSummary] = None
    datasets: Dict[str, Path] = field(default_factory=dict)


def configure_matplotlib() -> None:
    sns.set_theme(style="whitegrid", context="talk")
    plt.rcParams.update({"axes.spines.right": False, "axes.spines.top": False})


def render_chart(
    buckets: Sequence[AggregateBucket],
    *,
    kind: str,
    title: str,
    xlabel: str,
    ylabel: str,
    path: Path | str,
    value: str = "count",
) -> Path:
    """Draw a sequence of buckets as a line or bar chart and save it as a PNG.

    ``value`` selects the bucket field plotted on the y axis (``count`` or
    ``rate``). Bars keep the order of ``buckets``; missing rates draw no bar.
    """
    if kind not in CHART_KINDS:
        raise ValueError(f"Unsupported chart kind: {kind}")
    if value not in CHART_VALUES:
        raise ValueError(f"Unsupported chart value: {value}")

    frame = pd.DataFrame(
        {"key": [bucket.key for bucket in buckets], "value": [getattr(bucket, value) for bucket in buckets]}
    )
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(12, 6))
    try:
        if kind == "line":
            sns.lineplot(data=frame, x="key", y="value", marker="o", color="#0B5ED7", ax=ax)
        else:
            sns.barplot(data=frame, x="key", y="value", order=list(frame["key"]), color="#1F78B4", ax=ax)
            ax.tick_params(axis="x", labelrotation=45)
        ax.set_title(title)
        ax.set_xlabel(xlabel)
        ax.set_ylabel(ylabel)
        fig.tight_layout()
        fig.savefig(path, dpi=150)
    finally:
        plt.close(fig)
    logger.debug("Rendered %s chart %s from %s buckets", kind, path, len(frame))
    return path


def render_figures(aggregates: AggregateSet, figures_dir: Path) -> Dict[str, Path]:
    configure_matplotlib()
    return {
        "yearly_counts": render_chart(
            to_buckets(aggregates.yearly, "year"),
            kind="line",
            title="Shooting Incidents per Year",
            xlabel="Year",
            ylabel="Incidents",
            path=figures_dir / "yearly_counts.png",
        ),
        "borough_counts": render_chart(
            to_buckets(aggregates.by_borough, "borough"),
            kind="bar",
            title="Shooting Incidents by Borough",
            xlabel="Borough",
            ylabel="Incidents",
            path=figures_dir / "borough_counts.png",
        ),
        "borough_rates": render_chart(
            to_buckets(aggregates.borough_rates, "borough", rate_column="rate_per_100k"),
            kind="bar",
            value="rate",
            title="Shooting Incidents per 100k Residents",
            xlabel="Borough",
            ylabel="Incidents per 100k",
            path=figures_dir / "borough_rates.png",
        ),
        "hourly_counts": render_chart(
            to_buckets(aggregates.by_hour, "hour"),
            kind="bar",
            title="Shooting Incidents by Hour of Day",
            xlabel="Hour of Day",
            ylabel="Incidents",
            path=figures_dir / "hourly_counts.png",
        ),
    }


def _format_cell(value: object, float_format: str) -> str:
    if value is None or value is pd.NA or value is pd.NaT:
        return MISSING_VALUE
    if isinstance(value, float):
        return MISSING_VALUE if pd.isna(value) else format(value, float_format)
    if isinstance(value, pd.Timestamp):
        return f"{value:%Y-%m-%d}"
    return str(value)


def markdown_table(frame: pd.DataFrame, *, float_format: str = ",.2f") -> str:
    """Render a frame as a pipe table; missing values print as ``n/a``."""
    columns = [str(column) for column in frame.columns]
    lines = [
        "| " + " | ".join(columns) + " |",
        "| " + " | ".join("---" for _ in columns) + " |",
    ]
    for row in frame.itertuples(index=False):
        lines.append("| " + " | ".join(_format_cell(value, float_format) for value in row) + " |")
    return "\n".join(lines)


def summarize_categoricals(df: pd.DataFrame, columns: Iterable[str] = config.CATEGORICAL_COLUMNS) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for column in columns:
        values = df[column]
        top = values.value_counts()
        rows.append(
            {
                "column": column,
                "distinct": int(values.nunique()),
                "unknown": int((values == config.UNKNOWN).sum()),
                "most_common": top.index[0] if not top.empty else MISSING_VALUE,
            }
        )
    return pd.DataFrame(rows, columns=["column", "distinct", "unknown", "most_common"])


def describe_issues(issues: Iterable[DataQualityError], imputed_hours: int, median_hour: Optional[int]) -> str:
    issues = list(issues)
    malformed = [issue for issue in issues if isinstance(issue, MalformedDate)]
    missing_population = [issue for issue in issues if isinstance(issue, MissingPopulationRow)]
    bullets = []
    if malformed:
        bullets.append(f"- {len(malformed):,} rows with malformed dates are excluded from date-based charts.")
    if imputed_hours:
        bullets.append(f"- {imputed_hours:,} missing occurrence hours were imputed with the median hour ({median_hour:02d}:00).")
    if missing_population:
        boroughs = ", ".join(sorted({issue.borough for issue in missing_population}))
        bullets.append(f"- No population figure for: {boroughs}; their rates are shown as {MISSING_VALUE}.")
    if not bullets:
        return "- No data quality issues detected."
    return "\n".join(bullets)


def head_rows(incidents: pd.DataFrame, count: int = 5) -> pd.DataFrame:
    records = [asdict(record) for record in iter_records(incidents.head(count))]
    return pd.DataFrame(records, columns=[item.name for item in fields(IncidentRecord)]).loc[:, HEAD_COLUMNS]


def describe_significant_terms(model: ModelSummary, alpha: float = 0.05) -> str:
    significant = model.significant_terms(alpha)
    terms = [term for term in significant["term"] if term != "Intercept"]
    if not terms:
        return f"- No term is significant at p < {alpha:g}."
    return f"- Significant at p < {alpha:g}: " + ", ".join(f"`{term}`" for term in terms) + "."


def build_report_markdown(
    normalization: NormalizationResult,
    aggregates: AggregateSet,
    figures: Mapping[str, Path],
    *,
    output_dir: Path,
    model: Optional[ModelSummary] = None,
) -> str:
    incidents = normalization.incidents
    dated = incidents[incidents["date_valid"]]
    murders = int(incidents["is_statistical_murder"].sum())
    total = len(incidents)

    def figure(name: str, caption: str) -> str:
        return f"![{caption}]({figures[name].relative_to(output_dir).as_posix()})"

    lines = [
        "# NYPD Shooting Incidents Report",
        "",
        f"_Generated {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC_",
        "",
        "## Dataset Snapshot",
        f"- **Incidents analysed:** {total:,}",
        f"- **Statistical murders:** {murders:,} ({murders / total:.1%} of incidents)" if total else "- **Statistical murders:** 0",
    ]
    if not dated.empty:
        lines.append(
            f"- **Temporal coverage:** {dated['occurred_on'].min():%d %b %Y} to {dated['occurred_on'].max():%d %b %Y}"
        )
    lines += [
        "",
        "### First rows",
        "",
        markdown_table(head_rows(incidents)),
        "",
        "### Categorical summary",
        "",
        markdown_table(summarize_categoricals(incidents)),
        "",
        "## Data Quality Watchlist",
        describe_issues(
            [*normalization.issues, *aggregates.issues],
            normalization.imputed_hours,
            normalization.median_hour,
        ),
        "",
        "## Incidents over Time",
        "",
        figure("yearly_counts", "Shooting incidents per year"),
        "",
        markdown_table(aggregates.yearly),
        "",
        "## Boroughs",
        "",
        figure("borough_counts", "Shooting incidents by borough"),
        "",
        figure("borough_rates", "Shooting incidents per 100k residents"),
        "",
        markdown_table(aggregates.borough_rates),
        "",
        markdown_table(aggregates.murder_share_by_borough, float_format=".3f"),
        "",
        "## Time of Day",
        "",
        figure("hourly_counts", "Shooting incidents by hour of day"),
        "",
    ]
    if not aggregates.by_hour.empty:
        peak = aggregates.by_hour.iloc[0]
        lines.append(f"- Peak hour: {int(peak['hour']):02d}:00 with {int(peak['count']):,} incidents.")
        lines.append("")

    lines.append("## Murder Classification Model")
    lines.append("")
    if model is None:
        lines.append("- Model not fitted for this dataset.")
    else:
        lines += [
            f"Binomial GLM `{model.formula}` on {model.observations:,} incidents (AIC {model.aic:,.1f}).",
            "",
            markdown_table(model.coefficients, float_format=".4f"),
            "",
            describe_significant_terms(model),
        ]
    lines.append("")
    return "\n".join(lines)


def generate_report(
    incidents_locator: str | Path = config.INCIDENTS_URL,
    population_locator: str | Path = config.POPULATION_URL,
    *,
    output_dir: Path | str = config.DEFAULT_OUTPUT_DIR,
    year_column: str = config.DEFAULT_POPULATION_YEAR,
    strict: bool = False,
    write_datasets: bool = False,
    loader: Optional[DatasetLoader] = None,
) -> ReportResult:
    """Run the whole pipeline and write the Markdown report.

    Both sources are loaded before anything is written, so an unavailable
    source or a schema problem leaves no partial report behind.
    """
    raw_incidents, population = load_sources(
        incidents_locator,
        population_locator,
        year_column=year_column,
        loader=loader,
    )

    normalization = normalize_incidents(raw_incidents, strict=strict)
    aggregates = build_aggregates(normalization.incidents, population, year_column=year_column)

    model: Optional[ModelSummary] = None
    try:
        model = fit_murder_model(normalization.incidents)
    except DataQualityError as exc:
        logger.warning("Skipping murder model: %s", exc)

    output_dir = Path(output_dir)
    figures = render_figures(aggregates, output_dir / config.FIGURES_DIRNAME)
    datasets = aggregates.write_parquet(output_dir / config.DERIVED_DIRNAME) if write_datasets else {}

    report_path = output_dir / config.REPORT_FILENAME
    report_path.write_text(
        build_report_markdown(normalization, aggregates, figures, output_dir=output_dir, model=model),
        encoding="utf-8",
    )
    logger.info("Wrote report to %s", report_path)
    return ReportResult(
        report_path=report_path,
        figures=figures,
        normalization=normalization,
        aggregates=aggregates,
        model=model,
        datasets=datasets,
    )


__all__ = [
    "ReportResult",
    "configure_matplotlib",
    "render_chart",
    "render_figures",
    "markdown_table",
    "summarize_categoricals",
    "describe_issues",
    "head_rows",
    "describe_significant_terms",
    "build_report_markdown",
    "generate_report",
]
