"""Interactive viewer for the NYPD shooting incident aggregates."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import pydeck as pdk
import streamlit as st

from nypd_shooting_report import config

DATASETS = (
    "yearly_counts",
    "borough_counts",
    "borough_rates",
    "hourly_counts",
    "year_borough_counts",
    "borough_murder_share",
    "incident_points",
)


def load_derived_datasets(directory: Optional[str] = None) -> Dict[str, pd.DataFrame]:
    derived_dir = Path(directory) if directory else config.DEFAULT_OUTPUT_DIR / config.DERIVED_DIRNAME
    missing = [name for name in DATASETS if not (derived_dir / f"{name}.parquet").exists()]
    if missing:
        st.warning(
            "Derived datasets not found. Run `python -m nypd_shooting_report.cli aggregate` to build them first."
        )
        return {}
    return {name: pd.read_parquet(derived_dir / f"{name}.parquet") for name in DATASETS}


def main() -> None:
    st.set_page_config(page_title="NYPD Shooting Incidents", layout="wide")
    st.title("NYPD Shooting Incidents")
    st.caption("Historic shooting incidents recorded by the NYPD, aggregated by year, borough and hour of day.")

    datasets = load_derived_datasets()
    if not datasets:
        st.stop()

    year_borough = datasets["year_borough_counts"]
    boroughs = sorted(year_borough["borough"].dropna().unique().tolist())
    years = year_borough["year"].dropna().astype(int)
    year_min, year_max = (int(years.min()), int(years.max())) if not years.empty else (0, 0)

    with st.sidebar:
        st.header("Filters")
        selected_boroughs = st.multiselect("Boroughs", options=boroughs, default=boroughs)
        if year_min < year_max:
            year_range = st.slider("Years", min_value=year_min, max_value=year_max, value=(year_min, year_max))
        else:
            year_range = (year_min, year_max)

    filtered = year_borough[
        year_borough["borough"].isin(selected_boroughs)
        & year_borough["year"].between(year_range[0], year_range[1])
    ]
    if filtered.empty:
        st.warning("No data matches the selected filters.")
        st.stop()

    rates = datasets["borough_rates"]
    murder_share = datasets["borough_murder_share"]
    metric_cols = st.columns(3)
    with metric_cols[0]:
        st.metric("Incidents in view", f"{int(filtered['count'].sum()):,}")
    with metric_cols[1]:
        top_rate = rates.dropna(subset=["rate_per_100k"])
        if not top_rate.empty:
            row = top_rate.iloc[0]
            st.metric("Highest rate per 100k", f"{row['borough'].title()} ({row['rate_per_100k']:.1f})")
        else:
            st.metric("Highest rate per 100k", "–")
    with metric_cols[2]:
        hourly = datasets["hourly_counts"]
        if not hourly.empty:
            st.metric("Busiest hour", f"{int(hourly.iloc[0]['hour']):02d}:00")
        else:
            st.metric("Busiest hour", "–")

    trend_tab, borough_tab, hour_tab, map_tab = st.tabs(["Trend", "Boroughs", "Hour of Day", "Map"])

    with trend_tab:
        trend = filtered.pivot_table(index="year", columns="borough", values="count", aggfunc="sum").fillna(0)
        st.line_chart(trend)

    with borough_tab:
        st.bar_chart(datasets["borough_counts"].set_index("borough")["count"])
        st.bar_chart(rates.set_index("borough")["rate_per_100k"])
        st.dataframe(
            rates.merge(murder_share, on="borough", how="left").rename(
                columns={
                    "borough": "Borough",
                    "count": "Incidents",
                    "population": "Population",
                    "rate_per_100k": "Per 100k",
                    "incidents": "Incidents (murder share base)",
                    "murders": "Murders",
                    "murder_share": "Murder share",
                }
            ),
            use_container_width=True,
        )
        st.caption("Boroughs without a population figure show an empty rate.")

    with hour_tab:
        st.bar_chart(datasets["hourly_counts"].sort_values("hour").set_index("hour")["count"])
        st.caption("Missing occurrence hours are imputed with the dataset-wide median hour.")

    with map_tab:
        points = datasets["incident_points"]
        points = points[points["borough"].isin(selected_boroughs)]
        if points.empty:
            st.info("No incidents with coordinates for the selected boroughs.")
        else:
            heatmap_layer = pdk.Layer(
                "HeatmapLayer",
                data=points,
                get_position="[longitude, latitude]",
                radiusPixels=40,
                opacity=0.9,
            )
            tile_layer = pdk.Layer(
                "TileLayer",
                data="https://tile.openstreetmap.org/{z}/{x}/{y}.png",
                min_zoom=0,
                max_zoom=19,
                tile_size=256,
            )
            deck = pdk.Deck(
                map_style=None,
                initial_view_state=pdk.ViewState(
                    latitude=float(points["latitude"].mean()),
                    longitude=float(points["longitude"].mean()),
                    zoom=10,
                    pitch=30,
                ),
                layers=[tile_layer, heatmap_layer],
            )
            st.pydeck_chart(deck, use_container_width=True)


if __name__ == "__main__":
    main()
