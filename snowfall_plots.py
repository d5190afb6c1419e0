# snowfall_plots.py
from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from snowfall_core import MONTH_LABELS, PHASE_LABELS, SeasonPhase

PHASE_COLORS = {
    SeasonPhase.STRONG_LA_NINA: "blue",
    SeasonPhase.WEAK_LA_NINA: "lightblue",
    SeasonPhase.NEUTRAL: "#D8BFD8",  # thistle
    SeasonPhase.WEAK_EL_NINO: "lightcoral",
    SeasonPhase.STRONG_EL_NINO: "red",
}

DATA_SOURCE_CAPTION = "Data Sources: USDA NRCS (SNOTEL), NOAA PSL (ONI)"


def format_value(value, decimals: int = 1, suffix: str = "") -> str:
    return (f"{value:.{decimals}f}{suffix}" if pd.notna(value) and np.isfinite(value) else "—")


def _color_map() -> dict:
    return {phase.value: color for phase, color in PHASE_COLORS.items()}


def _plain(df: pd.DataFrame) -> pd.DataFrame:
    # plotly orders categories through category_orders, so plain strings are enough
    return df.astype({c: str for c in ("site_id", "phase", "month_label") if c in df.columns})


def _add_caption(fig: go.Figure) -> go.Figure:
    fig.add_annotation(
        text=DATA_SOURCE_CAPTION,
        xref="paper", yref="paper", x=1, y=-0.15,
        xanchor="right", yanchor="top",
        showarrow=False, font=dict(size=10, color="gray"),
    )
    return fig


def profile_figure(profile: pd.DataFrame, season_range_label: str) -> go.Figure:
    """Average monthly snowfall per phase, one panel per site."""
    fig = px.bar(
        _plain(profile),
        x="month_label",
        y="avg_snowfall",
        color="phase",
        barmode="group",
        facet_col="site_id",
        facet_col_wrap=2,
        category_orders={"month_label": list(MONTH_LABELS), "phase": PHASE_LABELS},
        color_discrete_map=_color_map(),
        labels={"month_label": "Month", "avg_snowfall": "Average Total Snowfall (inches)", "phase": "ENSO Phase"},
        title=f"Average Monthly Snowfall by ENSO Phase ({season_range_label})<br><sup>WA Cascade Sites</sup>",
    )
    # each site on its own y scale
    fig.update_yaxes(matches=None, showticklabels=True)
    fig.for_each_annotation(lambda a: a.update(text=a.text.split("=", 1)[-1]))
    fig.update_layout(legend_title="ENSO Phase", margin=dict(l=10, r=10, t=80, b=80))
    return _add_caption(fig)


def pct_diff_figure(pct_diff: pd.DataFrame, season_range_label: str) -> go.Figure:
    """Percentage difference from Neutral years, grouped by site."""
    fig = px.bar(
        _plain(pct_diff),
        x="site_id",
        y="pct_diff",
        color="phase",
        barmode="group",
        category_orders={"phase": PHASE_LABELS},
        color_discrete_map=_color_map(),
        labels={"site_id": "Site", "pct_diff": "Percentage Difference (%)", "phase": "ENSO Phase"},
        title=(
            f"Snowfall % Difference from Neutral Years ({season_range_label})"
            "<br><sup>Strong vs Weak ENSO Intensities</sup>"
        ),
    )
    fig.add_hline(y=0, line_dash="dash", line_color="gray")
    fig.update_layout(legend_title="ENSO Phase", xaxis_tickangle=-45, margin=dict(l=10, r=10, t=80, b=80))
    return _add_caption(fig)
