# snowfall_core.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from snowfall_errors import DataFormatError, UndefinedBaseline

logger = logging.getLogger(__name__)

# ONI rows look like "1997  -0.50  -0.36 ... -99.90": a year then one value per month
YEAR_RANGE = (1900, 2099)
MONTHS_PER_ROW = 12
SENTINEL_MAGNITUDE = 90.0

WINTER_CORE_MONTHS = (11, 12, 1, 2, 3)   # phase classification window
SEASON_MONTHS = (11, 12, 1, 2, 3, 4)     # snowfall aggregation window
MONTH_LABELS = ("Nov", "Dec", "Jan", "Feb", "Mar", "Apr")
MONTH_LABEL_DTYPE = pd.CategoricalDtype(list(MONTH_LABELS), ordered=True)


@total_ordering
class SeasonPhase(Enum):
    """ENSO intensity of a snow season, coolest first."""

    STRONG_LA_NINA = "Strong La Niña"
    WEAK_LA_NINA = "Weak La Niña"
    NEUTRAL = "Neutral"
    WEAK_EL_NINO = "Weak El Niño"
    STRONG_EL_NINO = "Strong El Niño"

    @property
    def rank(self) -> int:
        return list(SeasonPhase).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SeasonPhase):
            return NotImplemented
        return self.rank < other.rank


PHASE_LABELS = [phase.value for phase in SeasonPhase]
PHASE_DTYPE = pd.CategoricalDtype(PHASE_LABELS, ordered=True)


# ------------------------
# Index parsing
# ------------------------

def _is_year_token(token: str) -> bool:
    return len(token) == 4 and token.isdigit() and YEAR_RANGE[0] <= int(token) <= YEAR_RANGE[1]


def parse_index_text(text: str) -> pd.DataFrame:
    """Parse year-plus-12-months index text into (year, month, value) rows.

    Header/footer lines are skipped. Sentinel values (|value| >= 90) are
    dropped rather than read as data.
    """
    rows: dict[int, list[float]] = {}
    for line in text.splitlines():
        tokens = line.split()
        if len(tokens) != MONTHS_PER_ROW + 1 or not _is_year_token(tokens[0]):
            continue
        year = int(tokens[0])
        try:
            values = [float(token) for token in tokens[1:]]
        except ValueError as error:
            raise DataFormatError(f"Non-numeric index value in row for {year}: {line.strip()!r}") from error
        if year in rows:
            logger.warning("Index year %s appears more than once; keeping the last row", year)
        rows[year] = values

    if not rows:
        raise DataFormatError("No index data rows found (expected a year followed by 12 monthly values)")

    wide = pd.DataFrame.from_dict(rows, orient="index", columns=list(range(1, MONTHS_PER_ROW + 1)))
    readings = wide.rename_axis("year").reset_index().melt(id_vars="year", var_name="month", value_name="value")
    # NaN fails the comparison too, so it leaves with the sentinels
    readings = readings[readings["value"].abs() < SENTINEL_MAGNITUDE]
    readings = readings.astype({"year": "int64", "month": "int64", "value": "float64"})
    return readings.sort_values(["year", "month"]).reset_index(drop=True)


# ------------------------
# Season classification
# ------------------------

def season_year_for(year: int, month: int) -> int:
    """Season a calendar month belongs to: the year the season ends in."""
    return year + 1 if month >= 11 else year


def assign_season_year(years: Iterable[int], months: Iterable[int]) -> np.ndarray:
    years = np.asarray(years, dtype="int64")
    months = np.asarray(months, dtype="int64")
    return np.where(months >= 11, years + 1, years)


def classify_phase(value: float) -> SeasonPhase:
    """Map a season's average index to a phase; cuts go to the cooler side."""
    if not np.isfinite(value):
        raise ValueError(f"Cannot classify non-finite index value {value!r}")
    if value <= -1.5:
        return SeasonPhase.STRONG_LA_NINA
    if value <= -0.5:
        return SeasonPhase.WEAK_LA_NINA
    if value < 0.5:
        return SeasonPhase.NEUTRAL
    if value < 1.5:
        return SeasonPhase.WEAK_EL_NINO
    return SeasonPhase.STRONG_EL_NINO


def season_index_averages(readings: pd.DataFrame) -> pd.DataFrame:
    core = readings[readings["month"].isin(WINTER_CORE_MONTHS)]
    core = core.assign(season_year=assign_season_year(core["year"], core["month"]))
    averages = core.groupby("season_year", as_index=False).agg(
        avg_index=("value", "mean"), n_months=("value", "size")
    )
    incomplete = averages.loc[averages["n_months"] < len(WINTER_CORE_MONTHS), "season_year"]
    if not incomplete.empty:
        logger.info("Incomplete winter-core index for seasons %s; averaging available months", incomplete.tolist())
    return averages


def classify_seasons(readings: pd.DataFrame) -> pd.DataFrame:
    """One row per season_year: avg_index, n_months and an ordered phase."""
    averages = season_index_averages(readings)
    phases = averages["avg_index"].map(lambda value: classify_phase(value).value)
    return averages.assign(phase=phases.astype(PHASE_DTYPE))


# ------------------------
# Snowfall derivation
# ------------------------

def numeric_depth(values: pd.Series) -> pd.Series:
    """Depths as float; NaN/None stay missing, any other non-number fails."""
    if pd.api.types.is_numeric_dtype(values):
        return values.astype("float64")
    try:
        return pd.to_numeric(values).astype("float64")
    except (ValueError, TypeError) as error:
        raise DataFormatError(f"Non-numeric snow depth: {error}") from error


def _observation_dates(values: pd.Series) -> pd.Series:
    try:
        return pd.to_datetime(values)
    except (ValueError, TypeError) as error:
        raise DataFormatError(f"Unparseable observation date: {error}") from error


def derive_daily_snowfall(observations: pd.DataFrame) -> pd.DataFrame:
    """Daily new snow per site: positive day-over-day depth change.

    Missing or negative depths are dropped first, so an increment is taken
    against the previous available record even across gaps. The first
    record of each site has nothing to compare with and produces no row.
    """
    obs = observations[["site_id", "date", "snow_depth"]].assign(
        date=lambda df: _observation_dates(df["date"]),
        snow_depth=lambda df: numeric_depth(df["snow_depth"]),
    )
    missing = obs["snow_depth"].isna() | (obs["snow_depth"] < 0)
    if missing.any():
        logger.debug("Dropping %d missing or negative depth readings", int(missing.sum()))
    obs = (
        obs[~missing]
        .sort_values(["site_id", "date"], kind="stable")
        .drop_duplicates(["site_id", "date"], keep="last")
        .reset_index(drop=True)
    )

    increments = obs.groupby("site_id", sort=False)["snow_depth"].diff().clip(lower=0)
    daily = obs.assign(increment=increments).dropna(subset=["increment"])
    return daily[["site_id", "date", "increment"]].reset_index(drop=True)


# ------------------------
# Aggregation & merge
# ------------------------

def aggregate_season_totals(snowfall: pd.DataFrame) -> pd.DataFrame:
    """Sum increments per (site_id, season_year, month_label), Nov-Apr only.

    Buckets with no daily rows are absent, never zero.
    """
    dates = pd.to_datetime(snowfall["date"])
    in_season = dates.dt.month.isin(SEASON_MONTHS)
    season_dates = dates[in_season]
    season = snowfall.loc[in_season, ["site_id", "increment"]].assign(
        season_year=assign_season_year(season_dates.dt.year, season_dates.dt.month),
        month_label=season_dates.dt.month.map(dict(zip(SEASON_MONTHS, MONTH_LABELS))).astype(MONTH_LABEL_DTYPE),
    )
    totals = season.groupby(["site_id", "season_year", "month_label"], observed=True, as_index=False).agg(
        total_snowfall=("increment", "sum")
    )
    return totals.reset_index(drop=True)


def merge_phases(totals: pd.DataFrame, phases: pd.DataFrame) -> pd.DataFrame:
    """Inner join of season totals and season phases on season_year."""
    unmatched = sorted(int(year) for year in set(totals["season_year"]) ^ set(phases["season_year"]))
    if unmatched:
        logger.info("Dropping season-years without both snowfall and phase: %s", unmatched)
    phase_columns = [column for column in ("season_year", "avg_index", "phase") if column in phases.columns]
    joined = totals.merge(phases[phase_columns], on="season_year", how="inner")
    return joined.reset_index(drop=True)


# ------------------------
# Comparative statistics
# ------------------------

PCT_DIFF_COLUMNS = ["site_id", "phase", "phase_avg_snowfall", "baseline_avg_snowfall", "pct_diff"]


@dataclass(frozen=True)
class PercentDeviation:
    table: pd.DataFrame
    undefined_baseline_sites: Tuple[str, ...] = ()


def phase_month_profile(joined: pd.DataFrame) -> pd.DataFrame:
    return joined.groupby(["site_id", "month_label", "phase"], observed=True, as_index=False).agg(
        avg_snowfall=("total_snowfall", "mean")
    )


def _baseline_average(site_id: str, site_avgs: pd.DataFrame, baseline: SeasonPhase) -> float:
    rows = site_avgs.loc[site_avgs["phase"] == baseline.value, "phase_avg_snowfall"]
    if rows.empty:
        raise UndefinedBaseline(site_id, baseline.value)
    return float(rows.iloc[0])


def phase_pct_diff(joined: pd.DataFrame, baseline: SeasonPhase = SeasonPhase.NEUTRAL) -> PercentDeviation:
    """Percentage difference of each phase's mean monthly snowfall from the baseline's.

    Sites without baseline data are left out and listed separately. A
    baseline of exactly zero is kept and yields inf (or NaN for 0/0).
    """
    phase_avgs = joined.groupby(["site_id", "phase"], observed=True, as_index=False).agg(
        phase_avg_snowfall=("total_snowfall", "mean")
    )

    frames, undefined = [], []
    for site_id, site_avgs in phase_avgs.groupby("site_id", sort=True):
        try:
            baseline_avg = _baseline_average(site_id, site_avgs, baseline)
        except UndefinedBaseline as error:
            logger.warning("%s", error)
            undefined.append(site_id)
            continue
        if baseline_avg == 0:
            logger.warning("Site %r has a zero %s average; pct_diff is not finite", site_id, baseline.value)
        others = site_avgs[site_avgs["phase"] != baseline.value]
        frames.append(others.assign(
            baseline_avg_snowfall=baseline_avg,
            pct_diff=(others["phase_avg_snowfall"] - baseline_avg) / baseline_avg * 100,
        ))

    if frames:
        table = pd.concat(frames, ignore_index=True)[PCT_DIFF_COLUMNS]
    else:
        table = pd.DataFrame({column: [] for column in PCT_DIFF_COLUMNS}).astype({"phase": PHASE_DTYPE})
    return PercentDeviation(table=table, undefined_baseline_sites=tuple(undefined))
