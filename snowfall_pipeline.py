"""
End-to-end snowfall/ENSO run: fetch sources, build the dataset, write charts.

`build_dataset` is the pure part and takes already-fetched inputs;
`run` and `main` wrap it with downloads, logging and output files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

import pandas as pd

from snowfall_core import (
    WINTER_CORE_MONTHS,
    aggregate_season_totals,
    classify_seasons,
    derive_daily_snowfall,
    merge_phases,
    parse_index_text,
    phase_month_profile,
    phase_pct_diff,
)
from snowfall_errors import DataFormatError, SourceUnavailable
from snowfall_plots import pct_diff_figure, profile_figure
from snowfall_settings import SnowfallSettings, get_settings
from snowfall_sources import SNOTEL_SITES, SnowSourceClient, read_snotel_csv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnowfallDataset:
    """Every table of one run, plus what had to be left out."""

    daily: pd.DataFrame
    totals: pd.DataFrame
    phases: pd.DataFrame
    joined: pd.DataFrame
    profile: pd.DataFrame
    pct_diff: pd.DataFrame
    undefined_baseline_sites: Tuple[str, ...] = ()
    incomplete_seasons: Tuple[int, ...] = ()
    skipped_sites: Tuple[str, ...] = ()

    @property
    def season_range(self) -> Optional[Tuple[int, int]]:
        if self.joined.empty:
            return None
        return int(self.joined["season_year"].min()), int(self.joined["season_year"].max())

    @property
    def season_range_label(self) -> str:
        if self.season_range is None:
            return "no seasons"
        first, last = self.season_range
        return f"{first}-{last}"


def build_dataset(
    observations: pd.DataFrame,
    index_text: str,
    skipped_sites: Tuple[str, ...] = (),
) -> SnowfallDataset:
    """Run the core transforms over fetched depth observations and ONI text."""
    readings = parse_index_text(index_text)
    phases = classify_seasons(readings)

    daily = derive_daily_snowfall(observations)
    totals = aggregate_season_totals(daily)
    joined = merge_phases(totals, phases)

    deviation = phase_pct_diff(joined)
    incomplete = phases.loc[phases["n_months"] < len(WINTER_CORE_MONTHS), "season_year"]

    return SnowfallDataset(
        daily=daily,
        totals=totals,
        phases=phases,
        joined=joined,
        profile=phase_month_profile(joined),
        pct_diff=deviation.table,
        undefined_baseline_sites=deviation.undefined_baseline_sites,
        incomplete_seasons=tuple(int(year) for year in incomplete),
        skipped_sites=tuple(skipped_sites),
    )


def load_observations(
    client: SnowSourceClient,
    sites: Mapping[int, str] = SNOTEL_SITES,
) -> Tuple[pd.DataFrame, Tuple[str, ...]]:
    """Fetch and parse every site; a failing site is logged and skipped."""
    frames: List[pd.DataFrame] = []
    skipped: List[str] = []
    for site_id, site_name in sites.items():
        logger.info(f"Loading SNOTEL data for {site_name} ({site_id})")
        try:
            frames.append(read_snotel_csv(client.snotel_csv(site_id), site_name))
        except (SourceUnavailable, DataFormatError) as e:
            logger.warning(f"Skipping {site_name} ({site_id}): {e}")
            skipped.append(site_name)

    if not frames:
        raise SourceUnavailable(f"No SNOTEL site could be loaded (skipped: {', '.join(skipped)})")
    return pd.concat(frames, ignore_index=True), tuple(skipped)


def run(
    settings: Optional[SnowfallSettings] = None,
    client: Optional[SnowSourceClient] = None,
) -> SnowfallDataset:
    """Fetch ONI and all SNOTEL sites, then build the dataset.

    ONI failures propagate: without phases nothing can be compared.
    """
    settings = settings or get_settings()
    client = client or SnowSourceClient(settings)

    index_text = client.oni_text()
    observations, skipped = load_observations(client)
    return build_dataset(observations, index_text, skipped_sites=skipped)


def write_outputs(dataset: SnowfallDataset, plots_dir: Path) -> List[Path]:
    """Write both charts as HTML and their tables as CSV."""
    plots_dir.mkdir(parents=True, exist_ok=True)
    label = dataset.season_range_label

    outputs = {
        "snowfall_by_enso_month.html": profile_figure(dataset.profile, label),
        "snowfall_pct_diff_strong_weak.html": pct_diff_figure(dataset.pct_diff, label),
    }
    written = []
    for filename, fig in outputs.items():
        path = plots_dir / filename
        fig.write_html(path)
        written.append(path)

    for filename, table in (("phase_month_profile.csv", dataset.profile), ("phase_pct_diff.csv", dataset.pct_diff)):
        path = plots_dir / filename
        table.to_csv(path, index=False)
        written.append(path)
    return written


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    dataset = run(settings)
    written = write_outputs(dataset, Path(settings.plots_dir))

    logger.info(f"Seasons {dataset.season_range_label}: wrote {len(written)} files to {settings.plots_dir}")
    if dataset.skipped_sites:
        logger.warning(f"Skipped {len(dataset.skipped_sites)} site(s): {', '.join(dataset.skipped_sites)}")
    if dataset.undefined_baseline_sites:
        logger.warning(
            f"No Neutral baseline for {len(dataset.undefined_baseline_sites)} site(s): "
            f"{', '.join(dataset.undefined_baseline_sites)}"
        )
    if dataset.incomplete_seasons:
        logger.info(f"Seasons with partial winter-core index: {list(dataset.incomplete_seasons)}")


if __name__ == "__main__":
    main()
