"""
Download collaborators for SNOTEL snow depth and the NOAA PSL ONI index.

Raw text is cached under the data directory and reused on later runs
unless a refresh is requested.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import requests
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from snowfall_core import numeric_depth
from snowfall_errors import DataFormatError, SourceUnavailable
from snowfall_settings import SnowfallSettings

logger = logging.getLogger(__name__)

# Stevens Pass, Snoqualmie, Mt Rainier and Mt Baker
SNOTEL_SITES = {
    791: "Stevens Pass",
    672: "Olallie Meadows (Snoqualmie)",
    679: "Paradise",
    909: "Wells Creek (Mt Baker)",
}

# SWE, snow depth, precipitation accumulation, observed air temperature
SNOTEL_ELEMENTS = "WTEQ::value,SNWD::value,PREC::value,TOBS::value"

DATE_COLUMN = "Date"
DEPTH_COLUMN_PREFIX = "Snow Depth"
FLAG_SUFFIX = "Flag"


def snotel_report_url(site_id: int, history_days: int, base_url: str) -> str:
    """NRCS report-generator URL for the last `history_days` days of a WA station."""
    return f"{base_url}{site_id}:WA:SNTL|id=%22%22|name/-{history_days},0/{SNOTEL_ELEMENTS}"


class SnowSourceClient:
    """Fetches raw SNOTEL CSV and ONI text, with on-disk caching."""

    def __init__(self, settings: SnowfallSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "wa-snowfall-enso/0.1 (Educational Research)"
        })
        self.cache_dir = Path(settings.data_dir)

    def snotel_csv(self, site_id: int) -> str:
        url = snotel_report_url(site_id, self.settings.history_days, self.settings.snotel_base_url)
        return self._cached_text(f"snotel_{site_id}.csv", url)

    def oni_text(self) -> str:
        return self._cached_text("oni.data", self.settings.oni_url)

    def _cached_text(self, filename: str, url: str) -> str:
        path = self.cache_dir / filename
        if path.exists() and not self.settings.refresh:
            logger.info(f"Using cached {path}")
            return path.read_text(encoding="utf-8")

        text = self._download(url)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return text

    def _download(self, url: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(requests.exceptions.RequestException),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        logger.info(f"Downloading {url}")
        try:
            return retrying(self._get, url)
        except requests.exceptions.RequestException as e:
            raise SourceUnavailable(f"Failed to download {url}: {e}") from e

    def _get(self, url: str) -> str:
        response = self.session.get(url, timeout=self.settings.request_timeout)
        response.raise_for_status()
        return response.text


def read_snotel_csv(text: str, site_name: str) -> pd.DataFrame:
    """Parse an NRCS daily report into (site_id, date, snow_depth) rows.

    Blank depth cells come through as NaN and are left for the deriver to
    drop; anything else that is not a number fails the site.
    """
    try:
        raw = pd.read_csv(io.StringIO(text), comment="#")
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise DataFormatError(f"Unreadable SNOTEL report for {site_name}: {e}") from e

    # drop the quality flag columns, like the station cleaning step
    raw = raw.drop(columns=[c for c in raw.columns if str(c).endswith(FLAG_SUFFIX)])

    depth_cols = [c for c in raw.columns if str(c).startswith(DEPTH_COLUMN_PREFIX)]
    if DATE_COLUMN not in raw.columns or not depth_cols:
        raise DataFormatError(
            f"SNOTEL report for {site_name} lacks a '{DATE_COLUMN}' or '{DEPTH_COLUMN_PREFIX}...' column"
        )

    dates = pd.to_datetime(raw[DATE_COLUMN], errors="coerce")
    if dates.isna().any():
        raise DataFormatError(f"SNOTEL report for {site_name} has unparseable dates")

    try:
        depth = numeric_depth(raw[depth_cols[0]])
    except DataFormatError as e:
        raise DataFormatError(f"SNOTEL report for {site_name}: {e}") from e

    return pd.DataFrame({
        "site_id": site_name,
        "date": dates,
        "snow_depth": depth,
    })
