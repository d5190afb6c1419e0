# tests/conftest.py
import numpy as np
import pandas as pd
import pytest
import requests

# Season 2019 only has Jan-Mar (avg 0.8), 2020 is Neutral (0.1), 2021 is
# Strong La Niña (-1.8), 2022 is Weak La Niña (-1.0); Nov/Dec 2022 are sentinels.
ONI_TEXT = """\
 2019 2022
 2019   0.80   0.80   0.80   0.60   0.50   0.40   0.30   0.20   0.10   0.10   0.10   0.10
 2020   0.10   0.10   0.10   0.00  -0.10  -0.20  -0.30  -0.50  -0.90  -1.20  -1.80  -1.80
 2021  -1.80  -1.80  -1.80  -0.90  -0.70  -0.50  -0.40  -0.40  -0.60  -0.80  -1.00  -1.00
 2022  -1.00  -1.00  -1.00 -99.90 -99.90 -99.90 -99.90 -99.90 -99.90 -99.90 -99.90 -99.90
  -99.9
  ONI from CPC
  Provided by NOAA/PSL
"""

SNOTEL_CSV = """\
#------------------------------------------------- WARNING --------------------------------------------
# The data you have obtained from this automated Natural Resources Conservation Service
# database are subject to revision regardless of indicated Quality Assurance level.
#
# Paradise (679)
Date,Snow Water Equivalent (in) Start of Day Values,Snow Depth (in) Start of Day Values,Precipitation Accumulation (in) Start of Day Values,Air Temperature Observed (degF) Start of Day Values
2020-12-10,5.1,10,20.3,28
2020-12-11,5.6,12.5,20.9,27
2020-12-12,5.6,,20.9,30
"""


@pytest.fixture
def oni_text():
    return ONI_TEXT


@pytest.fixture
def snotel_csv():
    return SNOTEL_CSV


@pytest.fixture
def observations():
    # shuffled on purpose: the deriver has to sort within each site
    data = {
        "site_id": [
            "Paradise", "Stevens Pass", "Paradise", "Paradise", "Stevens Pass",
            "Paradise", "Stevens Pass", "Paradise", "Stevens Pass",
        ],
        "date": [
            "2019-12-02", "2020-11-02", "2019-12-01", "2020-12-11", "2020-11-01",
            "2019-12-03", "2020-11-03", "2020-12-10", "2020-11-04",
        ],
        "snow_depth": [12.0, 8.0, 10.0, 12.5, 5.0, 11.0, np.nan, 10.0, 9.0],
    }
    df = pd.DataFrame(data)
    extra = pd.DataFrame({"site_id": ["Paradise"], "date": ["2021-01-05"], "snow_depth": [15.0]})
    return pd.concat([df, extra], ignore_index=True).assign(date=lambda d: pd.to_datetime(d["date"]))


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Stands in for requests.Session; maps URL substrings to responses."""

    def __init__(self, routes=None, error=None):
        self.headers = {}
        self.routes = routes or {}
        self.error = error
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        for fragment, response in self.routes.items():
            if fragment in url:
                return response
        return FakeResponse("", status_code=404)


@pytest.fixture
def fake_session():
    return FakeSession(routes={
        "oni.data": FakeResponse(ONI_TEXT),
        "679:WA:SNTL": FakeResponse(SNOTEL_CSV),
    })


@pytest.fixture
def failing_session():
    return FakeSession(error=requests.ConnectionError("network down"))
