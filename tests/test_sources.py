# tests/test_sources.py
import numpy as np
import pytest
from snowfall_errors import DataFormatError, SourceUnavailable
from snowfall_settings import SnowfallSettings
from snowfall_sources import SNOTEL_SITES, SnowSourceClient, read_snotel_csv, snotel_report_url


@pytest.fixture
def settings(tmp_path):
    return SnowfallSettings(data_dir=tmp_path / "data", max_attempts=1)


def test_snotel_report_url():
    url = snotel_report_url(791, 15000, "https://example.test/daily/")
    assert url.startswith("https://example.test/daily/791:WA:SNTL|")
    assert "/-15000,0/" in url
    assert url.endswith("WTEQ::value,SNWD::value,PREC::value,TOBS::value")


def test_sites_are_the_four_cascade_stations():
    assert set(SNOTEL_SITES) == {791, 672, 679, 909}
    assert SNOTEL_SITES[679] == "Paradise"


def test_client_downloads_then_uses_cache(settings, fake_session, oni_text):
    client = SnowSourceClient(settings, session=fake_session)
    assert client.oni_text() == oni_text
    assert (settings.data_dir / "oni.data").read_text(encoding="utf-8") == oni_text

    client.oni_text()
    assert len(fake_session.calls) == 1
    assert "User-Agent" in fake_session.headers


def test_client_refresh_downloads_again(settings, fake_session):
    client = SnowSourceClient(settings.model_copy(update={"refresh": True}), session=fake_session)
    client.snotel_csv(679)
    client.snotel_csv(679)
    assert len(fake_session.calls) == 2
    assert (settings.data_dir / "snotel_679.csv").exists()


def test_client_network_failure_is_source_unavailable(settings, failing_session):
    client = SnowSourceClient(settings, session=failing_session)
    with pytest.raises(SourceUnavailable):
        client.snotel_csv(791)
    assert not (settings.data_dir / "snotel_791.csv").exists()


def test_client_http_error_is_source_unavailable(settings, fake_session):
    client = SnowSourceClient(settings, session=fake_session)
    # no route for this station -> 404
    with pytest.raises(SourceUnavailable):
        client.snotel_csv(909)


def test_read_snotel_csv(snotel_csv):
    df = read_snotel_csv(snotel_csv, "Paradise")
    assert list(df.columns) == ["site_id", "date", "snow_depth"]
    assert (df["site_id"] == "Paradise").all()
    assert df["date"].dt.strftime("%Y-%m-%d").tolist() == ["2020-12-10", "2020-12-11", "2020-12-12"]
    assert df["snow_depth"].iloc[:2].tolist() == [10.0, 12.5]
    # blank cell is missing, not zero
    assert np.isnan(df["snow_depth"].iloc[2])


def test_read_snotel_csv_drops_flag_columns_before_lookup():
    text = "Date,Snow Depth (in) Start of Day Values Flag,Snow Depth (in) Start of Day Values\n2021-01-01,E,7\n"
    df = read_snotel_csv(text, "X")
    assert df["snow_depth"].tolist() == [7]


def test_read_snotel_csv_without_depth_column_fails():
    with pytest.raises(DataFormatError):
        read_snotel_csv("Date,Snow Water Equivalent (in) Start of Day Values\n2021-01-01,3.0\n", "X")


def test_read_snotel_csv_empty_or_bad_dates_fail():
    with pytest.raises(DataFormatError):
        read_snotel_csv("# nothing but comments\n", "X")
    with pytest.raises(DataFormatError):
        read_snotel_csv("Date,Snow Depth (in)\nyesterday,3\n", "X")


def test_read_snotel_csv_non_numeric_depth_fails(snotel_csv):
    with pytest.raises(DataFormatError):
        read_snotel_csv(snotel_csv.replace(",12.5,", ",T,"), "Paradise")
