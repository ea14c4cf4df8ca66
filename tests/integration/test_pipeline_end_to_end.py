"""End-to-end tests for the batch run.

Fetch (mocked HTTP) -> clean -> country join -> aggregates -> trends,
plus the command-line entry point.
"""

import logging
import warnings
from unittest.mock import patch

import pandas as pd
import pytest

from quake_atlas.config import PipelineConfig
from quake_atlas.exceptions import DataQualityWarning, FetchError
from quake_atlas.main import main, run_pipeline

MS_1995 = int(pd.Timestamp("1995-03-01", tz="UTC").value // 1_000_000)
MS_2003 = int(pd.Timestamp("2003-07-01", tz="UTC").value // 1_000_000)


@pytest.fixture(autouse=True)
def _quiet_quality_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DataQualityWarning)
        yield


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)


@pytest.fixture
def cfg():
    return PipelineConfig(start="1990-01-01", end="2009-12-31", window_years=10, page_limit=100,
                          min_magnitude=4.5, countries_path=None)


@pytest.fixture
def catalog(feature, payload):
    return {
        "1990-01-01": payload([
            feature("a", 5.0, 5, 5, time_ms=MS_1995),
            feature("b", 6.0, -40, -30, time_ms=MS_1995),
            feature("c", -999.0, 2, 3, time_ms=MS_1995),
        ]),
        "2000-01-01": payload([
            feature("c", -999.0, 2, 3, time_ms=MS_1995),
            feature("d", 7.0, 8, 1, depth=400.0, time_ms=MS_2003),
            feature("e", 4.6, 25, 5, time_ms=MS_2003),
        ]),
    }


@pytest.mark.integration
class TestRunPipeline:
    """Test run_pipeline with a mocked catalog."""

    def test_full_run(self, cfg, catalog, session_for, testland):
        res = run_pipeline(cfg, session=session_for(catalog), countries=testland)

        agg = res.aggregates.set_index("country_name")
        assert agg.loc["Testland", "earthquake_count"] == 2
        assert agg.loc["Testland", "mean_magnitude"] == pytest.approx(6.0)
        assert agg.loc["Testland", "max_magnitude"] == pytest.approx(7.0)
        assert agg.loc["Otherland", "earthquake_count"] == 1

        assert res.events["event_id"].tolist() == ["a", "b", "d", "e"]
        assert res.audit.quality.sentinel_magnitude == 1
        assert res.audit.duplicates_dropped == 1
        assert res.audit.unattributed == 1
        assert res.audit.complete

        decades = res.trends["decades"].set_index("decade")
        assert decades["earthquake_count"].to_dict() == {1990: 2, 2000: 2}

    def test_best_effort_reports_missing_window(self, cfg, catalog, session_for, response, testland):
        catalog["2000-01-01"] = response(status=500)
        cfg.fail_fast = False

        res = run_pipeline(cfg, session=session_for(catalog), countries=testland)

        assert not res.audit.complete
        assert [e.sub_range.label for e in res.audit.failed_windows] == ["2000-01-01..2009-12-31"]
        assert res.events["event_id"].tolist() == ["a", "b"]

    def test_fail_fast_aborts(self, cfg, catalog, session_for, response, testland):
        catalog["2000-01-01"] = response(status=500)

        with pytest.raises(FetchError) as exc:
            run_pipeline(cfg, session=session_for(catalog), countries=testland)
        assert exc.value.sub_range.label == "2000-01-01..2009-12-31"

    def test_country_summary_includes_zero_event_countries(self, cfg, session_for, payload, feature, testland):
        catalog = {"1990-01-01": payload([feature("a", 5.0, 5, 5, time_ms=MS_1995)])}

        res = run_pipeline(cfg, session=session_for(catalog), countries=testland)

        summary = res.country_summary.set_index("country_name")
        assert summary.loc["Otherland", "earthquake_count"] == 0
        assert res.aggregates["country_name"].tolist() == ["Testland"]


@pytest.mark.integration
class TestCommandLine:
    """Test the main() entry point."""

    def test_bad_config_exit_code(self):
        assert main(["--start", "2010-01-01", "--end", "2000-01-01", "--countries", "x.shp"]) == 2

    def test_missing_countries_file_exit_code(self, tmp_path):
        rc = main(["--start", "2000-01-01", "--end", "2000-12-31",
                   "--countries", str(tmp_path / "missing.shp")])
        assert rc == 1

    def test_successful_run(self, tmp_path, catalog, session_for, testland):
        path = tmp_path / "countries.geojson"
        testland.to_file(path, driver="GeoJSON")
        session = session_for(catalog)

        with patch("quake_atlas.fetcher.requests.Session", return_value=session):
            rc = main(["--start", "1990-01-01", "--end", "2009-12-31", "--window-years", "10",
                       "--countries", str(path), "--name-field", "country_name",
                       "--log-dir", str(tmp_path / "logs")])

        assert rc == 0
        assert (tmp_path / "logs" / "pipeline.log").exists()
        assert session.get.call_count == 2
