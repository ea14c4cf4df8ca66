"""Unit tests for run configuration.

Tests cover:
- Environment variable loading and explicit overrides
- Configuration validation
"""

from dataclasses import fields
from datetime import date, datetime
from unittest.mock import patch

import pandas as pd
import pytest

from quake_atlas.config import PipelineConfig
from quake_atlas.exceptions import ConfigurationError


def _cfg(**kw):
    base = dict(start="2000-01-01", end="2009-12-31", countries_path="countries.shp")
    base.update(kw)
    return PipelineConfig(**base)


@pytest.mark.unit
class TestEnvironmentVariables:
    """Test QUAKE_ATLAS_* loading."""

    def test_defaults(self, monkeypatch):
        for name in ("START", "MIN_MAGNITUDE", "WINDOW_YEARS", "PAGE_LIMIT", "FAIL_FAST", "CRS"):
            monkeypatch.delenv(f"QUAKE_ATLAS_{name}", raising=False)

        cfg = PipelineConfig.from_env()

        assert cfg.start == date(1970, 1, 1)
        assert cfg.min_magnitude == 4.5
        assert cfg.window_years == 5
        assert cfg.page_limit == 20000
        assert cfg.fail_fast is True
        assert cfg.crs == "EPSG:4326"
        assert cfg.countries_path

    def test_env_values_are_parsed(self, monkeypatch):
        monkeypatch.setenv("QUAKE_ATLAS_START", "1990-01-01")
        monkeypatch.setenv("QUAKE_ATLAS_END", "1999-12-31")
        monkeypatch.setenv("QUAKE_ATLAS_MIN_MAGNITUDE", "5.5")
        monkeypatch.setenv("QUAKE_ATLAS_WINDOW_YEARS", "2")
        monkeypatch.setenv("QUAKE_ATLAS_MAX_WORKERS", "3")
        monkeypatch.setenv("QUAKE_ATLAS_FAIL_FAST", "false")

        cfg = PipelineConfig.from_env()

        assert cfg.start == date(1990, 1, 1)
        assert cfg.end == date(1999, 12, 31)
        assert cfg.min_magnitude == 5.5
        assert cfg.window_years == 2
        assert cfg.max_workers == 3
        assert cfg.fail_fast is False

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("QUAKE_ATLAS_MIN_MAGNITUDE", "5.5")

        cfg = PipelineConfig.from_env(min_magnitude=6.0, window_years=None)

        assert cfg.min_magnitude == 6.0
        assert cfg.window_years == 5

    def test_bad_number_in_env(self, monkeypatch):
        monkeypatch.setenv("QUAKE_ATLAS_PAGE_LIMIT", "lots")

        with pytest.raises(ConfigurationError, match="QUAKE_ATLAS_PAGE_LIMIT"):
            PipelineConfig.from_env()

    def test_dotenv_read_when_building_from_env(self):
        with patch("quake_atlas.config.load_dotenv") as load:
            PipelineConfig.from_env()
        load.assert_called_once_with()

    def test_end_defaults_to_today_at_construction(self):
        end_field = next(f for f in fields(PipelineConfig) if f.name == "end")

        assert end_field.default_factory is date.today
        assert PipelineConfig().end == date.today()

    def test_datetime_bounds_become_dates(self):
        cfg = _cfg(start=datetime(2000, 1, 1, 6), end=date(2009, 12, 31))

        assert cfg.start == date(2000, 1, 1)
        assert type(cfg.start) is date
        cfg.validate()

    def test_bad_date(self):
        with pytest.raises(ConfigurationError):
            _cfg(start="not-a-date")


@pytest.mark.unit
class TestValidation:
    """Test PipelineConfig.validate."""

    def test_valid_config(self):
        cfg = _cfg().validate()
        assert cfg.window == pd.DateOffset(years=5)

    @pytest.mark.parametrize("kw", [
        {"start": "2010-01-01", "end": "2009-12-31"},
        {"window_years": 0},
        {"page_limit": 0},
        {"max_workers": 0},
        {"timeout": 0},
        {"min_magnitude": -1.0},
        {"crs": "EPSG:999999"},
        {"countries_path": None},
    ])
    def test_invalid(self, kw):
        with pytest.raises(ConfigurationError):
            _cfg(**kw).validate()

    def test_countries_path_optional_when_preloaded(self):
        _cfg(countries_path=None).validate(require_countries=False)
