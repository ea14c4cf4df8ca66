# -*- coding: utf-8 -*-
"""
Run configuration. All toggles live in one dataclass; defaults can be
overridden from QUAKE_ATLAS_* environment variables (a local .env is read).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import pandas as pd
from dotenv import load_dotenv
from pyproj import CRS
from pyproj.exceptions import CRSError

from .exceptions import ConfigurationError
from .helpers import WGS84, USGS_QUERY_URL, data_path

ENV_PREFIX = "QUAKE_ATLAS_"


def _env(name: str, default=None):
    return os.getenv(ENV_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _env_num(name: str, default, cast):
    v = _env(name, default)
    try:
        return cast(v)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name}={v!r} is not a valid {cast.__name__}") from e


def _to_date(v) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return pd.Timestamp(v).date()
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid date: {v!r}") from e


@dataclass
class PipelineConfig:
    # Catalog window
    start: date = date(1970, 1, 1)
    end: date = field(default_factory=date.today)
    min_magnitude: float = 4.5

    # Paging
    window_years: int = 5
    page_limit: int = 20000
    timeout: float = 60.0
    max_workers: int = 1
    fail_fast: bool = True
    catalog_url: str = USGS_QUERY_URL

    # Country reference data
    countries_path: Optional[str] = None
    countries_layer: Optional[str] = None
    name_field: Optional[str] = None
    crs: str = WGS84

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def __post_init__(self):
        self.start = _to_date(self.start)
        self.end = _to_date(self.end)

    @property
    def window(self) -> pd.DateOffset:
        return pd.DateOffset(years=self.window_years)

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """Build a config from environment defaults; explicit overrides win (None is ignored)."""
        load_dotenv()
        vals = {
            "start": _env("START", "1970-01-01"),
            "end": _env("END", date.today().isoformat()),
            "min_magnitude": _env_num("MIN_MAGNITUDE", 4.5, float),
            "window_years": _env_num("WINDOW_YEARS", 5, int),
            "page_limit": _env_num("PAGE_LIMIT", 20000, int),
            "timeout": _env_num("TIMEOUT", 60, float),
            "max_workers": _env_num("MAX_WORKERS", 1, int),
            "fail_fast": _env_bool("FAIL_FAST", True),
            "catalog_url": _env("CATALOG_URL", USGS_QUERY_URL),
            "countries_path": _env("COUNTRIES",
                                   str(data_path("ne_110m_admin_0_countries", "ne_110m_admin_0_countries.shp"))),
            "countries_layer": _env("COUNTRIES_LAYER"),
            "name_field": _env("NAME_FIELD"),
            "crs": _env("CRS", WGS84),
            "log_level": _env("LOG_LEVEL", "INFO"),
            "log_dir": _env("LOG_DIR"),
        }
        vals.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**vals)

    def validate(self, require_countries: bool = True) -> "PipelineConfig":
        """
        Validate run parameters.

        :raises ConfigurationError: If any parameter is missing or invalid
        """
        if self.start > self.end:
            raise ConfigurationError(f"start ({self.start}) is after end ({self.end})")
        if self.window_years < 1:
            raise ConfigurationError(f"window_years must be >= 1, got {self.window_years}")
        if self.page_limit < 1:
            raise ConfigurationError(f"page_limit must be >= 1, got {self.page_limit}")
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout}")
        if self.min_magnitude < 0:
            raise ConfigurationError(f"min_magnitude must be >= 0, got {self.min_magnitude}")
        try:
            CRS.from_user_input(self.crs)
        except CRSError as e:
            raise ConfigurationError(f"Unknown CRS {self.crs!r}: {e}") from e
        if require_countries and not self.countries_path:
            raise ConfigurationError("countries_path is required")
        return self
