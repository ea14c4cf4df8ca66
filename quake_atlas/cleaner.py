# -*- coding: utf-8 -*-
"""
Cleaning pass over fetched events: drop unusable magnitudes, derive year/decade.
Rows with missing depth, coordinates or time are kept; consumers that need
those fields filter for themselves.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, asdict

import pandas as pd

from .exceptions import DataQualityWarning
from .helpers import SENTINEL_MAGNITUDE, coords_ok_mask


@dataclass
class QualityReport:
    rows_in: int = 0
    rows_out: int = 0
    sentinel_magnitude: int = 0
    missing_magnitude: int = 0
    nonpositive_magnitude: int = 0
    missing_depth: int = 0
    bad_coordinates: int = 0
    missing_time: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _warn(msg: str) -> None:
    logging.warning(f"[clean] {msg}")
    warnings.warn(msg, DataQualityWarning, stacklevel=3)


def clean_events(events: pd.DataFrame) -> tuple[pd.DataFrame, QualityReport]:
    """
    Return (cleaned, report). Input order is preserved and the input frame is not modified.

    Dropped: magnitude missing or <= 0 (this covers the -999.0 sentinel).
    Added: year (Int64), decade (Int64, floor(year/10)*10).
    """
    rep = QualityReport(rows_in=len(events))
    df = events.copy()

    for c in ("magnitude", "depth", "latitude", "longitude"):
        df[c] = pd.to_numeric(df[c], errors="coerce")
    df["time"] = pd.to_datetime(df["time"], errors="coerce", utc=True)

    mag = df["magnitude"]
    rep.missing_magnitude = int(mag.isna().sum())
    rep.sentinel_magnitude = int((mag == SENTINEL_MAGNITUDE).sum())
    rep.nonpositive_magnitude = int((mag <= 0).sum()) - rep.sentinel_magnitude

    keep = mag.notna() & (mag > 0)
    df = df.loc[keep].reset_index(drop=True)

    year = df["time"].dt.year.astype("Int64")
    df["year"] = year
    df["decade"] = (year // 10) * 10

    rep.missing_depth = int(df["depth"].isna().sum())
    rep.bad_coordinates = int((~coords_ok_mask(df["latitude"], df["longitude"])).sum())
    rep.missing_time = int(df["time"].isna().sum())
    rep.rows_out = len(df)

    if rep.sentinel_magnitude:
        _warn(f"dropped {rep.sentinel_magnitude:,} row(s) with sentinel magnitude {SENTINEL_MAGNITUDE}")
    if rep.missing_magnitude:
        _warn(f"dropped {rep.missing_magnitude:,} row(s) with missing magnitude")
    if rep.nonpositive_magnitude:
        _warn(f"dropped {rep.nonpositive_magnitude:,} row(s) with magnitude <= 0")
    if rep.missing_depth:
        _warn(f"{rep.missing_depth:,} row(s) have no depth (kept)")
    if rep.bad_coordinates:
        _warn(f"{rep.bad_coordinates:,} row(s) have unusable coordinates (kept, excluded from country join)")
    if rep.missing_time:
        _warn(f"{rep.missing_time:,} row(s) have no event time (kept, no year/decade)")

    logging.info(f"[clean] rows in={rep.rows_in:,} out={rep.rows_out:,}")
    return df, rep
