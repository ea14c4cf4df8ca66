# -*- coding: utf-8 -*-
"""
Temporal, magnitude, depth and geographic distribution statistics computed
from the cleaned event table.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .helpers import coords_ok_mask

MAGNITUDE_BINS = [0.0, 4.0, 5.0, 6.0, 7.0, 8.0, 10.0]

# Standard seismological depth classes (km)
SHALLOW_MAX_KM = 70.0
INTERMEDIATE_MAX_KM = 300.0
DEPTH_CLASSES = ["SHALLOW", "INTERMEDIATE", "DEEP", "UNKNOWN"]


def decade_trends(events: pd.DataFrame) -> pd.DataFrame:
    """Per decade: count, mean/max magnitude, mean depth and % change in count vs the previous decade."""
    df = events.loc[events["decade"].notna()]
    if df.empty:
        return pd.DataFrame(columns=["decade", "earthquake_count", "mean_magnitude",
                                     "max_magnitude", "mean_depth", "count_change_pct"])
    out = (
        df.groupby("decade")
        .agg(earthquake_count=("magnitude", "size"),
             mean_magnitude=("magnitude", "mean"),
             max_magnitude=("magnitude", "max"),
             mean_depth=("depth", "mean"))
        .sort_index()
        .reset_index()
    )
    out["decade"] = out["decade"].astype("int64")
    out["earthquake_count"] = out["earthquake_count"].astype("int64")
    out["count_change_pct"] = out["earthquake_count"].astype(float).pct_change() * 100.0
    return out


def yearly_counts(events: pd.DataFrame) -> pd.DataFrame:
    df = events.loc[events["year"].notna()]
    out = (
        df.groupby("year")
        .agg(earthquake_count=("magnitude", "size"), mean_magnitude=("magnitude", "mean"))
        .sort_index()
        .reset_index()
    )
    out["year"] = out["year"].astype("int64")
    return out


def _band_labels(bins: Sequence[float]) -> list[str]:
    return [f"{lo:.1f}-{hi:.1f}" for lo, hi in zip(bins[:-1], bins[1:])]


def magnitude_distribution(events: pd.DataFrame, bins: Optional[Sequence[float]] = None) -> pd.DataFrame:
    """
    Event counts per right-open magnitude band ([5.0, 6.0) -> "5.0-6.0"); every band is listed.

    The last band also takes its upper edge and anything above it, so every
    magnitude at or above the first edge lands in exactly one band.
    """
    bins = list(bins or MAGNITUDE_BINS)
    labels = _band_labels(bins)
    edges = bins[:-1] + [np.inf]
    cats = pd.cut(events["magnitude"], bins=edges, labels=labels, right=False)
    counts = cats.value_counts(sort=False).reindex(labels, fill_value=0)
    return pd.DataFrame({"magnitude_band": labels, "earthquake_count": counts.astype("int64").values})


def depth_class(depth) -> str:
    if depth is None or pd.isna(depth): return "UNKNOWN"
    if depth < SHALLOW_MAX_KM: return "SHALLOW"
    if depth < INTERMEDIATE_MAX_KM: return "INTERMEDIATE"
    return "DEEP"


def depth_distribution(events: pd.DataFrame) -> pd.DataFrame:
    cls = events["depth"].map(depth_class)
    counts = cls.value_counts().reindex(DEPTH_CLASSES, fill_value=0)
    grp = events.groupby(cls)["magnitude"].mean().reindex(DEPTH_CLASSES)
    return pd.DataFrame({
        "depth_class": DEPTH_CLASSES,
        "earthquake_count": counts.astype("int64").values,
        "mean_magnitude": grp.values,
    })


def hemisphere_counts(events: pd.DataFrame) -> pd.DataFrame:
    """N/S x E/W split for events with usable coordinates (equator/meridian count as N/E)."""
    ok = coords_ok_mask(events["latitude"], events["longitude"])
    df = events.loc[ok]
    ns = np.where(df["latitude"] >= 0, "N", "S")
    ew = np.where(df["longitude"] >= 0, "E", "W")
    key = pd.Series([a + b for a, b in zip(ns, ew)], index=df.index, dtype="object")
    order = ["NE", "NW", "SE", "SW"]
    counts = key.value_counts().reindex(order, fill_value=0)
    return pd.DataFrame({"hemisphere": order, "earthquake_count": counts.astype("int64").values})


def summary_statistics(events: pd.DataFrame) -> pd.DataFrame:
    """count/mean/std/min/median/max for magnitude and depth, plus the covered time span."""
    rows = []
    for col in ("magnitude", "depth"):
        s = pd.to_numeric(events[col], errors="coerce").dropna()
        rows.append({
            "field": col, "count": int(s.size),
            "mean": s.mean(), "std": s.std(), "min": s.min(),
            "median": s.median(), "max": s.max(),
        })
    out = pd.DataFrame(rows).set_index("field")
    t = events["time"].dropna()
    out.attrs["first_event"] = t.min() if not t.empty else pd.NaT
    out.attrs["last_event"] = t.max() if not t.empty else pd.NaT
    return out


def compute_trends(events: pd.DataFrame) -> dict[str, pd.DataFrame]:
    trends = {
        "decades": decade_trends(events),
        "years": yearly_counts(events),
        "magnitude_bands": magnitude_distribution(events),
        "depth_classes": depth_distribution(events),
        "hemispheres": hemisphere_counts(events),
        "summary": summary_statistics(events),
    }
    logging.info(f"[trends] {len(trends['decades'])} decade(s), {len(trends['years'])} year(s)")
    return trends
