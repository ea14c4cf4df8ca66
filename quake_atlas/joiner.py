# -*- coding: utf-8 -*-
"""
Point-in-polygon country attribution and per-country rollups.

Each event with usable coordinates is attributed to at most one country:
a point inside or on the boundary of a country's (repaired) polygon matches
it; when several countries match, the lowest `country_order` wins; points
matching nothing stay unattributed (country_name is null). Events with
unusable coordinates never reach the join and count against no country.

The CRS is passed in explicitly; inputs are never modified.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import geopandas as gpd

from .countries import prepare_countries
from .exceptions import GeometryError
from .helpers import WGS84, coords_ok_mask

AGG_COLUMNS = ["country_name", "earthquake_count", "mean_magnitude", "max_magnitude"]


@dataclass
class JoinResult:
    events: pd.DataFrame                  # cleaned events + country_name
    aggregates: pd.DataFrame              # one row per country with >= 1 event
    country_summary: pd.DataFrame         # every usable country, zero-event rows included
    excluded_countries: list[GeometryError] = field(default_factory=list)
    degenerate_points: int = 0

    @property
    def attributed(self) -> int:
        return int(self.events["country_name"].notna().sum())

    @property
    def unattributed(self) -> int:
        """Events with usable points that fell outside every country."""
        return len(self.events) - self.attributed - self.degenerate_points


def events_to_points(events: pd.DataFrame, crs: str = WGS84) -> gpd.GeoDataFrame:
    """
    Point layer for events whose lon/lat are finite and inside WGS84 bounds.
    Keeps the events' index. Coordinates are WGS84 degrees and are projected to `crs`.
    """
    ok = coords_ok_mask(events["latitude"], events["longitude"])
    sub = events.loc[ok, ["latitude", "longitude"]]
    pts = gpd.GeoDataFrame(
        index=sub.index,
        geometry=gpd.points_from_xy(sub["longitude"].astype(float), sub["latitude"].astype(float)),
        crs=WGS84,
    )
    if not pts.crs.equals(crs):
        pts = pts.to_crs(crs)
    # projection can still produce non-finite coordinates
    good = pd.Series(np.isfinite(pts.geometry.x.to_numpy()) & np.isfinite(pts.geometry.y.to_numpy()),
                     index=pts.index)
    if not good.all():
        logging.warning(f"[join] {int((~good).sum()):,} point(s) not finite in {crs}; excluded from the join")
        pts = pts.loc[good]
    return pts


def attribute_events(events: pd.DataFrame, countries: gpd.GeoDataFrame,
                     crs: str = WGS84) -> tuple[pd.DataFrame, int]:
    """
    Return (events + country_name, n_degenerate).

    `countries` must come from prepare_countries (country_name, country_order, geometry).
    """
    if not events.index.is_unique:
        raise ValueError("events index must be unique")
    out = events.copy()
    out["country_name"] = pd.Series(np.nan, index=out.index, dtype="object")

    pts = events_to_points(events, crs)
    n_degenerate = len(events) - len(pts)
    if n_degenerate:
        logging.info(f"[join] {n_degenerate:,} event(s) without usable coordinates excluded from the join")
    if pts.empty:
        return out, n_degenerate

    polys = countries[["country_name", "country_order", "geometry"]]
    if polys.crs is None:
        polys = polys.set_crs(WGS84)
    if not polys.crs.equals(pts.crs):
        polys = polys.to_crs(pts.crs)

    j = gpd.sjoin(pts, polys, how="inner", predicate="intersects")
    if j.empty:
        return out, n_degenerate

    # tie-break: first country in the fixed source order
    j = pd.DataFrame({"_event_idx": j.index, "country_name": j["country_name"].values,
                      "country_order": j["country_order"].values})
    j = j.sort_values(["_event_idx", "country_order"], kind="mergesort")
    multi = j["_event_idx"].duplicated(keep=False)
    if multi.any():
        logging.warning(f"[join] {j.loc[multi, '_event_idx'].nunique():,} event(s) matched more than one "
                        f"country; kept the first in source order")
    first = j.drop_duplicates(subset="_event_idx", keep="first").set_index("_event_idx")["country_name"]
    out.loc[first.index, "country_name"] = first.values

    n_attr = int(out["country_name"].notna().sum())
    logging.info(f"[join] attributed={n_attr:,} unattributed={len(pts) - n_attr:,} "
                 f"degenerate={n_degenerate:,}")
    return out, n_degenerate


def aggregate_by_country(annotated: pd.DataFrame) -> pd.DataFrame:
    """
    Per-country count / mean / max magnitude over attributed events (NaN ignored).
    Sorted by count (desc) then name.
    """
    att = annotated.loc[annotated["country_name"].notna(), ["country_name", "magnitude"]]
    if att.empty:
        return pd.DataFrame({
            "country_name": pd.Series(dtype="object"),
            "earthquake_count": pd.Series(dtype="int64"),
            "mean_magnitude": pd.Series(dtype="float64"),
            "max_magnitude": pd.Series(dtype="float64"),
        })
    agg = (
        att.groupby("country_name", sort=False)
        .agg(earthquake_count=("magnitude", "size"),
             mean_magnitude=("magnitude", "mean"),
             max_magnitude=("magnitude", "max"))
        .reset_index()
    )
    agg["earthquake_count"] = agg["earthquake_count"].astype("int64")
    agg = agg.sort_values(["earthquake_count", "country_name"], ascending=[False, True], kind="mergesort")
    return agg[AGG_COLUMNS].reset_index(drop=True)


def country_summary(countries: gpd.GeoDataFrame, aggregates: pd.DataFrame) -> pd.DataFrame:
    """Left join of every usable country against the aggregate (count 0, NaN stats when empty)."""
    base = pd.DataFrame({"country_name": countries["country_name"].values})
    s = base.merge(aggregates, on="country_name", how="left")
    s["earthquake_count"] = s["earthquake_count"].fillna(0).astype("int64")
    return s[AGG_COLUMNS]


def join_events(events: pd.DataFrame, countries: gpd.GeoDataFrame, crs: str = WGS84) -> JoinResult:
    """Prepare polygons, attribute events, and aggregate per country."""
    prepared, excluded = prepare_countries(countries, crs=crs)
    annotated, n_degenerate = attribute_events(events, prepared, crs=crs)
    agg = aggregate_by_country(annotated)
    summary = country_summary(prepared, agg)
    logging.info(f"[join] {len(agg):,} countr(y/ies) with events; {len(excluded):,} excluded from testing")
    return JoinResult(events=annotated, aggregates=agg, country_summary=summary,
                      excluded_countries=excluded, degenerate_points=n_degenerate)
