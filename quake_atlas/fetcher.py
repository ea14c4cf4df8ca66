# -*- coding: utf-8 -*-
"""
Paginated retrieval of earthquake events from the USGS FDSN event service.

The service silently truncates a response at `limit` rows, so the overall
[start, end] range is split into fixed-width sub-ranges (one request each)
and the pages are concatenated in sub-range order.

Exposes:
- partition_date_range(start, end, window) -> list[SubRange]
- parse_features(payload) -> (DataFrame, n_without_id)
- fetch_window(session, sub_range, ...) -> DataFrame
- fetch_catalog(start, end, ...) -> FetchReport
"""
from __future__ import annotations

import concurrent.futures as cf
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional, Union

import pandas as pd
import requests

from .exceptions import CatalogUnavailableError, FetchError
from .helpers import EVENT_COLUMNS, USGS_QUERY_URL

TIMEOUT = 60
HEADERS = {"User-Agent": "quake-atlas/0.1 (batch earthquake country attribution)"}


@dataclass(frozen=True)
class SubRange:
    """Inclusive day window [start, end]."""
    start: date
    end: date

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"

    def query_bounds(self) -> tuple[str, str]:
        # endtime is an instant; close the last day at its final millisecond
        return self.start.isoformat(), f"{self.end.isoformat()}T23:59:59.999"

    def __str__(self) -> str:
        return self.label


@dataclass
class FetchReport:
    events: pd.DataFrame
    sub_ranges: list[SubRange]
    failures: list[FetchError] = field(default_factory=list)
    saturated: list[SubRange] = field(default_factory=list)
    duplicates_dropped: int = 0
    features_without_id: int = 0

    @property
    def complete(self) -> bool:
        return not self.failures


# ---- partitioning ----
def _as_date(d) -> date:
    if isinstance(d, (pd.Timestamp, datetime)):
        return d.date()
    if isinstance(d, date):
        return d
    return pd.Timestamp(d).date()

def partition_date_range(start, end, window: Union[pd.DateOffset, int]) -> list[SubRange]:
    """
    Split [start, end] (inclusive, day granularity) into contiguous windows.

    `window` is a pandas DateOffset (e.g. DateOffset(years=5)) or a number of days.
    Every day of the range belongs to exactly one window; the last window is
    clipped to `end`.
    """
    start, end = _as_date(start), _as_date(end)
    if start > end:
        raise ValueError(f"start {start} is after end {end}")
    if isinstance(window, int):
        if window < 1:
            raise ValueError(f"window must be at least one day, got {window}")
        window = pd.DateOffset(days=window)

    one_day = timedelta(days=1)
    out: list[SubRange] = []
    cursor = start
    while cursor <= end:
        nxt = (pd.Timestamp(cursor) + window).date()
        if nxt <= cursor:
            raise ValueError(f"window {window!r} does not advance past {cursor}")
        sub_end = min(nxt - one_day, end)
        out.append(SubRange(cursor, sub_end))
        cursor = sub_end + one_day
    return out


# ---- payload parsing ----
def _num(x) -> float:
    v = pd.to_numeric(x, errors="coerce")
    return float("nan") if pd.isna(v) else float(v)

def parse_features(payload: dict) -> tuple[pd.DataFrame, int]:
    """
    Flatten a GeoJSON FeatureCollection into event rows.

    Returns (frame, n_without_id). Features without an id are dropped;
    missing or short coordinate arrays give NaN coordinates.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("features"), list):
        raise ValueError("payload has no 'features' list")

    recs, no_id = [], 0
    for feat in payload["features"]:
        if not isinstance(feat, dict):
            raise ValueError(f"feature is not an object: {type(feat).__name__}")
        eid = feat.get("id")
        if eid is None or str(eid).strip() == "":
            no_id += 1
            continue
        props = feat.get("properties") or {}
        coords = (feat.get("geometry") or {}).get("coordinates") or []
        coords = list(coords) + [None] * (3 - len(coords))
        recs.append({
            "event_id": str(eid),
            "time": props.get("time"),
            "magnitude": _num(props.get("mag")),
            "place": props.get("place"),
            "longitude": _num(coords[0]),
            "latitude": _num(coords[1]),
            "depth": _num(coords[2]),
        })

    df = pd.DataFrame(recs, columns=EVENT_COLUMNS)
    df["time"] = pd.to_datetime(pd.to_numeric(df["time"], errors="coerce"), unit="ms", utc=True)
    for c in ("magnitude", "longitude", "latitude", "depth"):
        df[c] = df[c].astype("float64")
    return df, no_id

def empty_events() -> pd.DataFrame:
    df = pd.DataFrame({c: pd.Series(dtype="float64") for c in EVENT_COLUMNS})
    df["event_id"] = df["event_id"].astype("object")
    df["place"] = df["place"].astype("object")
    df["time"] = pd.Series(dtype="datetime64[ns, UTC]")
    return df


# ---- network ----
def fetch_window(session: requests.Session, sub_range: SubRange, *,
                 min_magnitude: float, page_limit: int,
                 timeout: float = TIMEOUT, url: str = USGS_QUERY_URL) -> tuple[pd.DataFrame, int]:
    """
    One catalog request for one sub-range. Returns (events, n_without_id).

    :raises FetchError: on HTTP/network failure, timeout, or malformed payload
    """
    starttime, endtime = sub_range.query_bounds()
    params = {
        "format": "geojson",
        "starttime": starttime,
        "endtime": endtime,
        "minmagnitude": min_magnitude,
        "limit": page_limit,
        "orderby": "time-asc",
    }
    try:
        r = session.get(url, params=params, headers=HEADERS, timeout=timeout)
        r.raise_for_status()
        payload = r.json()
    except requests.exceptions.RequestException as e:
        raise FetchError(sub_range, e) from e
    except ValueError as e:
        raise FetchError(sub_range, f"response is not JSON: {e}") from e

    try:
        return parse_features(payload)
    except ValueError as e:
        raise FetchError(sub_range, f"malformed payload: {e}") from e


def dedup_events(frames: list[pd.DataFrame]) -> tuple[pd.DataFrame, int]:
    """Concatenate in order and keep the first occurrence of each event_id."""
    frames = [f for f in frames if f is not None and not f.empty]
    if not frames:
        return empty_events(), 0
    df = pd.concat(frames, ignore_index=True)
    dup = df.duplicated(subset="event_id", keep="first")
    n_dup = int(dup.sum())
    if n_dup:
        logging.info(f"[fetch] dropped {n_dup:,} duplicate event id(s) across sub-range edges")
    return df.loc[~dup].reset_index(drop=True), n_dup


def fetch_catalog(start, end, *,
                  window: Union[pd.DateOffset, int] = pd.DateOffset(years=5),
                  min_magnitude: float = 4.5,
                  page_limit: int = 20000,
                  timeout: float = TIMEOUT,
                  max_workers: int = 1,
                  fail_fast: bool = True,
                  session: Optional[requests.Session] = None,
                  url: str = USGS_QUERY_URL) -> FetchReport:
    """
    Fetch every sub-range of [start, end] and assemble one deduplicated table.

    fail_fast=True: the first failed sub-range cancels outstanding work and
    its FetchError propagates. fail_fast=False: failures are collected in the
    report and the run continues without rows from those sub-ranges.
    If every sub-range fails, CatalogUnavailableError is raised either way.
    """
    sub_ranges = partition_date_range(start, end, window)
    logging.info(f"[fetch] {len(sub_ranges)} sub-range(s) {sub_ranges[0].start}..{sub_ranges[-1].end} | "
                 f"minmag={min_magnitude} limit={page_limit} workers={max_workers}")

    own_session = session is None
    if own_session:
        session = requests.Session()

    pages: dict[SubRange, tuple[pd.DataFrame, int]] = {}
    failures: list[FetchError] = []

    def _one(sr: SubRange):
        t0 = time.time()
        df, no_id = fetch_window(session, sr, min_magnitude=min_magnitude, page_limit=page_limit,
                                 timeout=timeout, url=url)
        logging.info(f"[fetch] {sr.label}: {len(df):,} event(s) in {time.time()-t0:.2f}s")
        return df, no_id

    def _failed(e: FetchError):
        logging.error(f"[fetch] {e}")
        failures.append(e)
        if fail_fast:
            raise e

    try:
        if max_workers <= 1:
            for sr in sub_ranges:
                try:
                    pages[sr] = _one(sr)
                except FetchError as e:
                    _failed(e)
        else:
            with cf.ThreadPoolExecutor(max_workers=max_workers) as ex:
                futs = {ex.submit(_one, sr): sr for sr in sub_ranges}
                try:
                    for fut in cf.as_completed(futs):
                        try:
                            pages[futs[fut]] = fut.result()
                        except FetchError as e:
                            _failed(e)
                except FetchError:
                    for f in futs:
                        f.cancel()
                    raise
    finally:
        if own_session:
            session.close()

    if failures and len(failures) == len(sub_ranges):
        raise CatalogUnavailableError(sorted(failures, key=lambda e: e.sub_range.start))
    failures.sort(key=lambda e: e.sub_range.start)

    # total order by sub-range start before dedup
    ordered = [sr for sr in sub_ranges if sr in pages]
    saturated = [sr for sr in ordered if len(pages[sr][0]) >= page_limit]
    for sr in saturated:
        logging.warning(f"[fetch] {sr.label} returned {page_limit:,} rows (= limit); "
                        f"results may be truncated, use a smaller window")
    no_id = sum(pages[sr][1] for sr in ordered)
    if no_id:
        logging.warning(f"[fetch] skipped {no_id:,} feature(s) without an id")

    events, n_dup = dedup_events([pages[sr][0] for sr in ordered])
    logging.info(f"[fetch] assembled {len(events):,} event(s) from {len(ordered)}/{len(sub_ranges)} sub-range(s)")
    return FetchReport(events=events, sub_ranges=sub_ranges, failures=failures,
                       saturated=saturated, duplicates_dropped=n_dup, features_without_id=no_id)
