# ----
# main.py
# ----
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd
import geopandas as gpd
import requests

from .cleaner import QualityReport, clean_events
from .config import PipelineConfig
from .countries import load_countries
from .exceptions import (
    CatalogUnavailableError, ConfigurationError, CountryDataError, FetchError, GeometryError,
)
from .fetcher import SubRange, fetch_catalog
from .helpers import log_mem, setup_logging
from .joiner import join_events
from .trends import compute_trends


@dataclass
class RunAudit:
    """What was left out of this run, so results are never silently incomplete."""
    failed_windows: list[FetchError] = field(default_factory=list)
    saturated_windows: list[SubRange] = field(default_factory=list)
    excluded_countries: list[GeometryError] = field(default_factory=list)
    quality: QualityReport = field(default_factory=QualityReport)
    duplicates_dropped: int = 0
    features_without_id: int = 0
    degenerate_points: int = 0
    unattributed: int = 0

    @property
    def complete(self) -> bool:
        return not self.failed_windows and not self.saturated_windows


@dataclass
class PipelineResult:
    events: pd.DataFrame
    aggregates: pd.DataFrame
    country_summary: pd.DataFrame
    trends: dict[str, pd.DataFrame]
    audit: RunAudit


def run_pipeline(cfg: PipelineConfig, *,
                 session: Optional[requests.Session] = None,
                 countries: Optional[gpd.GeoDataFrame] = None) -> PipelineResult:
    """
    Fetch -> clean -> join -> aggregate for one configured run.

    `countries` may be passed pre-loaded ([country_name, geometry]); otherwise
    cfg.countries_path is read. Boundaries are loaded before any network work
    so a bad reference file fails the run early.
    """
    cfg.validate(require_countries=countries is None)
    t0 = time.time()
    logging.info(f"[run] {cfg.start}..{cfg.end} minmag={cfg.min_magnitude} "
                 f"window={cfg.window_years}y limit={cfg.page_limit:,} crs={cfg.crs}")

    if countries is None:
        countries = load_countries(cfg.countries_path, layer=cfg.countries_layer, name_field=cfg.name_field)

    fetched = fetch_catalog(
        cfg.start, cfg.end,
        window=cfg.window, min_magnitude=cfg.min_magnitude, page_limit=cfg.page_limit,
        timeout=cfg.timeout, max_workers=cfg.max_workers, fail_fast=cfg.fail_fast,
        session=session, url=cfg.catalog_url,
    )
    log_mem("after fetch")

    cleaned, quality = clean_events(fetched.events)
    joined = join_events(cleaned, countries, crs=cfg.crs)
    log_mem("after join")
    trends = compute_trends(joined.events)

    audit = RunAudit(
        failed_windows=fetched.failures,
        saturated_windows=fetched.saturated,
        excluded_countries=joined.excluded_countries,
        quality=quality,
        duplicates_dropped=fetched.duplicates_dropped,
        features_without_id=fetched.features_without_id,
        degenerate_points=joined.degenerate_points,
        unattributed=joined.unattributed,
    )
    for e in audit.failed_windows:
        logging.warning(f"[run] MISSING DATA: {e}")
    for e in audit.excluded_countries:
        logging.warning(f"[run] country excluded from join: {e}")
    logging.info(f"[run] done in {time.time()-t0:.2f}s | events={len(joined.events):,} "
                 f"countries={len(joined.aggregates):,} complete={audit.complete}")
    return PipelineResult(events=joined.events, aggregates=joined.aggregates,
                          country_summary=joined.country_summary, trends=trends, audit=audit)


def _log_table(title: str, df: pd.DataFrame) -> None:
    logging.info(f"{title}\n{df.to_string(index=False, float_format=lambda v: f'{v:.2f}')}")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Fetch global earthquakes, attribute them to countries, and summarize")
    ap.add_argument("--start", type=str, default=None, help="First day (YYYY-MM-DD)")
    ap.add_argument("--end", type=str, default=None, help="Last day, inclusive (YYYY-MM-DD)")
    ap.add_argument("--min-magnitude", type=float, default=None)
    ap.add_argument("--window-years", type=int, default=None, help="Sub-range width per catalog request")
    ap.add_argument("--page-limit", type=int, default=None, help="Per-request record cap sent as 'limit'")
    ap.add_argument("--countries", type=str, default=None, help="Country boundaries (any OGR dataset)")
    ap.add_argument("--countries-layer", type=str, default=None)
    ap.add_argument("--name-field", type=str, default=None, help="Country name column (auto-detected if omitted)")
    ap.add_argument("--workers", type=int, default=None, help="Concurrent catalog requests")
    ap.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds")
    ap.add_argument("--best-effort", action="store_true",
                    help="Continue past failed sub-ranges instead of aborting on the first one")
    ap.add_argument("--top", type=int, default=15, help="Countries to list in the summary")
    ap.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default=None)
    ap.add_argument("--log-dir", type=str, default=None)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = PipelineConfig.from_env(
            start=args.start, end=args.end, min_magnitude=args.min_magnitude,
            window_years=args.window_years, page_limit=args.page_limit,
            countries_path=args.countries, countries_layer=args.countries_layer,
            name_field=args.name_field, max_workers=args.workers, timeout=args.timeout,
            fail_fast=(False if args.best_effort else None),
            log_level=args.log_level, log_dir=args.log_dir,
        ).validate()
    except ConfigurationError as e:
        setup_logging("INFO")
        logging.error(f"[config] {e}")
        return 2

    setup_logging(cfg.log_level, cfg.log_dir)
    logging.info("[BEGIN] quake_atlas")
    try:
        res = run_pipeline(cfg)
    except CountryDataError as e:
        logging.error(f"[countries] aborting: {e}")
        return 1
    except CatalogUnavailableError as e:
        logging.error(f"[fetch] aborting: {e}")
        return 1
    except FetchError as e:
        logging.error(f"[fetch] aborting (fail-fast): {e}")
        return 1

    _log_table(f"Top {args.top} countries by earthquake count", res.aggregates.head(args.top))
    _log_table("Decade trends", res.trends["decades"])
    _log_table("Depth classes", res.trends["depth_classes"])
    logging.info("[END] quake_atlas")
    return 0 if res.audit.complete else 3


if __name__ == "__main__":
    sys.exit(main())
