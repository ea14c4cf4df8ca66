# ----
# helpers.py (constants, logging, pathing, geometry repair/diagnosis helpers)
# ----
from __future__ import annotations

import os, sys, logging, psutil
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
from shapely.ops import unary_union
from shapely.validation import explain_validity, make_valid

# ---- constants ----
WGS84 = "EPSG:4326"
USGS_QUERY_URL = "https://earthquake.usgs.gov/fdsnws/event/1/query"
SENTINEL_MAGNITUDE = -999.0

EVENT_COLUMNS = ["event_id", "time", "magnitude", "place", "longitude", "latitude", "depth"]

# Natural Earth first, then common admin-0 layouts; ISO codes as last resort
COUNTRY_NAME_FIELDS = ("ADMIN", "NAME_EN", "NAME", "SOVEREIGNT", "COUNTRY", "CNTRY_NAME", "NAME_0")
COUNTRY_ISO_FIELDS = ("ISO_A3_EH", "ISO_A3", "ISO3", "ADM0_A3", "GID_0")

# ---- logging ----
def setup_logging(level=logging.INFO, log_dir: Optional[str] = None) -> None:
    """Console + optional file logging, safe for repeat calls."""
    logger = logging.getLogger()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    fmt = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(fmt); ch.setLevel(level)
    logger.addHandler(ch)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh_path = os.path.join(log_dir, 'pipeline.log')
        fh = logging.FileHandler(fh_path, encoding='utf-8')
        fh.setFormatter(fmt); fh.setLevel(level)
        logger.addHandler(fh)
        logging.info(f"Logging to file: {fh_path}")

def log_mem(note=""):
    p = psutil.Process(os.getpid())
    rss = p.memory_info().rss / (1024**2)
    logging.info(f"[MEM] {note} RSS={rss:.1f} MB")

# ---- pathing ----
# Base folder for local reference data (default: ./data). Can override via env var.
DATA_DIR = Path(os.getenv("QUAKE_ATLAS_DATA_DIR", "data")).expanduser().resolve()

def data_path(*parts: str) -> Path:
    """
    Build a path inside the data directory.
    Example: data_path("ne_110m_admin_0_countries", "ne_110m_admin_0_countries.shp")
    """
    p = Path(parts[0])
    for q in parts[1:]:
        p = p / q
    return (DATA_DIR / p).resolve()

# ---- small utils ----
def coords_ok_mask(lat: pd.Series, lon: pd.Series) -> pd.Series:
    """True where lat/lon are finite and inside WGS84 bounds."""
    la = pd.to_numeric(lat, errors="coerce").to_numpy(dtype=float)
    lo = pd.to_numeric(lon, errors="coerce").to_numpy(dtype=float)
    ok = np.isfinite(la) & np.isfinite(lo)
    with np.errstate(invalid="ignore"):
        ok &= (la >= -90) & (la <= 90) & (lo >= -180) & (lo <= 180)
    return pd.Series(ok, index=lat.index)

def _keep_surface_parts(g):
    """
    Keep polygonal parts only. Returns Polygon/MultiPolygon or None.
    """
    if g is None or getattr(g, "is_empty", True):
        return None
    gt = getattr(g, "geom_type", "")
    if gt in ("Polygon", "MultiPolygon"):
        return g
    if gt == "GeometryCollection":
        parts = [p for p in g.geoms if getattr(p, "geom_type", "") in ("Polygon", "MultiPolygon")]
        if not parts:
            return None
        return unary_union(parts)
    return None

def repair_polygon(g):
    """
    Make geometry valid, strip to polygonal surfaces, and robustify with buffer(0).
    Returns a valid Polygon/MultiPolygon or None when nothing usable is left.
    """
    if g is None or getattr(g, "is_empty", True):
        return None
    if not g.is_valid:
        g = make_valid(g)
    g = _keep_surface_parts(g)
    if g is None or g.is_empty:
        return None
    if not g.is_valid:
        g = _keep_surface_parts(g.buffer(0))
    if g is None or g.is_empty or not g.is_valid:
        return None
    return g

def diagnose_geom(geom):
    if geom is None:
        return "geom_none"
    if geom.is_empty:
        return "geom_empty"
    if not geom.is_valid:
        return f"geom_invalid:{explain_validity(geom)}"
    if geom.area == 0:
        return "geom_zero_area"
    return "geom_ok"

