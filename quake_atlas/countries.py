# -*- coding: utf-8 -*-
"""
Country boundary reference data: load once, harmonize CRS, repair geometry.

Exposes:
- load_countries(path, layer=None, name_field=None) -> GeoDataFrame[country_name, geometry]
- prepare_countries(countries, crs=WGS84) -> (GeoDataFrame, list[GeometryError])
"""
from __future__ import annotations

import logging
from typing import Optional

import pandas as pd
import geopandas as gpd
from pyogrio.errors import DataSourceError

from .exceptions import CountryDataError, GeometryError
from .helpers import COUNTRY_ISO_FIELDS, COUNTRY_NAME_FIELDS, WGS84, diagnose_geom, repair_polygon


def _country_name_from_row(row) -> str | None:
    """Pick a reasonable country name field from a countries layer row."""
    for f in COUNTRY_NAME_FIELDS:
        if f in row and pd.notna(row[f]) and str(row[f]).strip(): return str(row[f]).strip()
    # ISO fallback
    for f in COUNTRY_ISO_FIELDS:
        if f in row and pd.notna(row[f]) and str(row[f]).strip(): return str(row[f]).strip()
    return None


def load_countries(path: str, layer: Optional[str] = None, name_field: Optional[str] = None) -> gpd.GeoDataFrame:
    """
    Read a countries layer (any OGR dataset) into [country_name, geometry].

    :raises CountryDataError: If the dataset cannot be read or the name field is absent
    """
    try:
        world = gpd.read_file(path, layer=layer) if layer else gpd.read_file(path)
    except (DataSourceError, OSError, ValueError) as e:
        raise CountryDataError(f"cannot read country boundaries from {path}: {e}") from e
    logging.info(f"[countries] read {len(world):,} feature(s) from {path}")

    if name_field:
        if name_field not in world.columns:
            raise CountryDataError(f"name field {name_field!r} not in {path} (columns: {list(world.columns)})")
        names = world[name_field].where(world[name_field].notna(), None)
    else:
        names = world.apply(_country_name_from_row, axis=1) if len(world) else pd.Series(dtype=object)

    out = gpd.GeoDataFrame({"country_name": names.values}, geometry=world.geometry.values, crs=world.crs)
    return out


def prepare_countries(countries: gpd.GeoDataFrame, crs: str = WGS84,
                      name_field: str = "country_name") -> tuple[gpd.GeoDataFrame, list[GeometryError]]:
    """
    Make a polygon layer safe for containment testing.

    - unset CRS is taken as WGS84, then everything is reprojected to `crs`
    - invalid polygons are repaired (make_valid, polygonal parts, buffer(0))
    - empty/unrepairable/nameless rows are excluded and reported
    - rows sharing a name are dissolved, keeping the first row's position
    The input frame is not modified.

    Returns (prepared[country_name, country_order, geometry], exclusions).

    :raises CountryDataError: If no usable polygon remains
    """
    g = countries
    if g.crs is None:
        logging.warning(f"[countries] boundary layer has no CRS; assuming {WGS84}")
        g = g.set_crs(WGS84)
    if not g.crs.equals(crs):
        g = g.to_crs(crs)

    excluded: list[GeometryError] = []
    names, geoms = [], []
    for pos, (name, geom) in enumerate(zip(g[name_field], g.geometry)):
        if name is None or pd.isna(name) or not str(name).strip():
            err = GeometryError(f"<row {pos}>", "no country name")
            logging.warning(f"[countries] excluded: {err}")
            excluded.append(err)
            continue
        name = str(name).strip()
        diag = diagnose_geom(geom)
        fixed = repair_polygon(geom) if diag != "geom_ok" else geom
        if fixed is None or fixed.geom_type not in ("Polygon", "MultiPolygon"):
            err = GeometryError(name, diag if fixed is None else f"not polygonal: {fixed.geom_type}")
            logging.warning(f"[countries] excluded: {err}")
            excluded.append(err)
            continue
        if fixed is not geom:
            logging.info(f"[countries] repaired {name}: {diag}")
        names.append(name); geoms.append(fixed)

    if not names:
        raise CountryDataError(f"no usable country polygons ({len(excluded)} excluded)")

    prepared = gpd.GeoDataFrame({"country_name": names}, geometry=geoms, crs=g.crs)
    if prepared["country_name"].duplicated().any():
        n_before = len(prepared)
        order = pd.unique(prepared["country_name"])
        prepared = prepared.dissolve(by="country_name", sort=False).reindex(order).reset_index()
        logging.info(f"[countries] dissolved {n_before - len(prepared):,} duplicate-name row(s)")
    prepared["country_order"] = range(len(prepared))
    prepared = prepared[["country_name", "country_order", "geometry"]]

    logging.info(f"[countries] usable={len(prepared):,} excluded={len(excluded):,} crs={prepared.crs.to_string()}")
    return prepared, excluded
