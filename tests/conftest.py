"""Pytest configuration and shared fixtures for quake_atlas tests.

This module provides fixtures for:
- Synthetic country polygons ("Testland" and neighbours)
- USGS-style GeoJSON payload factories
- Mock requests sessions keyed by sub-range start date
"""

from typing import Callable, Dict, List, Optional
from unittest.mock import MagicMock

import geopandas as gpd
import pandas as pd
import pytest
import requests
from shapely.geometry import Polygon, box

WGS84 = "EPSG:4326"


# ============================================================================
# Country Fixtures
# ============================================================================

@pytest.fixture
def testland() -> gpd.GeoDataFrame:
    """Two disjoint square countries in WGS84.

    Testland covers lon 0..10, lat 0..10; Otherland covers lon 20..30, lat 0..10.
    """
    return gpd.GeoDataFrame(
        {"country_name": ["Testland", "Otherland"]},
        geometry=[box(0, 0, 10, 10), box(20, 0, 30, 10)],
        crs=WGS84,
    )


@pytest.fixture
def bowtie() -> Polygon:
    """Self-intersecting polygon (invalid until repaired).

    Repair yields two lobes: a left triangle around (2, 5) and a right one around (8, 5).
    """
    return Polygon([(0, 0), (10, 10), (10, 0), (0, 10), (0, 0)])


# ============================================================================
# Event / Payload Fixtures
# ============================================================================

def make_feature(eid: Optional[str], mag, lon, lat, depth=10.0,
                 time_ms: int = 1_000_000_000_000, place: str = "somewhere") -> Dict:
    """Build one GeoJSON feature shaped like the USGS event service output."""
    feat = {
        "type": "Feature",
        "properties": {"mag": mag, "place": place, "time": time_ms},
        "geometry": {"type": "Point", "coordinates": [lon, lat, depth]},
    }
    if eid is not None:
        feat["id"] = eid
    return feat


def make_payload(features: List[Dict]) -> Dict:
    return {"type": "FeatureCollection", "metadata": {"count": len(features)}, "features": features}


def make_response(payload=None, status: int = 200, json_error: bool = False) -> MagicMock:
    """Mock requests.Response with raise_for_status/json behaviour."""
    resp = MagicMock()
    resp.status_code = status
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status} Server Error")
    else:
        resp.raise_for_status.return_value = None
    if json_error:
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def feature() -> Callable[..., Dict]:
    return make_feature


@pytest.fixture
def payload() -> Callable[[List[Dict]], Dict]:
    return make_payload


@pytest.fixture
def session_for() -> Callable[[Dict[str, object]], MagicMock]:
    """Factory for a mock session whose responses are keyed by the 'starttime' param.

    Values may be a payload dict, a prepared mock response, or an exception
    instance (raised from session.get).
    """

    def _factory(by_start: Dict[str, object]) -> MagicMock:
        session = MagicMock(spec=requests.Session)

        def _get(url, params=None, headers=None, timeout=None):
            value = by_start.get(params["starttime"], make_payload([]))
            if isinstance(value, Exception):
                raise value
            if isinstance(value, dict):
                return make_response(value)
            return value

        session.get.side_effect = _get
        return session

    return _factory


@pytest.fixture
def raw_events() -> pd.DataFrame:
    """Fetched-shape events: magnitudes 5.0 (land), 6.0 (ocean), -999.0 (land), 7.0 (land)."""
    return pd.DataFrame({
        "event_id": ["ev1", "ev2", "ev3", "ev4"],
        "time": pd.to_datetime([
            "1995-03-01T00:00:00Z", "2001-06-15T12:00:00Z",
            "2003-01-01T00:00:00Z", "2019-12-31T23:59:59Z",
        ], utc=True),
        "magnitude": [5.0, 6.0, -999.0, 7.0],
        "place": ["a", "b", "c", "d"],
        "longitude": [5.0, -40.0, 2.0, 8.0],
        "latitude": [5.0, -30.0, 3.0, 1.0],
        "depth": [10.0, 35.0, None, 400.0],
    })


@pytest.fixture
def response() -> Callable[..., MagicMock]:
    return make_response
