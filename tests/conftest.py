"""
Root conftest.py: sys.path setup and shared fixtures.

Everything here is built in memory so the tests need no data files,
credentials or network access.
"""

import os
import sys

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import xarray as xr
from shapely.geometry import box

# Add project root to sys.path so 'src' and 'zonal_disasters' are importable
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


class CollectingErrors:
    """Stands in for ErrorsOnExit: keeps messages instead of exiting."""

    def __init__(self):
        self.errors = []

    def add(self, message):
        self.errors.append(message)


@pytest.fixture
def errors():
    return CollectingErrors()


@pytest.fixture
def nested_regions():
    """A state, one of its districts and a neighbouring state."""
    return gpd.GeoDataFrame(
        {
            "region_id": ["Bavaria", "UpperBavaria", "Saxony"],
            "name": ["Bayern", "Oberbayern", "Sachsen"],
        },
        geometry=[
            box(9.0, 47.0, 13.5, 50.5),
            box(10.5, 47.3, 13.0, 48.8),
            box(12.0, 50.6, 15.0, 51.7),
        ],
        crs="EPSG:4326",
    )


@pytest.fixture
def make_events():
    """Factory fixture: event rows from (event_id, lat, lng) tuples."""

    def _make(rows):
        return pd.DataFrame(
            [
                {
                    "event_id": event_id,
                    "year": 2013,
                    "subgroup": "Hydrological",
                    "country": "Germany",
                    "location_text": "",
                    "lat": lat,
                    "lng": lng,
                }
                for event_id, lat, lng in rows
            ]
        )

    return _make


@pytest.fixture
def grid_2x2():
    """Two daily layers on a 2x2 grid of unit cells covering (0,0)-(2,2)."""
    data = np.array(
        [
            [[300.0, 280.0], [290.0, 270.0]],
            [[301.0, 281.0], [291.0, 271.0]],
        ]
    )
    return xr.DataArray(
        data,
        dims=("time", "y", "x"),
        coords={
            "time": pd.date_range("2023-08-01", periods=2),
            "y": [1.5, 0.5],
            "x": [0.5, 1.5],
        },
        name="tas",
    )
