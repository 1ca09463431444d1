"""
Shared fixtures: synthetic grids on British National Grid, a study-area
DTM/flood pair on disk, and a fake OSM fetcher.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
import xarray as xr
import geopandas as gpd
import rioxarray  # noqa: F401  (registers .rio)
from affine import Affine
from shapely.geometry import box, Point, LineString

from osm_features import FeatureSet
from utils_geo import write_gtiff

CRS = "EPSG:27700"
X0, Y0 = 292000.0, 93000.0   # near Exeter


def make_grid(values, res=10.0, x0=X0, y0=Y0, crs=CRS):
    """DataArray with cell centres at x0 + res*(j+0.5), y0 - res*(i+0.5)."""
    arr = np.asarray(values, dtype="float32")
    h, w = arr.shape
    x = x0 + res * (np.arange(w) + 0.5)
    y = y0 - res * (np.arange(h) + 0.5)
    da = xr.DataArray(arr, coords={"y": y, "x": x}, dims=("y", "x"))
    da.rio.write_crs(crs, inplace=True)
    da.rio.write_transform(Affine(res, 0.0, x0, 0.0, -res, y0), inplace=True)
    return da


def points(*xy, names=None, crs=CRS):
    names = names if names is not None else [f"site {i}" for i in range(len(xy))]
    return gpd.GeoDataFrame({"name": names}, geometry=[Point(x, y) for x, y in xy], crs=crs)


def fake_fetcher(layers: dict):
    """Stand-in for osm_features.fetch_features serving pre-built layers by category."""
    calls = []

    def _fetch(bbox, key, value, geom="lines", *, crs, category=None):
        calls.append((category, key, value, geom, tuple(bbox)))
        gdf = layers.get(category)
        if gdf is None or gdf.empty:
            return FeatureSet.empty(category, crs)
        return FeatureSet(category, gdf.to_crs(crs))

    _fetch.calls = calls
    return _fetch


@pytest.fixture
def study_files(tmp_path):
    """
    100 x 100 m DTM at 1 m (→ 10 x 10 reference grid at 10 m):
      - columns 0..79 flat, columns 80..99 a 0.5 m/m ramp (~26.6°)
    Flood polygon over the first 20 m (x0 .. x0+20).
    """
    z = np.zeros((100, 100), dtype="float32")
    z[:, 80:] = 0.5 * np.arange(20, dtype="float32")[None, :]
    dtm = make_grid(z, res=1.0)
    dtm_fp = tmp_path / "dtm.tif"
    write_gtiff(dtm, dtm_fp)

    flood = gpd.GeoDataFrame({"prob_4band": ["High"]},
                             geometry=[box(X0, Y0 - 100.0, X0 + 20.0, Y0)], crs=CRS)
    flood_fp = tmp_path / "flood.shp"
    flood.to_file(flood_fp)
    return dtm_fp, flood_fp


@pytest.fixture
def amenity_layers():
    """Roads and schools inside the study area, markets far away, a hospital 1.5 km east."""
    return {
        "roads": gpd.GeoDataFrame(
            {"name": [None]},
            geometry=[LineString([(X0, Y0 - 50.0), (X0 + 100.0, Y0 - 50.0)])], crs=CRS),
        "schools": points((X0 + 50.0, Y0 - 50.0), names=["St Sidwell's"]),
        "markets": points((X0 + 5000.0, Y0 - 50.0), names=["Far Foods"]),
        "hospitals": points((X0 + 1500.0, Y0 - 50.0), names=["RD&E"]),
    }
