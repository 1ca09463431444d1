"""
Step 00 — Load inputs and build the study context.

Reads
-----
- PATHS.DTM     LIDAR composite DTM (1 m), source of CRS and extent
- PATHS.FLOOD   Risk of Flooding from Rivers and Sea polygons

Builds
------
- StudyContext: DTM, coarse reference grid (block-mean by COARSEN_FACTOR),
  CRS, and the WGS84 bounding box used for OSM queries.

Notes
-----
- Both inputs are required; a missing file aborts the run with the path in the message.
- The coarse grid is the common reference for every later step and is never mutated.
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

import geopandas as gpd
import xarray as xr
from shapely.geometry import box

from config import PATHS, PARAMS, get_logger
from utils_geo import open_template, coarsen_mean

log = get_logger(__name__)


@dataclass(frozen=True)
class StudyContext:
    """Read-only spatial reference shared by all steps."""

    dtm: xr.DataArray
    reference: xr.DataArray
    bbox_wgs84: tuple[float, float, float, float]

    @property
    def crs(self):
        return self.dtm.rio.crs

    @property
    def resolution(self) -> float:
        return abs(self.reference.rio.transform().a)


def _require(path: Path, label: str) -> Path:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{label} file missing: {path}")
    return path


def load_inputs(
    dtm_path: Path | str | None = None,
    flood_path: Path | str | None = None,
) -> tuple[xr.DataArray, gpd.GeoDataFrame]:
    """Open the DTM raster and the flood-risk polygons; abort if either is absent."""
    dtm_fp = _require(dtm_path or PATHS.DTM, "DTM")
    flood_fp = _require(flood_path or PATHS.FLOOD, "Flood")

    dtm = open_template(dtm_fp)
    if dtm.rio.crs is None:
        raise ValueError(f"DTM has no CRS: {dtm_fp}")
    flood = gpd.read_file(flood_fp)

    tf = dtm.rio.transform()
    log.info(
        f"Loaded DTM | CRS={dtm.rio.crs} | size={dtm.rio.height}x{dtm.rio.width} | "
        f"cell={abs(tf.a):.2f}x{abs(tf.e):.2f}"
    )
    log.info(f"Loaded flood zones | features={len(flood)} | CRS={flood.crs}")
    return dtm, flood


def study_bbox_wgs84(da: xr.DataArray) -> tuple[float, float, float, float]:
    """Raster extent as (west, south, east, north) in EPSG:4326."""
    extent = gpd.GeoSeries([box(*da.rio.bounds())], crs=da.rio.crs)
    west, south, east, north = extent.to_crs(4326).total_bounds
    return float(west), float(south), float(east), float(north)


def build_context(dtm: xr.DataArray, factor: int = PARAMS.COARSEN_FACTOR) -> StudyContext:
    """Aggregate the DTM to the analysis grid and derive the OSM bounding box."""
    reference = coarsen_mean(dtm, factor)
    bbox = study_bbox_wgs84(dtm)
    ctx = StudyContext(dtm=dtm, reference=reference, bbox_wgs84=bbox)
    log.info(
        f"Reference grid | factor={factor} | size={reference.rio.height}x{reference.rio.width} | "
        f"cell={ctx.resolution:.2f} | bbox_wgs84=({bbox[0]:.5f}, {bbox[1]:.5f}, {bbox[2]:.5f}, {bbox[3]:.5f})"
    )
    return ctx
