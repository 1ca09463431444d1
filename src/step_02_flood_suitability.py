"""
Step 02 — Flood suitability.

Reproject the flood polygons to the DTM CRS, burn them onto the native DTM grid
(polygon = 1, background = 0), invert (0 → suitable), and resample the mask onto
the coarse reference grid with nearest neighbour.
"""

from __future__ import annotations
import numpy as np
import geopandas as gpd
import xarray as xr

from config import PARAMS, RESAMPLE_DEFAULT_CAT, get_logger
from step_00_load_inputs import StudyContext
from utils_geo import rasterize_gdf, reclass_eq, match_grid

log = get_logger(__name__)


def compute_flood_suitability(
    ctx: StudyContext,
    flood: gpd.GeoDataFrame,
    all_touched: bool = PARAMS.FLOOD_ALL_TOUCHED,
) -> tuple[gpd.GeoDataFrame, xr.DataArray]:
    """Return (flood polygons in the DTM CRS, binary flood mask on the reference grid)."""
    if flood.crs is None:
        log.warning("Flood layer has no CRS; assuming the DTM CRS (%s)", ctx.crs)
        flood = flood.set_crs(ctx.crs)
    else:
        flood = flood.to_crs(ctx.crs)

    flooded = rasterize_gdf(flood, ctx.dtm, burn_value=1, fill=0, all_touched=all_touched)
    mask = reclass_eq(flooded, 0)
    mask = match_grid(mask, ctx.reference, resampling=RESAMPLE_DEFAULT_CAT)

    safe = int(np.nansum(mask.values == 1))
    total = int(np.isfinite(mask.values).sum())
    pct = 100.0 * safe / total if total else np.nan
    log.info(f"Flood | polygons={len(flood)} | safe cells: {safe}/{total} ({pct:.1f}%)")
    return flood, mask
