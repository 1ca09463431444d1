"""
Step 01 — Terrain suitability from slope.

slope (degrees, Horn 3x3 on the native DTM) → 1 where slope < SLOPE_MAX_DEG, else 0,
then nearest-neighbour resampled onto the coarse reference grid.
"""

from __future__ import annotations
import numpy as np
import xarray as xr

from config import PARAMS, RESAMPLE_DEFAULT_CAT, get_logger
from step_00_load_inputs import StudyContext
from utils_geo import slope_degrees, reclass_lt, match_grid

log = get_logger(__name__)


def compute_slope_suitability(ctx: StudyContext, max_deg: float = PARAMS.SLOPE_MAX_DEG) -> xr.DataArray:
    """Binary slope mask on the reference grid (NaN where the DTM has no data)."""
    slope = slope_degrees(ctx.dtm)
    mask = reclass_lt(slope, max_deg)
    mask = match_grid(mask, ctx.reference, resampling=RESAMPLE_DEFAULT_CAT)

    smax = float(np.nanmax(slope.values)) if np.isfinite(slope.values).any() else np.nan
    flat = int(np.nansum(mask.values == 1))
    total = int(np.isfinite(mask.values).sum())
    pct = 100.0 * flat / total if total else np.nan
    log.info(
        f"Slope | max={smax:.1f}° | threshold<{max_deg:g}° | "
        f"suitable cells: {flat}/{total} ({pct:.1f}%)"
    )
    return mask
