"""
Housing Site Suitability — Central Configuration
================================================

Scope
-----
This module centralizes:
- Logging (timestamped INFO logger)
- Project & AOI awareness (paths, filenames, helpers)
- Resampling policy (string → rasterio.enums.Resampling)
- Suitability knobs (slope threshold, coarsening factor, OSM timeout, workers)
- The amenity table (one record per OSM category, thresholds & map styling)
- Canonical output name helpers (rasters/vectors/figs/tables)

Usage (from any step):
    from config import AOI, PATHS, PARAMS, AMENITIES
    from config import out_r, out_v, out_f, out_t, get_logger, RESAMPLE

Design notes
------------
- Keep AOI in filenames for reproducibility.
- All outputs go under <ROOT>/outputs/{rasters|vectors|figs|tables}.
- PARAMS and AMENITIES are frozen dataclasses (immutable) to avoid accidental
  mutation across steps.
"""

from __future__ import annotations

# stdlib
from dataclasses import dataclass
from pathlib import Path
import os
import sys
import logging
from datetime import datetime, timezone
import json

# third-party
from rasterio.enums import Resampling


# ======================================================================
# 1) Logging
# ======================================================================

def get_logger(name: str = "suitability") -> logging.Logger:
    """
    Return a timestamped, INFO-level logger that writes to stdout.

    Example:
        from config import get_logger
        log = get_logger(__name__)
        log.info("message")
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        h = logging.StreamHandler(stream=sys.stdout)
        h.setFormatter(logging.Formatter(
            fmt="%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S",
        ))
        logger.addHandler(h)
        logger.propagate = False
    return logger


# ======================================================================
# 2) Project root & AOI tag
# ======================================================================

def _detect_project_root() -> Path:
    """
    Detect project root assuming this file lives in `<root>/src/config.py`.
    If env var PROJECT_ROOT is set, it wins.
    """
    env = os.environ.get("PROJECT_ROOT")
    if env:
        return Path(env).expanduser().resolve()
    return Path(__file__).resolve().parents[1]  # <root>/src/config.py → <root>

# Study area tag used as filename prefix (e.g., "exeter")
AOI: str = os.environ.get("AOI", "exeter").lower().replace(" ", "-")


# ======================================================================
# 3) Paths (inputs/outputs)
# ======================================================================

@dataclass(frozen=True)
class Paths:
    """Container for commonly used directories and input files."""

    # Folders
    ROOT: Path
    DATA: Path
    VEC: Path
    RAS: Path
    OUT: Path
    OUT_R: Path
    OUT_V: Path
    OUT_F: Path
    OUT_T: Path

    # Inputs
    DTM: Path      # LIDAR composite DTM (1 m)
    FLOOD: Path    # Risk of Flooding from Rivers and Sea polygons


def _build_paths() -> Paths:
    root = _detect_project_root()
    data = root / "data"
    ras  = data / "rasters"
    vec  = data / "vectors"
    out  = root / "outputs"

    return Paths(
        ROOT=root,
        DATA=data, VEC=vec, RAS=ras,
        OUT=out,
        OUT_R=out / "rasters",
        OUT_V=out / "vectors",
        OUT_F=out / "figs",
        OUT_T=out / "tables",

        DTM   = ras / "Exeter_DTM_1m.tif",
        FLOOD = vec / "rofrs_4band_Exeter.shp",
    )

PATHS = _build_paths()


def ensure_output_dirs(paths: Paths | None = None) -> None:
    """Create outputs/{rasters,vectors,figs,tables} if missing."""
    paths = paths or PATHS
    for p in (paths.OUT, paths.OUT_R, paths.OUT_V, paths.OUT_F, paths.OUT_T):
        p.mkdir(parents=True, exist_ok=True)


# ======================================================================
# 4) Resampling helper (centralized policy)
# ======================================================================

# Every grid moved between resolutions here is a 0/1 mask
_RESAMPLING_MAP = {
    "nearest": Resampling.nearest,
}

def RESAMPLE(method: str | Resampling) -> Resampling:
    """
    Normalize a resampling name to rasterio.enums.Resampling.
    Accepts either a string like "nearest" or an enum already.
    """
    if isinstance(method, Resampling):
        return method
    key = str(method).lower().strip()
    try:
        return _RESAMPLING_MAP[key]
    except KeyError:
        raise ValueError(f"Unknown resampling method: {method!r}")

RESAMPLE_DEFAULT_CAT = Resampling.nearest    # masks are categorical


# ======================================================================
# 5) Parameters / knobs (frozen dataclass)
# ======================================================================

@dataclass(frozen=True)
class Params:
    """All knobs in one place for repeatability."""

    # Terrain: slopes strictly below this (degrees) are suitable
    SLOPE_MAX_DEG: float
    # Block-mean aggregation factor for the distance grid (1 m → 10 m)
    COARSEN_FACTOR: int
    # Overpass timeout (seconds); the public server is often busy
    OSM_TIMEOUT_S: int
    # Threads used for the four distance grids (1 = sequential)
    DISTANCE_WORKERS: int
    # Flood rasterization: burn every touched cell (False = cell-centre rule)
    FLOOD_ALL_TOUCHED: bool
    # Attribute kept on vector exports, and the value used when it is missing
    NAME_FIELD: str
    NAME_PLACEHOLDER: str

    # --- Figures ---
    FIG_SIZE: tuple[float, float] = (10.0, 8.0)
    FIG_DPI: int = 200


PARAMS = Params(
    SLOPE_MAX_DEG=10.0,
    COARSEN_FACTOR=10,
    OSM_TIMEOUT_S=120,
    DISTANCE_WORKERS=4,
    FLOOD_ALL_TOUCHED=False,
    NAME_FIELD="name",
    NAME_PLACEHOLDER="Unknown",
)


# ======================================================================
# 6) Amenity table (one record per OSM category)
# ======================================================================

@dataclass(frozen=True)
class AmenitySpec:
    """
    One amenity category: how to query it, how far is "close enough",
    and how to draw it.

    geom:
      - "lines" → keep OSM ways as lines (roads)
      - "areal" → merge tagged nodes with polygon centroids (schools, shops)
    threshold:
      distance in CRS units (metres on British National Grid); a cell is
      suitable when distance < threshold.
    """

    name: str
    key: str
    value: str | tuple[str, ...]
    geom: str
    threshold: float
    require_name: bool

    # map styling
    fig_stem: str
    title: str
    legend_title: str
    color: str
    labels: tuple[str, str]       # (too far, within threshold)
    marker: str = "o"
    marker_size: float = 12.0

    @property
    def distance_stem(self) -> str:
        return f"distance_to_{self.name}"


AMENITIES: tuple[AmenitySpec, ...] = (
    AmenitySpec(
        name="roads", key="highway", value=("primary", "secondary", "tertiary"),
        geom="lines", threshold=500.0, require_name=False,
        fig_stem="public_transport", title="Public Transport System",
        legend_title="Road Access", color="orange", labels=("> 500m", "< 500m"),
    ),
    AmenitySpec(
        name="schools", key="amenity", value="school",
        geom="areal", threshold=1000.0, require_name=True,
        fig_stem="schools", title="Schools",
        legend_title="School Access", color="blue", labels=("> 1km", "< 1km"),
    ),
    AmenitySpec(
        name="markets", key="shop", value="supermarket",
        geom="areal", threshold=1000.0, require_name=True,
        fig_stem="supermarkets", title="Supermarkets",
        legend_title="Market Access", color="purple", labels=("> 1km", "< 1km"),
    ),
    AmenitySpec(
        name="hospitals", key="amenity", value="hospital",
        geom="areal", threshold=2000.0, require_name=True,
        fig_stem="hospitals", title="Hospitals",
        legend_title="Hospital Access", color="red", labels=("> 2km", "< 2km"),
        marker="+", marker_size=40.0,
    ),
)


# ======================================================================
# 7) Output helpers & canonical names
# ======================================================================

def write_geo_sidecar(geotiff_path: Path, *, like, aoi: str | None = AOI) -> None:
    """
    Save a light JSON next to a GeoTIFF with CRS/transform/shape taken from
    `like` (the xarray.DataArray that was written).
    """
    meta = {
        "aoi": aoi,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "crs": str(like.rio.crs),
        "transform": tuple(like.rio.transform()),
        "shape": tuple(like.shape),
    }
    side = Path(geotiff_path).with_suffix(Path(geotiff_path).suffix + ".geo.json")
    side.write_text(json.dumps(meta, indent=2))

def out_r(stem: str, ext: str = ".tif") -> Path:
    """Raster output path → outputs/rasters/{AOI}_{stem}.tif"""
    return PATHS.OUT_R / f"{AOI}_{stem}{ext}"

def out_v(stem: str, ext: str = ".shp") -> Path:
    """Vector output path → outputs/vectors/{AOI}_{stem}.shp"""
    return PATHS.OUT_V / f"{AOI}_{stem}{ext}"

def out_f(stem: str, ext: str = ".png") -> Path:
    """Figure output path → outputs/figs/{AOI}_{stem}.png"""
    return PATHS.OUT_F / f"{AOI}_{stem}{ext}"

def out_t(stem: str, ext: str = ".csv") -> Path:
    """Table output path → outputs/tables/{AOI}_{stem}.csv"""
    return PATHS.OUT_T / f"{AOI}_{stem}{ext}"

# Canonical stems (kept stable across reruns)
FLOOD_ZONES_STEM    = "flood_zones"
FLOOD_MASK_STEM     = "flood_analysis"
SLOPE_MASK_STEM     = "slope_analysis"
AMENITY_DENSITY_STEM = "amenity_density"
FINAL_SCORE_STEM    = "final_suitability_score"
SUMMARY_STEM        = "suitability_summary"

# Write a JSON sidecar next to the final score raster
WRITE_JSON_SIDECARS = True
