"""
Step 06 — Export vectors, rasters and the summary table.

Vectors (name attribute only; "Unknown" when missing):
  roads, schools, markets, hospitals, flood_zones

Rasters (masked to the study footprint):
  distance_to_{roads,schools,markets,hospitals}, flood_analysis, slope_analysis,
  amenity_density, final_suitability_score (+ JSON sidecar), dtm_{res}m

Table:
  suitability_summary (cells / share / km² per score class)
"""

from __future__ import annotations
import geopandas as gpd
import pandas as pd
import xarray as xr

from config import (
    PARAMS, FLOOD_ZONES_STEM, FLOOD_MASK_STEM, SLOPE_MASK_STEM,
    AMENITY_DENSITY_STEM, FINAL_SCORE_STEM, SUMMARY_STEM, get_logger,
)
from sinks import OutputSink
from step_00_load_inputs import StudyContext
from step_03_amenity_access import AmenityResult
from utils_geo import keep_name_only, mask_to_footprint

log = get_logger(__name__)


def dtm_stem(ctx: StudyContext) -> str:
    """e.g. 'dtm_10m' for a 10 m reference grid."""
    return f"dtm_{ctx.resolution:g}m"


def export_vector(sink: OutputSink, stem: str, gdf: gpd.GeoDataFrame) -> None:
    """Reduce to the name attribute and write; empty layers are skipped."""
    if gdf is None or gdf.empty:
        log.warning(f"Skipping {stem}: no features to export")
        return
    sink.write_vector(stem, keep_name_only(gdf, PARAMS.NAME_FIELD, PARAMS.NAME_PLACEHOLDER))


def export_outputs(
    ctx: StudyContext,
    sink: OutputSink,
    *,
    amenities: dict[str, AmenityResult],
    flood: gpd.GeoDataFrame,
    flood_mask: xr.DataArray,
    slope_mask: xr.DataArray,
    density: xr.DataArray,
    score: xr.DataArray,
    summary: pd.DataFrame,
) -> None:
    ref = ctx.reference

    # Vectors
    for res in amenities.values():
        export_vector(sink, res.spec.name, res.features.gdf)
    export_vector(sink, FLOOD_ZONES_STEM, flood)

    # Rasters
    for res in amenities.values():
        sink.write_raster(res.spec.distance_stem, mask_to_footprint(res.distance, ref))
    sink.write_raster(FLOOD_MASK_STEM, mask_to_footprint(flood_mask, ref))
    sink.write_raster(SLOPE_MASK_STEM, mask_to_footprint(slope_mask, ref))
    sink.write_raster(AMENITY_DENSITY_STEM, mask_to_footprint(density, ref))
    sink.write_raster(FINAL_SCORE_STEM, mask_to_footprint(score, ref), sidecar=True)
    sink.write_raster(dtm_stem(ctx), ref)

    # Table
    sink.write_table(SUMMARY_STEM, summary)
    log.info("Exports complete.")
