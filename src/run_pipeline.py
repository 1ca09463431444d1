"""
Run the full housing site-suitability pipeline.

  00 load DTM + flood zones, build the reference grid
  01 slope suitability
  02 flood suitability
  03 amenity access (OSM → distance → threshold)
  04 amenity density, constraints, final score, summary
  05 maps
  06 exports

Usage:
    python src/run_pipeline.py
"""

from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path

import geopandas as gpd
import pandas as pd
import xarray as xr

from config import AOI, get_logger
from osm_features import fetch_features
from sinks import FileSink, OutputSink
from step_00_load_inputs import StudyContext, load_inputs, build_context
from step_01_slope_suitability import compute_slope_suitability
from step_02_flood_suitability import compute_flood_suitability
from step_03_amenity_access import AmenityResult, Fetcher, compute_amenity_access
from step_04_suitability_score import amenity_density, constraint_mask, suitability_score, score_summary
from step_05_maps import render_maps
from step_06_export import export_outputs

log = get_logger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    ctx: StudyContext
    flood: gpd.GeoDataFrame
    slope_mask: xr.DataArray
    flood_mask: xr.DataArray
    amenities: dict[str, AmenityResult]
    density: xr.DataArray
    constraints: xr.DataArray
    score: xr.DataArray
    summary: pd.DataFrame


def compute(
    dtm_path: Path | str | None = None,
    flood_path: Path | str | None = None,
    fetcher: Fetcher = fetch_features,
) -> PipelineResult:
    """Steps 00–04: the numeric pipeline, no files written."""
    dtm, flood = load_inputs(dtm_path, flood_path)
    ctx = build_context(dtm)

    slope_mask = compute_slope_suitability(ctx)
    flood, flood_mask = compute_flood_suitability(ctx, flood)
    amenities = compute_amenity_access(ctx, fetcher=fetcher)

    masks = [r.mask for r in amenities.values()]
    density = amenity_density(masks, ctx.reference)
    constraints = constraint_mask(flood_mask, slope_mask, ctx.reference)
    score = suitability_score(masks, flood_mask, slope_mask, ctx.reference)
    summary = score_summary(score, ctx.reference)

    return PipelineResult(
        ctx=ctx, flood=flood,
        slope_mask=slope_mask, flood_mask=flood_mask,
        amenities=amenities,
        density=density, constraints=constraints, score=score,
        summary=summary,
    )


def run(
    sink: OutputSink,
    dtm_path: Path | str | None = None,
    flood_path: Path | str | None = None,
    fetcher: Fetcher = fetch_features,
    render: bool = True,
) -> PipelineResult:
    """Compute everything, then render maps and export through `sink`."""
    res = compute(dtm_path, flood_path, fetcher)

    if render:
        render_maps(res.ctx, res.amenities, res.slope_mask, res.constraints,
                    res.density, res.score, sink)
    export_outputs(
        res.ctx, sink,
        amenities=res.amenities, flood=res.flood,
        flood_mask=res.flood_mask, slope_mask=res.slope_mask,
        density=res.density, score=res.score, summary=res.summary,
    )
    return res


def main() -> None:
    log.info(f"Site suitability | AOI={AOI}")
    try:
        run(FileSink())
    except FileNotFoundError as e:
        log.error(str(e))
        raise
    log.info("Pipeline complete.")


if __name__ == "__main__":
    main()
