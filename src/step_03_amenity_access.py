"""
Step 03 — Amenity access (table-driven over config.AMENITIES).

For each amenity record:
  fetch (OSM, study bbox) → optional name filter → distance grid on the
  reference grid → 1 where distance < threshold, else 0.

Notes
-----
- OSM queries run one at a time; the four distance grids are independent and
  are computed on a thread pool (PARAMS.DISTANCE_WORKERS, 1 = sequential).
- An empty category yields a +inf distance grid and an all-zero mask inside
  the study footprint; the run continues.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable

import numpy as np
import xarray as xr

from config import AMENITIES, AmenitySpec, PARAMS, get_logger
from osm_features import FeatureSet, fetch_features
from step_00_load_inputs import StudyContext
from utils_geo import distance_to_features, reclass_lt

log = get_logger(__name__)

Fetcher = Callable[..., FeatureSet]


@dataclass(frozen=True)
class AmenityResult:
    spec: AmenitySpec
    features: FeatureSet
    distance: xr.DataArray
    mask: xr.DataArray


def acquire_features(ctx: StudyContext, spec: AmenitySpec, fetcher: Fetcher = fetch_features) -> FeatureSet:
    """Query one category and apply its name filter."""
    fs = fetcher(ctx.bbox_wgs84, spec.key, spec.value, spec.geom, crs=ctx.crs, category=spec.name)
    if spec.require_name and not fs.is_empty:
        before = len(fs)
        fs = fs.filter_named(PARAMS.NAME_FIELD)
        log.info(f"{spec.name}: kept {len(fs)}/{before} named features")
    return fs


def score_amenity(ctx: StudyContext, spec: AmenitySpec, fs: FeatureSet) -> AmenityResult:
    """Distance grid + binary access mask for one category."""
    dist = distance_to_features(ctx.reference, None if fs.is_empty else fs.gdf)
    mask = reclass_lt(dist, spec.threshold)

    within = int(np.nansum(mask.values == 1))
    total = int(np.isfinite(mask.values).sum())
    pct = 100.0 * within / total if total else np.nan
    log.info(
        f"{spec.name}: features={len(fs)} | threshold<{spec.threshold:g} | "
        f"cells within: {within}/{total} ({pct:.1f}%)"
    )
    return AmenityResult(spec=spec, features=fs, distance=dist, mask=mask)


def compute_amenity_access(
    ctx: StudyContext,
    amenities: Iterable[AmenitySpec] = AMENITIES,
    fetcher: Fetcher = fetch_features,
    workers: int = PARAMS.DISTANCE_WORKERS,
) -> dict[str, AmenityResult]:
    """Run fetch → filter → distance → reclassify for every amenity record."""
    specs = list(amenities)
    fetched = [(spec, acquire_features(ctx, spec, fetcher)) for spec in specs]

    if workers <= 1 or len(fetched) <= 1:
        results = [score_amenity(ctx, spec, fs) for spec, fs in fetched]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(fetched))) as executor:
            futures = [executor.submit(score_amenity, ctx, spec, fs) for spec, fs in fetched]
            results = [f.result() for f in futures]

    empty = [r.spec.name for r in results if r.features.is_empty]
    if empty:
        log.warning(f"No features for: {', '.join(empty)} (contribution is 0 everywhere)")
    return {r.spec.name: r for r in results}
