"""
Step 04 — Combine masks into the suitability score.

Formula:
  amenity_density = roads + schools + markets + hospitals            (0..4)
  constraints     = flood × slope                                    (0/1)
  score           = amenity_density × constraints                    (0..4)

Notes:
  - Constraints are a multiplicative veto: flood-prone or steep cells score 0
    whatever their amenity access.
  - Inside the study footprint a NaN in any input mask counts as 0 (not met),
    so the score is always an integer 0..4 there; outside it is NaN.
"""

from __future__ import annotations
from typing import Iterable

import numpy as np
import pandas as pd
import xarray as xr

from config import AOI, get_logger
from utils_geo import assert_same_shape, estimate_cell_area_km2, grid_like, mask_to_footprint

log = get_logger(__name__)

SCORE_CLASSES = (0, 1, 2, 3, 4)


def _as_binary(da: xr.DataArray) -> np.ndarray:
    return np.nan_to_num(np.asarray(da.values, dtype="float64"), nan=0.0)


def amenity_density(masks: Iterable[xr.DataArray], reference: xr.DataArray) -> xr.DataArray:
    """Sum of the amenity masks, masked to the study footprint."""
    masks = list(masks)
    assert_same_shape(reference, *masks)
    total = np.zeros(reference.shape, dtype="float64")
    for m in masks:
        total += _as_binary(m)
    return mask_to_footprint(grid_like(total, reference, name="amenity_density"), reference)


def constraint_mask(flood_mask: xr.DataArray, slope_mask: xr.DataArray, reference: xr.DataArray) -> xr.DataArray:
    """1 where the cell is both flood-safe and flat enough."""
    assert_same_shape(reference, flood_mask, slope_mask)
    both = _as_binary(flood_mask) * _as_binary(slope_mask)
    return mask_to_footprint(grid_like(both, reference, name="constraints"), reference)


def suitability_score(
    amenity_masks: Iterable[xr.DataArray],
    flood_mask: xr.DataArray,
    slope_mask: xr.DataArray,
    reference: xr.DataArray,
) -> xr.DataArray:
    """(sum of amenity masks) × flood × slope, NaN outside the footprint."""
    density = amenity_density(amenity_masks, reference)
    veto = constraint_mask(flood_mask, slope_mask, reference)
    score = np.asarray(density.values, dtype="float64") * np.asarray(veto.values, dtype="float64")
    score = mask_to_footprint(grid_like(score, reference, name="suitability_score"), reference)

    valid = np.isfinite(score.values)
    if valid.any():
        log.info(
            f"Score | cells={int(valid.sum())} | mean={float(np.nanmean(score.values)):.2f} | "
            f"fully sustainable (4)={int(np.sum(score.values[valid] == 4))}"
        )
    return score


def score_summary(score: xr.DataArray, reference: xr.DataArray) -> pd.DataFrame:
    """Cells, share and area per score class (0..4) inside the footprint."""
    vals = np.asarray(score.values)
    valid = np.isfinite(vals)
    total = int(valid.sum())
    cell_km2 = estimate_cell_area_km2(reference)

    rows = []
    for k in SCORE_CLASSES:
        n = int(np.sum(vals[valid] == k))
        rows.append({
            "aoi": AOI,
            "score": k,
            "cells": n,
            "pct_of_valid": round(100.0 * n / total, 2) if total else np.nan,
            "area_km2": round(n * cell_km2, 4),
        })
    return pd.DataFrame(rows)
