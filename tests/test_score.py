import numpy as np
import geopandas as gpd
from shapely.geometry import box

from conftest import CRS, X0, Y0, make_grid
from step_00_load_inputs import build_context
from step_02_flood_suitability import compute_flood_suitability
from step_04_suitability_score import amenity_density, constraint_mask, suitability_score, score_summary


def _ones(shape=(2, 2)):
    return make_grid(np.ones(shape))


def test_constraints_veto_amenity_access():
    ref = make_grid(np.zeros((1, 3)))
    amen = [make_grid([[1, 1, 1]])] * 4
    flood = make_grid([[1, 0, 1]])
    slope = make_grid([[1, 1, 0]])
    score = suitability_score(amen, flood, slope, ref).values
    assert score.tolist() == [[4.0, 0.0, 0.0]]


def test_score_is_integer_in_range_and_nan_outside_footprint():
    rng = np.random.default_rng(7)
    ref_vals = np.zeros((6, 6))
    ref_vals[0, :] = np.nan
    ref = make_grid(ref_vals)
    masks = [make_grid(rng.integers(0, 2, size=(6, 6))) for _ in range(4)]
    score = suitability_score(masks, _ones((6, 6)), _ones((6, 6)), ref).values

    assert np.isnan(score[0]).all()
    inside = score[1:]
    assert np.isfinite(inside).all()
    assert set(np.unique(inside)) <= {0.0, 1.0, 2.0, 3.0, 4.0}
    np.testing.assert_array_equal(inside, inside.round())


def test_nan_mask_inside_footprint_counts_as_not_met():
    ref = make_grid(np.zeros((1, 2)))
    amen = [make_grid([[np.nan, 1]]), _ones((1, 2))]
    score = suitability_score(amen, _ones((1, 2)), make_grid([[1, np.nan]]), ref).values
    assert score.tolist() == [[1.0, 0.0]]


def test_empty_amenity_contributes_nothing():
    ref = make_grid(np.zeros((2, 2)))
    nothing = make_grid(np.zeros((2, 2)))
    density = amenity_density([_ones(), nothing, _ones(), nothing], ref).values
    assert np.all(density == 2.0)


def test_constraint_mask_is_product():
    ref = make_grid(np.zeros((1, 4)))
    out = constraint_mask(make_grid([[1, 1, 0, 0]]), make_grid([[1, 0, 1, 0]]), ref).values
    assert out.tolist() == [[1.0, 0.0, 0.0, 0.0]]


def test_flood_covering_study_area_scores_zero_everywhere():
    dtm = make_grid(np.zeros((40, 40)), res=1.0)
    ctx = build_context(dtm, factor=10)
    flood = gpd.GeoDataFrame(geometry=[box(X0 - 10, Y0 - 50, X0 + 50, Y0 + 10)], crs=CRS)

    _, flood_mask = compute_flood_suitability(ctx, flood)
    assert np.all(flood_mask.values == 0)

    amen = [make_grid(np.ones((4, 4)))] * 4
    slope = make_grid(np.ones((4, 4)))
    score = suitability_score(amen, flood_mask, slope, ctx.reference).values
    assert np.all(score == 0)


def test_flood_mask_without_crs_assumes_dtm_crs():
    dtm = make_grid(np.zeros((20, 20)), res=1.0)
    ctx = build_context(dtm, factor=10)
    flood = gpd.GeoDataFrame(geometry=[box(X0, Y0 - 20, X0 + 10, Y0)])

    out, mask = compute_flood_suitability(ctx, flood)
    assert out.crs is not None
    assert mask.values.tolist() == [[0.0, 1.0], [0.0, 1.0]]


def test_score_summary_counts_and_shares():
    ref = make_grid([[0.0, 0.0, 0.0, np.nan]])
    score = make_grid([[4.0, 4.0, 0.0, np.nan]])
    df = score_summary(score, ref).set_index("score")

    assert list(df.index) == [0, 1, 2, 3, 4]
    assert df.loc[4, "cells"] == 2
    assert df.loc[0, "cells"] == 1
    assert df["cells"].sum() == 3
    assert df.loc[4, "pct_of_valid"] == 66.67
    assert df.loc[4, "area_km2"] == 0.0002
