import numpy as np
import pytest

from conftest import fake_fetcher, make_grid
from config import AMENITIES
from step_00_load_inputs import build_context
from step_03_amenity_access import compute_amenity_access


@pytest.fixture
def ctx():
    return build_context(make_grid(np.zeros((60, 60)), res=1.0), factor=10)


@pytest.mark.parametrize("workers", [2, 4, 8])
def test_thread_pool_matches_sequential_loop(ctx, amenity_layers, workers):
    sequential = compute_amenity_access(ctx, fetcher=fake_fetcher(amenity_layers), workers=1)
    pooled = compute_amenity_access(ctx, fetcher=fake_fetcher(amenity_layers), workers=workers)

    assert list(pooled) == list(sequential) == [a.name for a in AMENITIES]
    for name, res in sequential.items():
        np.testing.assert_array_equal(pooled[name].distance.values, res.distance.values)
        np.testing.assert_array_equal(pooled[name].mask.values, res.mask.values)


def test_single_category_runs_without_pool(ctx, amenity_layers):
    out = compute_amenity_access(ctx, amenities=AMENITIES[:1],
                                 fetcher=fake_fetcher(amenity_layers), workers=4)
    assert list(out) == ["roads"]
    assert np.all(out["roads"].mask.values == 1)
