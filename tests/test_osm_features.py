import pytest
import geopandas as gpd
import osmnx as ox
from unittest.mock import patch
from shapely.geometry import Point, LineString, Polygon

from conftest import CRS
import osm_features
from osm_features import FeatureSet, InsufficientResponseError, fetch_features

BBOX = (-3.56, 50.70, -3.50, 50.74)


@pytest.fixture
def osm_response():
    """Mixed response as osmnx returns it: tagged nodes, ways and areas in EPSG:4326."""
    return gpd.GeoDataFrame(
        {
            "name": ["Bishop Blackall", None, "Exeter School", "Unnamed Road"],
            "amenity": ["school", "school", "school", None],
        },
        geometry=[
            Point(-3.53, 50.72),
            Point(-3.52, 50.725),
            Polygon([(-3.515, 50.71), (-3.513, 50.71), (-3.513, 50.712), (-3.515, 50.712)]),
            LineString([(-3.55, 50.71), (-3.51, 50.73)]),
        ],
        crs="EPSG:4326",
    )


@patch("osm_features.ox.features.features_from_bbox")
def test_lines_keep_only_line_geometries(mock_fetch, osm_response):
    mock_fetch.return_value = osm_response
    fs = fetch_features(BBOX, "highway", ("primary", "secondary", "tertiary"), "lines",
                        crs=CRS, category="roads")

    assert len(fs) == 1
    assert set(fs.gdf.geom_type) == {"LineString"}
    assert fs.gdf.crs.to_epsg() == 27700
    mock_fetch.assert_called_once_with(BBOX, tags={"highway": ["primary", "secondary", "tertiary"]})


@patch("osm_features.ox.features.features_from_bbox")
def test_areal_merges_points_and_polygon_centroids(mock_fetch, osm_response):
    mock_fetch.return_value = osm_response
    fs = fetch_features(BBOX, "amenity", "school", "areal", crs=CRS, category="schools")

    assert len(fs) == 3
    assert set(fs.gdf.geom_type) == {"Point"}
    assert "Exeter School" in fs.gdf["name"].tolist()
    mock_fetch.assert_called_once_with(BBOX, tags={"amenity": "school"})

    centroid = fs.gdf.loc[fs.gdf["name"] == "Exeter School"].geometry.iloc[0]
    expected = gpd.GeoSeries([osm_response.geometry.iloc[2]], crs="EPSG:4326").to_crs(CRS).centroid.iloc[0]
    assert centroid.distance(expected) < 1e-6


@patch("osm_features.ox.features.features_from_bbox")
def test_no_osm_response_is_an_explicit_empty_set(mock_fetch):
    mock_fetch.side_effect = InsufficientResponseError("No matching features")
    fs = fetch_features(BBOX, "amenity", "hospital", "areal", crs=CRS, category="hospitals")

    assert isinstance(fs, FeatureSet)
    assert fs.is_empty
    assert fs.category == "hospitals"
    assert fs.gdf.crs.to_epsg() == 27700


def test_empty_response_error_is_osmnx_own_class():
    assert InsufficientResponseError.__module__.startswith("osmnx")
    assert issubclass(InsufficientResponseError, Exception)


@patch("osm_features.ox.features.features_from_bbox")
def test_no_matching_geometry_kind_is_empty(mock_fetch, osm_response):
    mock_fetch.return_value = osm_response[osm_response.geom_type == "Point"]
    fs = fetch_features(BBOX, "highway", "primary", "lines", crs=CRS, category="roads")
    assert fs.is_empty


@patch("osm_features.ox.features.features_from_bbox")
def test_network_errors_propagate(mock_fetch):
    mock_fetch.side_effect = ConnectionError("Overpass unreachable")
    with pytest.raises(ConnectionError):
        fetch_features(BBOX, "shop", "supermarket", "areal", crs=CRS)


@patch("osm_features.ox.features.features_from_bbox")
def test_unknown_geometry_hint_raises(mock_fetch, osm_response):
    mock_fetch.return_value = osm_response
    with pytest.raises(ValueError):
        fetch_features(BBOX, "amenity", "school", "polygons", crs=CRS)


@patch("osm_features.ox.features.features_from_bbox")
def test_client_timeout_is_configured(mock_fetch, osm_response):
    mock_fetch.return_value = osm_response
    fetch_features(BBOX, "amenity", "school", "areal", crs=CRS)
    assert ox.settings.requests_timeout == osm_features.PARAMS.OSM_TIMEOUT_S


def test_filter_named_drops_missing_and_blank_names():
    gdf = gpd.GeoDataFrame({"name": ["Tesco", None, "  ", "Sainsbury's"]},
                           geometry=[Point(i, i) for i in range(4)], crs=CRS)
    fs = FeatureSet("markets", gdf).filter_named()
    assert fs.gdf["name"].tolist() == ["Tesco", "Sainsbury's"]


def test_filter_named_without_name_column_is_empty():
    gdf = gpd.GeoDataFrame({"shop": ["supermarket"]}, geometry=[Point(0, 0)], crs=CRS)
    fs = FeatureSet("markets", gdf).filter_named()
    assert fs.is_empty
    assert fs.gdf.crs.to_epsg() == 27700


def test_empty_set_stays_empty_through_filter():
    fs = FeatureSet.empty("schools", CRS)
    assert fs.is_empty and len(fs) == 0
    assert fs.filter_named().is_empty
