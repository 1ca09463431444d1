"""
OpenStreetMap feature retrieval (osmnx / Overpass).

`fetch_features` always returns a `FeatureSet`. When Overpass has nothing
for the query the set is explicitly empty; callers branch on `is_empty`
instead of checking for None. Network and query errors propagate.

Geometry hints
--------------
- "lines": keep OSM ways as LineStrings (e.g., highway=primary|secondary|tertiary).
- "areal": merge tagged nodes with polygon centroids. Small schools and shops
  are often mapped as a single node, campuses and hospitals as polygons.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence

import pandas as pd
import geopandas as gpd
import osmnx as ox
# osmnx 2.x defines this only in its private _errors module (no public re-export);
# a rename there surfaces as an ImportError on this line
from osmnx._errors import InsufficientResponseError

from config import PARAMS, get_logger

log = get_logger(__name__)

_LINE_TYPES  = ("LineString", "MultiLineString")
_POINT_TYPES = ("Point",)
_POLY_TYPES  = ("Polygon", "MultiPolygon")


@dataclass(frozen=True)
class FeatureSet:
    """Features of one amenity category in the study CRS (possibly empty)."""

    category: str
    gdf: gpd.GeoDataFrame

    @classmethod
    def empty(cls, category: str, crs) -> "FeatureSet":
        gdf = gpd.GeoDataFrame({"name": pd.Series([], dtype=object)},
                               geometry=gpd.GeoSeries([], crs=crs), crs=crs)
        return cls(category, gdf)

    @property
    def is_empty(self) -> bool:
        return self.gdf.empty

    def __len__(self) -> int:
        return len(self.gdf)

    def filter_named(self, name_field: str = "name") -> "FeatureSet":
        """Keep only features with a non-blank name (unnamed nodes are usually noise)."""
        if self.is_empty:
            return self
        if name_field not in self.gdf.columns:
            return FeatureSet.empty(self.category, self.gdf.crs)
        names = self.gdf[name_field]
        keep = names.notna() & (names.astype(str).str.strip() != "")
        return FeatureSet(self.category, self.gdf[keep])


def configure_client(timeout_s: int = PARAMS.OSM_TIMEOUT_S) -> None:
    """Raise the Overpass timeout; the default gives up too early on a busy server."""
    ox.settings.requests_timeout = timeout_s


def _tags(key: str, value: str | Sequence[str]) -> dict:
    if isinstance(value, str):
        return {key: value}
    return {key: list(value)}


def _select_geometries(raw: gpd.GeoDataFrame, geom: str) -> gpd.GeoDataFrame:
    """Lines → keep line geometries; areal → points + polygon centroids."""
    gtype = raw.geom_type
    if geom == "lines":
        return raw[gtype.isin(_LINE_TYPES)]
    if geom != "areal":
        raise ValueError(f"Unknown geometry hint: {geom!r} (expected 'lines' or 'areal')")

    pts = raw[gtype.isin(_POINT_TYPES)]
    polys = raw[gtype.isin(_POLY_TYPES)].copy()
    if not polys.empty:
        polys["geometry"] = polys.geometry.centroid
    return gpd.GeoDataFrame(pd.concat([pts, polys]), geometry="geometry", crs=raw.crs)


def fetch_features(
    bbox_wgs84: tuple[float, float, float, float],
    key: str,
    value: str | Sequence[str],
    geom: str = "lines",
    *,
    crs,
    category: str | None = None,
) -> FeatureSet:
    """
    Query OSM for `{key: value}` inside (west, south, east, north) and
    return the matching features reprojected to `crs`.

    Centroids are taken after reprojection, so they are computed in the
    (projected) study CRS rather than in degrees.
    """
    category = category or f"{key}={value}"
    configure_client()
    try:
        raw = ox.features.features_from_bbox(tuple(bbox_wgs84), tags=_tags(key, value))
    except InsufficientResponseError:
        log.warning("OSM returned no features for %s (%s=%s)", category, key, value)
        return FeatureSet.empty(category, crs)

    if raw.empty:
        log.warning("OSM returned no features for %s (%s=%s)", category, key, value)
        return FeatureSet.empty(category, crs)

    raw = raw[raw.geometry.notna()].to_crs(crs)
    picked = _select_geometries(raw, geom)
    if picked.empty:
        log.warning("No %s geometries for %s among %d OSM features", geom, category, len(raw))
        return FeatureSet.empty(category, crs)

    log.info("OSM %s | %s=%s | features=%d (%s)", category, key, value, len(picked), geom)
    return FeatureSet(category, picked)
