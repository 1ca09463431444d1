"""
Geospatial helpers for grid-aligned processing (rasterio/rioxarray/xarray).

Every derived grid is rebuilt on an explicit reference grid (`like=`) so that
CRS, transform and coordinates never drift between steps.
"""

from __future__ import annotations
from typing import Optional
from pathlib import Path
import numpy as np
import rasterio as rio
import rioxarray as rxr
import xarray as xr
import geopandas as gpd
from affine import Affine
from rasterio.features import rasterize
from rasterio.enums import Resampling as _Resampling

from config import RESAMPLE, get_logger
log = get_logger(__name__)


# Mean metres per degree (spherical approx) for geographic grids
_M_PER_DEG = 111_320.0


def open_template(path: str | rio.PathLike) -> xr.DataArray:
    """
    Open a raster into a single-band xarray.DataArray with .rio accessor.
    Masked values become NaN.
    """
    da = rxr.open_rasterio(path, masked=True).squeeze()
    return da


def grid_like(arr: np.ndarray, like: xr.DataArray, name: Optional[str] = None) -> xr.DataArray:
    """Rebuild a DataArray from a numpy array matching `like`'s georeferencing."""
    da = xr.DataArray(arr, coords={"y": like.y, "x": like.x}, dims=("y", "x"), name=name)
    da.rio.write_crs(like.rio.crs, inplace=True)
    da.rio.write_transform(like.rio.transform(), inplace=True)
    return da


def same_grid(a: xr.DataArray, b: xr.DataArray) -> bool:
    return (
        a.shape == b.shape and
        a.rio.crs == b.rio.crs and
        a.rio.transform() == b.rio.transform()
    )


def assert_same_shape(*das: xr.DataArray) -> None:
    """Raise AssertionError if rasters do not share identical shape."""
    shapes = {da.shape for da in das}
    assert len(shapes) == 1, f"Rasters must share identical shape; got {shapes}"


def match_grid(
    da: xr.DataArray,
    ref: xr.DataArray,
    resampling: str | _Resampling = "nearest",
) -> xr.DataArray:
    """
    Put `da` on exactly the same grid as `ref` (CRS, transform, coords, dims).
    Reprojects only when the grid signature differs.
    """
    if not same_grid(da, ref):
        da = da.rio.reproject_match(ref, resampling=RESAMPLE(resampling))
    # Force identical coords so later arithmetic never misaligns
    return grid_like(np.asarray(da.values), ref, name=da.name)


def coarsen_mean(da: xr.DataArray, factor: int) -> xr.DataArray:
    """
    Block-mean aggregate by an integer factor (e.g., 1 m → 10 m for factor=10).

    A coarse cell is NaN if any of its sub-cells is NaN, so the coarse
    footprint never claims data the fine grid does not have. Rows/columns
    that do not fill a whole block are trimmed.
    """
    if factor <= 1:
        return da
    tf = da.rio.transform()
    H = (da.rio.height // factor) * factor
    W = (da.rio.width // factor) * factor
    if H == 0 or W == 0:
        raise ValueError(
            f"Grid {da.rio.height}x{da.rio.width} is smaller than one {factor}x{factor} block."
        )
    fine = da.isel(y=slice(0, H), x=slice(0, W)).astype("float64")
    # np.mean (not nanmean) so a single NaN sub-cell blanks the block
    coarse = fine.coarsen(y=factor, x=factor, boundary="trim").reduce(np.mean)

    coarse_tf = Affine(tf.a * factor, tf.b, tf.c, tf.d, tf.e * factor, tf.f)
    coarse = coarse.astype("float32")
    coarse.rio.write_crs(da.rio.crs, inplace=True)
    coarse.rio.write_transform(coarse_tf, inplace=True)
    return coarse


def _cell_size_m(da: xr.DataArray) -> tuple[np.ndarray | float, float]:
    """
    Cell width/height in metres. For geographic grids the width shrinks
    with cos(latitude), so it is returned per row as a (H, 1) column.
    """
    tf = da.rio.transform()
    xres, yres = abs(tf.a), abs(tf.e)
    crs = da.rio.crs
    if crs is not None and crs.is_geographic:
        lat = np.deg2rad(np.asarray(da.y.values, dtype="float64"))
        return (xres * _M_PER_DEG * np.cos(lat))[:, None], yres * _M_PER_DEG
    return xres, yres


def slope_degrees(dem: xr.DataArray) -> xr.DataArray:
    """
    Slope in degrees using Horn's 3x3 finite differences (8 neighbours).

    Edges are padded by repeating the outer row/column, so a flat surface is
    0° everywhere including the border. NaN heights propagate to every cell
    whose window touches them.
    """
    z = np.pad(np.asarray(dem.values, dtype="float64"), 1, mode="edge")
    a, b, c = z[:-2, :-2], z[:-2, 1:-1], z[:-2, 2:]
    d,    f = z[1:-1, :-2],              z[1:-1, 2:]
    g, h, i = z[2:, :-2],  z[2:, 1:-1],  z[2:, 2:]

    xres, yres = _cell_size_m(dem)
    dzdx = ((c + 2 * f + i) - (a + 2 * d + g)) / (8.0 * xres)
    dzdy = ((g + 2 * h + i) - (a + 2 * b + c)) / (8.0 * yres)
    slope = np.degrees(np.arctan(np.hypot(dzdx, dzdy)))
    # Horn's kernel skips the centre cell; a NoData height has no slope
    slope[np.isnan(z[1:-1, 1:-1])] = np.nan
    return grid_like(slope.astype("float32"), dem, name="slope_deg")


def rasterize_gdf(
    gdf: gpd.GeoDataFrame,
    template_da: xr.DataArray,
    burn_value: float = 1,
    fill: float = 0,
    dtype: str = "uint8",
    all_touched: bool = False,
) -> xr.DataArray:
    """
    Burn a GeoDataFrame onto the template grid (constant `burn_value`,
    background `fill`). Features are reprojected to the template CRS first.
    An empty frame yields a grid filled with `fill`.
    """
    if gdf.crs is None:
        gdf = gdf.set_crs(template_da.rio.crs)
    else:
        gdf = gdf.to_crs(template_da.rio.crs)

    out_shape = (template_da.rio.height, template_da.rio.width)
    geoms = [g for g in gdf.geometry if g is not None and not g.is_empty]
    if not geoms:
        arr = np.full(out_shape, fill, dtype=dtype)
    else:
        arr = rasterize(
            shapes=[(geom, burn_value) for geom in geoms],
            out_shape=out_shape,
            transform=template_da.rio.transform(),
            fill=fill,
            dtype=dtype,
            all_touched=all_touched,
        )
    return grid_like(arr, template_da)


def reclass_lt(da: xr.DataArray, threshold: float) -> xr.DataArray:
    """Binary mask: 1 where da < threshold, 0 otherwise, NaN preserved."""
    v = np.asarray(da.values, dtype="float64")
    with np.errstate(invalid="ignore"):
        out = np.where(np.isnan(v), np.nan, (v < threshold).astype("float64"))
    return grid_like(out.astype("float32"), da)


def reclass_eq(da: xr.DataArray, value: float) -> xr.DataArray:
    """Binary mask: 1 where da == value, 0 otherwise, NaN preserved."""
    v = np.asarray(da.values, dtype="float64")
    out = np.where(np.isnan(v), np.nan, (v == value).astype("float64"))
    return grid_like(out.astype("float32"), da)


def footprint(reference: xr.DataArray) -> np.ndarray:
    """Boolean array of cells where the reference grid holds data."""
    return np.isfinite(np.asarray(reference.values, dtype="float64"))


def mask_to_footprint(da: xr.DataArray, reference: xr.DataArray) -> xr.DataArray:
    """Keep `da` where `reference` is finite; NaN elsewhere."""
    assert_same_shape(da, reference)
    vals = np.asarray(da.values, dtype="float64")
    out = np.where(footprint(reference), vals, np.nan)
    return grid_like(out.astype("float32"), reference, name=da.name)


def distance_to_features(reference: xr.DataArray, gdf: gpd.GeoDataFrame | None) -> xr.DataArray:
    """
    Distance from every valid cell centre of `reference` to the nearest
    geometry in `gdf` (exact point-to-geometry distance via the spatial index).

    - Projected CRS: Euclidean distance in CRS units.
    - Geographic CRS: distances computed in the estimated local UTM zone (metres).
    - Empty/None `gdf`: +inf at every valid cell, so no threshold is ever met.
    Cells outside the reference footprint are NaN.
    """
    valid = footprint(reference)
    out = np.full(reference.shape, np.nan, dtype="float64")

    if gdf is not None:
        gdf = gdf[gdf.geometry.notna() & ~gdf.geometry.is_empty]
    if gdf is None or gdf.empty:
        out[valid] = np.inf
        return grid_like(out, reference, name="distance")
    if not valid.any():
        return grid_like(out, reference, name="distance")

    X, Y = np.meshgrid(reference.x.values, reference.y.values)
    pts = gpd.GeoSeries(gpd.points_from_xy(X[valid], Y[valid]), crs=reference.rio.crs)
    geoms = gdf.geometry
    geoms = geoms.set_crs(reference.rio.crs) if geoms.crs is None else geoms.to_crs(reference.rio.crs)

    if pts.crs is not None and pts.crs.is_geographic:
        utm = pts.estimate_utm_crs()
        pts, geoms = pts.to_crs(utm), geoms.to_crs(utm)

    geoms = geoms.reset_index(drop=True)
    idx, dist = geoms.sindex.nearest(pts, return_all=False, return_distance=True)
    nearest = np.full(len(pts), np.inf, dtype="float64")
    nearest[idx[0]] = dist
    out[valid] = nearest
    return grid_like(out, reference, name="distance")


def estimate_cell_area_km2(template_da: xr.DataArray) -> float:
    """
    Estimate per-pixel area in km^2 using the affine transform.
    Assumes CRS units are meters. If the CRS is geographic, uses the
    mid-latitude cell size.
    """
    xres, yres = _cell_size_m(template_da)
    xres = float(np.mean(xres))
    return (xres * yres) / 1_000_000.0  # m^2 → km^2


def keep_name_only(
    gdf: gpd.GeoDataFrame,
    name_field: str = "name",
    placeholder: str = "Unknown",
) -> gpd.GeoDataFrame:
    """
    Reduce a layer to `name` + geometry. A missing column, or missing values
    in it, are replaced by `placeholder`.
    """
    if name_field in gdf.columns:
        names = gdf[name_field].fillna(placeholder).astype(str).to_numpy()
    else:
        names = np.full(len(gdf), placeholder, dtype=object)
    return gpd.GeoDataFrame(
        {name_field: names},
        geometry=gdf.geometry.to_numpy(),
        crs=gdf.crs,
    )


def write_vector(gdf: gpd.GeoDataFrame, path: Path | str) -> None:
    """
    Write an ESRI Shapefile, removing any previous file set first
    (.shp/.shx/.dbf/.prj/.cpg) so reruns overwrite cleanly.
    """
    path = Path(path)
    for ext in (".shp", ".shx", ".dbf", ".prj", ".cpg"):
        path.with_suffix(ext).unlink(missing_ok=True)
    gdf.to_file(path, driver="ESRI Shapefile")


def write_gtiff(
    da: xr.DataArray,
    path: str | rio.PathLike,
    nodata: float = np.nan,
    compress: str = "LZW",
    dtype: str = "float32",
) -> None:
    """
    Write a georeferenced DataArray as a compressed GeoTIFF with nodata.
    Strips conflicting CF keys (_FillValue) from attrs/encoding to avoid xarray errors.
    """
    da = da.copy()
    da.attrs.pop("_FillValue", None)
    da.encoding.pop("_FillValue", None)

    da = da.astype(dtype)
    da = da.rio.write_nodata(nodata, inplace=True)
    da.rio.to_raster(path, compress=compress, dtype=dtype)
