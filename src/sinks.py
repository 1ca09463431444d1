"""
Output sinks — the only place that touches the filesystem.

Steps hand finished grids, layers, figures and tables to a sink:
  - FileSink   → outputs/{rasters|vectors|figs|tables}/{AOI}_{stem}.*
  - MemorySink → plain dicts (headless runs and tests)
"""

from __future__ import annotations
from abc import ABC, abstractmethod

import matplotlib.pyplot as plt
import pandas as pd
import geopandas as gpd
import numpy as np
import xarray as xr

from config import (
    PARAMS, WRITE_JSON_SIDECARS,
    ensure_output_dirs, write_geo_sidecar,
    out_r, out_v, out_f, out_t, get_logger,
)
from utils_geo import write_gtiff, write_vector

log = get_logger(__name__)


class OutputSink(ABC):
    """Interface: every write overwrites the previous output of the same stem."""

    @abstractmethod
    def write_raster(self, stem: str, da: xr.DataArray, *, sidecar: bool = False) -> None:
        raise NotImplementedError

    @abstractmethod
    def write_vector(self, stem: str, gdf: gpd.GeoDataFrame) -> None:
        raise NotImplementedError

    @abstractmethod
    def write_figure(self, stem: str, fig) -> None:
        raise NotImplementedError

    @abstractmethod
    def write_table(self, stem: str, df: pd.DataFrame) -> None:
        raise NotImplementedError


class FileSink(OutputSink):
    """Write GeoTIFF / Shapefile / PNG / CSV under the project outputs folder."""

    def __init__(self) -> None:
        ensure_output_dirs()

    def write_raster(self, stem: str, da: xr.DataArray, *, sidecar: bool = False) -> None:
        path = out_r(stem)
        write_gtiff(da, path, nodata=np.nan)
        if sidecar and WRITE_JSON_SIDECARS:
            write_geo_sidecar(path, like=da)
        log.info(f"Wrote {path.name}")

    def write_vector(self, stem: str, gdf: gpd.GeoDataFrame) -> None:
        path = out_v(stem)
        write_vector(gdf, path)
        log.info(f"Success: Exported {path.name} | features={len(gdf)}")

    def write_figure(self, stem: str, fig) -> None:
        path = out_f(stem)
        fig.savefig(path, dpi=PARAMS.FIG_DPI, bbox_inches="tight")
        plt.close(fig)
        log.info(f"Saved map → {path}")

    def write_table(self, stem: str, df: pd.DataFrame) -> None:
        path = out_t(stem)
        df.to_csv(path, index=False)
        log.info(f"Saved table → {path}")


class MemorySink(OutputSink):
    """Keep outputs in memory, keyed by stem."""

    def __init__(self) -> None:
        self.rasters: dict[str, xr.DataArray] = {}
        self.vectors: dict[str, gpd.GeoDataFrame] = {}
        self.figures: dict[str, object] = {}
        self.tables: dict[str, pd.DataFrame] = {}

    def write_raster(self, stem: str, da: xr.DataArray, *, sidecar: bool = False) -> None:
        self.rasters[stem] = da

    def write_vector(self, stem: str, gdf: gpd.GeoDataFrame) -> None:
        self.vectors[stem] = gdf

    def write_figure(self, stem: str, fig) -> None:
        self.figures[stem] = fig
        plt.close(fig)

    def write_table(self, stem: str, df: pd.DataFrame) -> None:
        self.tables[stem] = df

