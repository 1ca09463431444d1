"""
Step 05 — Static PNG maps for the report.

Maps (all masked to the study footprint, categorical legends on the right):
  - public_transport     road access (< 500 m) + major road lines
  - schools              school access (< 1 km) + school points
  - supermarkets         supermarket access (< 1 km) + shop points
  - hospitals            hospital access (< 2 km) + hospital markers
  - flood_risk_analysis  flood × slope constraints (flood-prone / safe)
  - slope_analysis       slope suitability (steep / flat)
  - amenity_density      number of amenities within threshold (0..4)
  - suitability_score    final score (unsuitable .. fully sustainable)

Every map carries a coordinate grid, north arrow, scale bar and title.
Figures are handed to the sink; nothing is written here.
"""

from __future__ import annotations
from typing import Sequence

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import geopandas as gpd
import xarray as xr
from matplotlib.colors import ListedColormap, BoundaryNorm
from matplotlib.patches import Patch
from matplotlib.ticker import MaxNLocator, StrMethodFormatter
from matplotlib_scalebar.scalebar import ScaleBar

from config import AOI, PARAMS, get_logger
from sinks import OutputSink
from step_00_load_inputs import StudyContext
from step_03_amenity_access import AmenityResult
from utils_geo import mask_to_footprint

log = get_logger(__name__)

BACKGROUND = "#E5E5E5"   # "too far" cells
CONSTRAINT_COLORS = ("#D95F02", "#1B9E77")
SCORE_COLORS = ("#D95F02", "#FDBF6F", "#FFF7BC", "#A6D96A", "#1A9850")
SCORE_LABELS = ("Unsuitable", "1 Amenity", "2 Amenities", "3 Amenities", "Fully Sustainable (4)")


def _extent(da: xr.DataArray) -> list[float]:
    """imshow extent from the cell edges (left, right, bottom, top)."""
    left, bottom, right, top = da.rio.bounds()
    return [left, right, bottom, top]


def _decorate(ax, crs, title: str) -> None:
    """Grid, north arrow, scale bar and title."""
    ax.xaxis.set_major_locator(MaxNLocator(4))
    ax.yaxis.set_major_locator(MaxNLocator(4))
    ax.xaxis.set_major_formatter(StrMethodFormatter("{x:,.0f}"))
    ax.yaxis.set_major_formatter(StrMethodFormatter("{x:,.0f}"))
    ax.tick_params(labelsize=7)
    ax.grid(True, color="grey", alpha=0.4, linewidth=0.6)

    ax.annotate(
        "N", xy=(0.05, 0.96), xytext=(0.05, 0.86), xycoords="axes fraction",
        ha="center", va="center", fontsize=12, fontweight="bold",
        arrowprops=dict(facecolor="black", width=4, headwidth=11),
    )
    # 1 data unit = 1 m only holds for projected (metric) grids
    if crs is not None and not crs.is_geographic:
        ax.add_artist(ScaleBar(1, units="m", location="lower left", box_alpha=0.6))

    ax.set_title(title, fontsize=11, pad=10)
    ax.set_aspect("equal")


def categorical_map(
    da: xr.DataArray,
    colors: Sequence,
    labels: Sequence[str],
    title: str,
    legend_title: str,
    *,
    overlay: gpd.GeoDataFrame | None = None,
    overlay_kind: str = "points",
    overlay_color: str = "black",
    marker: str = "o",
    marker_size: float = 12.0,
):
    """
    Draw an integer-class grid (0..n-1) with one colour per class, an optional
    vector overlay, and an external legend. Returns the matplotlib Figure.
    """
    n = len(colors)
    cmap = ListedColormap(list(colors))
    norm = BoundaryNorm(np.arange(-0.5, n + 0.5, 1.0), n)

    fig, ax = plt.subplots(figsize=PARAMS.FIG_SIZE)
    ax.set_facecolor("white")
    ax.imshow(np.ma.masked_invalid(np.asarray(da.values, dtype="float64")),
              extent=_extent(da), origin="upper", cmap=cmap, norm=norm,
              interpolation="nearest", zorder=5)

    if overlay is not None and not overlay.empty:
        if overlay_kind == "lines":
            overlay.plot(ax=ax, color=overlay_color, alpha=0.3, linewidth=0.8, zorder=10)
        else:
            overlay.plot(ax=ax, color=overlay_color, marker=marker, markersize=marker_size, zorder=10)

    handles = [Patch(facecolor=c, edgecolor="grey", label=l) for c, l in zip(colors, labels)]
    ax.legend(handles=handles, title=legend_title, loc="center left",
              bbox_to_anchor=(1.02, 0.5), frameon=False, fontsize=8, title_fontsize=9)

    _decorate(ax, da.rio.crs, title)
    fig.tight_layout()
    return fig


def _blues(n: int = 5) -> list:
    cmap = matplotlib.colormaps["Blues"]
    return [cmap(v) for v in np.linspace(0.15, 0.95, n)]


def render_maps(
    ctx: StudyContext,
    amenities: dict[str, AmenityResult],
    slope_mask: xr.DataArray,
    constraints: xr.DataArray,
    density: xr.DataArray,
    score: xr.DataArray,
    sink: OutputSink,
) -> None:
    """Render all report maps and hand them to `sink`."""
    ref = ctx.reference

    for res in amenities.values():
        spec = res.spec
        fig = categorical_map(
            mask_to_footprint(res.mask, ref),
            colors=(BACKGROUND, spec.color),
            labels=spec.labels,
            title=spec.title,
            legend_title=spec.legend_title,
            overlay=res.features.gdf,
            overlay_kind="lines" if spec.geom == "lines" else "points",
            marker=spec.marker,
            marker_size=spec.marker_size,
        )
        sink.write_figure(spec.fig_stem, fig)

    fig = categorical_map(constraints, CONSTRAINT_COLORS, ("Flood-Prone", "Safe"),
                          "Flood Risk Analysis", "Flood")
    sink.write_figure("flood_risk_analysis", fig)

    deg = f"{PARAMS.SLOPE_MAX_DEG:g}°"
    fig = categorical_map(mask_to_footprint(slope_mask, ref), CONSTRAINT_COLORS,
                          (f"> {deg} (Steep)", f"< {deg} (Flat)"),
                          f"Slope Analysis ({deg} Threshold)", "Terrain Suitability")
    sink.write_figure("slope_analysis", fig)

    fig = categorical_map(density, _blues(5), [str(k) for k in range(5)],
                          "Amenity Density", "Amenity Count")
    sink.write_figure("amenity_density", fig)

    fig = categorical_map(score, SCORE_COLORS, SCORE_LABELS,
                          f"Suitability Score for Sustainable Housing Development in {AOI.replace('-', ' ').title()}",
                          "Suitability Score")
    sink.write_figure("suitability_score", fig)

    log.info("Maps rendered: %d", len(amenities) + 4)
