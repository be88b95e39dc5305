"""
Maps of observed and estimated locations.

Observed locations are drawn as grey '+' and estimated locations as
filled points: dodger blue for DCRW/hDCRW, coloured by the posterior
mean behavioural state (blue = 1, white = 1.5, red = 2) for switching
models. Land polygons, when given, are clipped to the map extent.
"""

import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import geopandas as gpd
import numpy as np
import pandas as pd
from matplotlib.colors import TwoSlopeNorm
from shapely.geometry import box

from bsam import config
from bsam.fit_types import FitResult
from bsam.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)

OBSERVED_COLOUR = "0.7"
ESTIMATE_COLOUR = "dodgerblue"
LAND_COLOUR = "0.3"


def extend_range(values, pad):
    """Range of ``values`` widened by ``pad`` of its width on each side."""
    values = np.asarray(values, dtype=float)
    lo, hi = np.nanmin(values), np.nanmax(values)
    width = hi - lo
    if width == 0:
        width = 1.0
    return lo - pad * width, hi + pad * width


def load_land(land=None):
    """Land polygons from a GeoDataFrame, a file path, or BSAM_LAND."""
    if land is None:
        land = config.LAND_SHAPEFILE_PATH
    if land is None:
        return None
    if isinstance(land, gpd.GeoDataFrame):
        return land
    return gpd.read_file(land)


def _draw(ax, data, summary, land, pad, title):
    xlim = extend_range(data["lon"], pad)
    ylim = extend_range(data["lat"], pad)

    if land is not None:
        clipped = gpd.clip(land, box(xlim[0], ylim[0], xlim[1], ylim[1]))
        if not clipped.empty:
            clipped.plot(ax=ax, color=LAND_COLOUR, linewidth=0)

    ax.scatter(data["lon"], data["lat"], marker="+", s=40,
               color=OBSERVED_COLOUR, label="observed", zorder=2)
    if "b" in summary.columns:
        norm = TwoSlopeNorm(vcenter=config.BEHAVIOUR_STATE_MIDPOINT, vmin=1.0, vmax=2.0)
        points = ax.scatter(summary["lon"], summary["lat"], c=summary["b"], s=8,
                            cmap="bwr", norm=norm, zorder=3)
        ax.figure.colorbar(points, ax=ax, label="b")
    else:
        ax.scatter(summary["lon"], summary["lat"], s=8, color=ESTIMATE_COLOUR,
                   label="estimated", zorder=3)

    ax.set_xlim(*xlim)
    ax.set_ylim(*ylim)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title(title)


def _save(fig, output_dir, name):
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, name)
    fig.savefig(path, dpi=config.MAP_DPI, bbox_inches="tight")
    plt.close(fig)
    log.info("Generated: %s", path)
    return path


def _safe_name(value):
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in str(value))


def map_ssm(fit, onemap=True, land=None, output_dir=None):
    """Map a fitted model.

    Parameters
    ----------
    fit : FitBundle or FitResult
    onemap : bool
        All individuals on one map (default) or one map each, titled
        "id; model". Hierarchical fits are always drawn on one map.
    land : gpd.GeoDataFrame or str, optional
        Land polygons or a path readable by geopandas.
    output_dir : str, optional
        Write PNGs here and return their paths; otherwise return the
        open figures.

    Returns
    -------
    list
        Figure paths (``output_dir`` given) or matplotlib Figures.
    """
    land = load_land(land)

    if isinstance(fit, FitResult):
        panels = [(fit.data, fit.summary, config.MAP_EXTENT_PAD, fit.model)]
    elif fit.hierarchical:
        c = fit.combined
        panels = [(c.data, c.summary, config.MAP_EXTENT_PAD_HIERARCHICAL, c.model)]
    elif not fit.results:
        raise ValueError("Fit has no successfully fitted individuals to map")
    elif onemap or len(fit.results) == 1:
        results = list(fit.results.values())
        data = pd.concat([r.data for r in results], ignore_index=True)
        summary = pd.concat([r.summary for r in results], ignore_index=True)
        title = fit.model if len(results) > 1 else f"{results[0].id}; {fit.model}"
        panels = [(data, summary, config.MAP_EXTENT_PAD, title)]
    else:
        panels = [
            (r.data, r.summary, config.MAP_EXTENT_PAD, f"{ind}; {r.model}")
            for ind, r in fit.results.items()
        ]

    outputs = []
    for data, summary, pad, title in panels:
        fig, ax = plt.subplots(figsize=(8, 8))
        _draw(ax, data, summary, land, pad, title)
        if output_dir is None:
            outputs.append(fig)
        else:
            outputs.append(_save(fig, output_dir, f"map_{_safe_name(title)}.png"))
    return outputs
