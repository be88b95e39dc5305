"""
Fitted coordinates against time, with observations.

One figure per individual: longitude and latitude panels showing the
posterior mean, the 95% credible band and the observed locations.
"""

import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from bsam import config
from bsam.fit_types import FitResult
from bsam.logging_config import get_pipeline_logger

log = get_pipeline_logger(__name__)


def _plot_individual(ind, model, data, summary):
    fig, axes = plt.subplots(2, 1, figsize=(10, 6), sharex=True)
    for ax, coord, label in zip(axes, ("lon", "lat"), ("Longitude", "Latitude")):
        ax.fill_between(summary["date"], summary[f"{coord}_025"], summary[f"{coord}_975"],
                        color="dodgerblue", alpha=0.25, linewidth=0, label="95% CI")
        ax.plot(summary["date"], summary[coord], color="dodgerblue", linewidth=1,
                label="estimated")
        ax.scatter(data["date"], data[coord], marker="+", s=20, color="0.5",
                   label="observed", zorder=3)
        ax.set_ylabel(label)
    axes[0].set_title(f"{ind}; {model}")
    axes[0].legend(loc="best", fontsize=8)
    axes[1].set_xlabel("Date")
    fig.autofmt_xdate()
    return fig


def _individuals(fit):
    if isinstance(fit, FitResult):
        if isinstance(fit.id, list):
            return [(ind, fit.model, fit.data[fit.data["id"] == ind],
                     fit.summary[fit.summary["id"] == ind]) for ind in fit.id]
        return [(fit.id, fit.model, fit.data, fit.summary)]
    return [(ind, r.model, r.data, r.summary) for ind, r in fit.results.items()]


def plot_fit(fit, output_dir=None):
    """Plot fitted lon/lat time series for every individual.

    Parameters
    ----------
    fit : FitBundle or FitResult
    output_dir : str, optional
        Write ``fit_<id>.png`` files here and return their paths;
        otherwise return the open figures.
    """
    outputs = []
    for ind, model, data, summary in _individuals(fit):
        fig = _plot_individual(ind, model, data, summary)
        if output_dir is None:
            outputs.append(fig)
            continue
        os.makedirs(output_dir, exist_ok=True)
        name = "".join(c if c.isalnum() or c in "-_" else "_" for c in str(ind))
        path = os.path.join(output_dir, f"fit_{name}.png")
        fig.savefig(path, dpi=config.MAP_DPI, bbox_inches="tight")
        plt.close(fig)
        log.info("Generated: %s", path)
        outputs.append(path)
    return outputs
