"""
Posterior summaries of latent locations and behavioural states.

All functions are pure: they take stacked draws (chains concatenated)
and return one summary row per time step.
"""

import numpy as np
import pandas as pd

from bsam import config

# Equal-tailed 95% credible interval.
CREDIBLE_INTERVAL = (2.5, 97.5)


def summarise_locations(x_draws):
    """Summarise location draws shaped (draws, steps, 2).

    Returns
    -------
    pd.DataFrame
        lon, lat (posterior means), lon_025, lon_median, lon_975, lat_025,
        lat_median, lat_975.
    """
    x_draws = np.asarray(x_draws, dtype=float)
    if x_draws.ndim != 3 or x_draws.shape[2] != 2:
        raise ValueError(f"Expected location draws shaped (draws, steps, 2), got {x_draws.shape}")

    lo, hi = CREDIBLE_INTERVAL
    mean = x_draws.mean(axis=0)
    q_lo, median, q_hi = np.percentile(x_draws, [lo, 50.0, hi], axis=0)
    return pd.DataFrame({
        "lon": mean[:, 0],
        "lat": mean[:, 1],
        "lon_025": q_lo[:, 0],
        "lon_median": median[:, 0],
        "lon_975": q_hi[:, 0],
        "lat_025": q_lo[:, 1],
        "lat_median": median[:, 1],
        "lat_975": q_hi[:, 1],
    })


def classify_behaviour(b_mean, midpoint=None):
    """Label posterior mean states: 2 above the midpoint, else 1; NaN stays NaN."""
    if midpoint is None:
        midpoint = config.BEHAVIOUR_STATE_MIDPOINT
    b_mean = np.asarray(b_mean, dtype=float)
    labels = np.where(b_mean > midpoint, 2.0, 1.0)
    labels[np.isnan(b_mean)] = np.nan
    return labels


def summarise_states(b_draws):
    """Summarise behavioural state draws shaped (draws, steps).

    Returns
    -------
    pd.DataFrame
        b (posterior mean state in [1, 2]), b_median, b_state (1 or 2).
    """
    b_draws = np.asarray(b_draws, dtype=float)
    if b_draws.ndim != 2:
        raise ValueError(f"Expected state draws shaped (draws, steps), got {b_draws.shape}")
    b_mean = b_draws.mean(axis=0)
    return pd.DataFrame({
        "b": b_mean,
        "b_median": np.median(b_draws, axis=0),
        "b_state": classify_behaviour(b_mean),
    })
