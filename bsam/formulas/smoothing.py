"""
Initial values for latent locations via local regression.

The sampler is seeded with a LOWESS fit of each coordinate against time,
evaluated on the regular time grid. Smaller spans track the data more
closely; sparse tracks may need spans above 0.2.
"""

import numpy as np
import statsmodels.api as sm


def smooth_coordinate(times, values, grid_times, span):
    """LOWESS fit of ``values`` against ``times`` evaluated at ``grid_times``.

    Grid points the local fit cannot reach are filled by linear
    interpolation between fitted points (flat beyond the ends).
    """
    times = np.asarray(times, dtype=float)
    values = np.asarray(values, dtype=float)
    grid_times = np.asarray(grid_times, dtype=float)

    # Each local fit needs at least two neighbours.
    frac = min(1.0, max(float(span), 2.0 / len(times)))
    fitted = sm.nonparametric.lowess(
        values, times, frac=frac, it=0, delta=0.0, xvals=grid_times,
    )
    fitted = np.asarray(fitted, dtype=float)

    ok = np.isfinite(fitted)
    if ok.all():
        return fitted
    if ok.any():
        return np.interp(grid_times, grid_times[ok], fitted[ok])
    order = np.argsort(times, kind="mergesort")
    return np.interp(grid_times, times[order], values[order])


def smooth_initial_locations(times, lon, lat, grid_times, span):
    """Return an (n_steps, 2) array of smoothed lon/lat initial values."""
    return np.column_stack([
        smooth_coordinate(times, lon, grid_times, span),
        smooth_coordinate(times, lat, grid_times, span),
    ])
