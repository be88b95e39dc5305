"""
Location error parameters for the measurement equation.

Argos location errors are modelled as t-distributed with class-specific
scale and degrees of freedom, estimated from double-tagged animals.
Citation: Jonsen, I.D., Mills Flemming, J., Myers, R.A. (2005). Robust
          state-space modeling of animal movement data. Ecology 86:2874-2880.
          (parameters fit to data from Vincent et al. 2002, Marine Mammal
          Science 18:156-166).

Scales are in km and are converted to degrees here; longitude scales are
widened by 1/cos(latitude).
"""

import numpy as np
import pandas as pd

from bsam import config

# Standard deviations (km) and t degrees of freedom per location class.
# Z-class locations share the B-class distribution. "G" is the default for
# GPS-quality fixes given without explicit errors.
ARGOS_ERROR_TABLE = pd.DataFrame(
    {
        "lc":        ["3",       "2",       "1",       "0",       "A",       "B",       "Z",       "G"],
        "sd_lon_km": [0.2898660, 0.3119293, 0.9020423, 2.1290658, 0.5384340, 5.4211795, 5.4211795, 0.1],
        "sd_lat_km": [0.1220553, 0.2605126, 0.4603374, 1.6154372, 0.5847907, 3.2110803, 3.2110803, 0.1],
        "nu_lon":    [3.070609,  1.220822,  2.298819,  0.9136517, 0.786954,  1.079216,  1.079216,
                      config.EXPLICIT_ERROR_NU],
        "nu_lat":    [2.075642,  6.314726,  3.896554,  1.010729,  1.057779,  1.331283,  1.331283,
                      config.EXPLICIT_ERROR_NU],
    }
)

ERROR_TABLE_COLUMNS = ["lc", "sd_lon_km", "sd_lat_km", "nu_lon", "nu_lat"]

# Floor on cos(latitude) so polar fixes keep a finite longitude scale.
_MIN_COS_LAT = 1e-3


def lookup_error_parameters(lc, lat, table=None):
    """Measurement-error coefficients from location classes.

    Parameters
    ----------
    lc : array-like of str
        Location class per observation.
    lat : array-like of float
        Observed latitude (degrees) per observation.
    table : pd.DataFrame, optional
        Replacement for ARGOS_ERROR_TABLE with ERROR_TABLE_COLUMNS.

    Returns
    -------
    pd.DataFrame
        Columns itau2_lon, itau2_lat (1/deg²), nu_lon, nu_lat, one row per
        observation in input order.
    """
    if table is None:
        table = ARGOS_ERROR_TABLE
    missing = [c for c in ERROR_TABLE_COLUMNS if c not in table.columns]
    if missing:
        raise ValueError(f"Error table is missing columns: {missing}")

    params = table.set_index(table["lc"].astype(str))
    lc = pd.Series(np.asarray(lc, dtype=str))
    unknown = sorted(set(lc) - set(params.index))
    if unknown:
        raise ValueError(f"No error parameters for location classes {unknown}")

    rows = params.loc[lc.to_numpy()]
    cos_lat = np.maximum(np.cos(np.radians(np.asarray(lat, dtype=float))), _MIN_COS_LAT)
    sd_lat = rows["sd_lat_km"].to_numpy(dtype=float) / config.KM_PER_DEGREE
    sd_lon = rows["sd_lon_km"].to_numpy(dtype=float) / (config.KM_PER_DEGREE * cos_lat)

    return pd.DataFrame({
        "itau2_lon": 1.0 / sd_lon ** 2,
        "itau2_lat": 1.0 / sd_lat ** 2,
        "nu_lon": rows["nu_lon"].to_numpy(dtype=float),
        "nu_lat": rows["nu_lat"].to_numpy(dtype=float),
    })


def explicit_error_parameters(lonerr, laterr):
    """Measurement-error coefficients from explicit standard deviations (degrees)."""
    lonerr = np.asarray(lonerr, dtype=float)
    laterr = np.asarray(laterr, dtype=float)
    nu = np.full(lonerr.shape, config.EXPLICIT_ERROR_NU)
    return pd.DataFrame({
        "itau2_lon": 1.0 / lonerr ** 2,
        "itau2_lat": 1.0 / laterr ** 2,
        "nu_lon": nu,
        "nu_lat": nu.copy(),
    })
