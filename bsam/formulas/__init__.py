"""
Scientific constants and pure computational functions.

config.py retains run defaults and paths; this package holds the
error model, smoothing and posterior summaries.
"""

from bsam.formulas.argos import (
    ARGOS_ERROR_TABLE,
    ERROR_TABLE_COLUMNS,
    explicit_error_parameters,
    lookup_error_parameters,
)
from bsam.formulas.posterior import (
    CREDIBLE_INTERVAL,
    classify_behaviour,
    summarise_locations,
    summarise_states,
)
from bsam.formulas.smoothing import smooth_coordinate, smooth_initial_locations

__all__ = [
    # argos
    "ARGOS_ERROR_TABLE",
    "ERROR_TABLE_COLUMNS",
    "explicit_error_parameters",
    "lookup_error_parameters",
    # posterior
    "CREDIBLE_INTERVAL",
    "classify_behaviour",
    "summarise_locations",
    "summarise_states",
    # smoothing
    "smooth_coordinate",
    "smooth_initial_locations",
]
