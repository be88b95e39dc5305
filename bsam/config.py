"""
Centralized configuration for bsam state-space model fitting.

All run defaults, error-model constants, sampler settings, and output
paths are defined here with inline citations justifying each choice.
"""

import os

# ─── MODEL VARIANTS ──────────────────────────────────────────────────────
# DCRW: first-difference correlated random walk (Jonsen et al. 2005).
# DCRWS: DCRW with two behavioural states (Jonsen et al. 2005; Breed 2012).
# hDCRW / hDCRWS: hierarchical versions sharing movement parameters
# across individuals (Jonsen 2016, Scientific Reports 6:20625).
MODEL_NAMES = ("DCRW", "DCRWS", "hDCRW", "hDCRWS")

# ─── RUN DEFAULTS ────────────────────────────────────────────────────────
DEFAULT_MODEL = "DCRW"
DEFAULT_TSTEP = 1.0      # Time step as fraction of a day (1 = 24 h)
DEFAULT_ADAPT = 10000    # Adaptation + burn-in samples (split in half)
DEFAULT_SAMPLES = 5000   # Posterior samples after burn-in
DEFAULT_THIN = 5         # Keep every 5th sample
DEFAULT_CHAINS = 2       # Independent MCMC chains
DEFAULT_SPAN = 0.2       # LOWESS bandwidth for initial values
DEFAULT_SEED = 42        # Base seed; chain k uses DEFAULT_SEED + k
DEFAULT_MAX_WORKERS = 1  # Individuals fitted concurrently (single-series)

# ─── LOCATION ERROR MODEL ────────────────────────────────────────────────
# Argos location classes in ascending order of quality. Z-class locations
# are assumed to share the B-class error distribution.
# "G" marks locations whose errors are supplied explicitly (lonerr/laterr)
# or, without explicit errors, GPS-quality fixes.
LOCATION_CLASSES = ("Z", "B", "A", "0", "1", "2", "3", "G")

# Conversion from km to degrees of latitude (mean Earth radius 6371 km).
KM_PER_DEGREE = 111.2

# Degrees of freedom used for explicitly specified errors. The t
# distribution approaches the normal as nu grows.
EXPLICIT_ERROR_NU = 100000.0

# Prior precision (1/deg²) on the first latent location, centred on the
# first observation.
FIRST_LOCATION_PRECISION = 1.0

# ─── EXTERNAL SAMPLER ────────────────────────────────────────────────────
# JAGS 4.x (Plummer 2003, http://mcmc-jags.sourceforge.net). Override the
# executable with the BSAM_JAGS environment variable.
JAGS_EXECUTABLE = os.environ.get("BSAM_JAGS", "jags")
JAGS_RNG_NAME = "base::Mersenne-Twister"
JAGS_MODEL_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "jags")

# Quantities recorded by the sampler for each model family.
MONITOR_DCRW = ("x", "Sigma", "theta", "gamma", "psi")
MONITOR_DCRWS = ("x", "b", "Sigma", "theta", "gamma", "alpha", "psi")

# Behavioural states are coded 1 and 2; posterior means above the
# midpoint are labelled state 2.
BEHAVIOUR_STATE_MIDPOINT = 1.5

# ─── VISUALIZATION PARAMETERS ────────────────────────────────────────────
MAP_DPI = 300
MAP_EXTENT_PAD = 0.1               # Fraction of range added around tracks
MAP_EXTENT_PAD_HIERARCHICAL = 0.2
LAND_SHAPEFILE_PATH = os.environ.get("BSAM_LAND")  # Optional land polygons

# ─── OUTPUT PATHS ─────────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR = "outputs"
OUTPUT_DIRS = {
    "csv": "csv",
    "maps": "maps",
    "plots": "plots",
}


def get_output_dirs(base_dir):
    """Return output subdirectories under ``base_dir``.

    Returns
    -------
    dict
        Keys ``csv``, ``maps``, ``plots`` mapped to absolute-ish paths.
    """
    return {key: os.path.join(base_dir, sub) for key, sub in OUTPUT_DIRS.items()}
