"""
Input validation and individual-id normalization.

Raw observation tables are standardized (UTC dates, string location
classes, float coordinates), validated against ObservationSchema, and
checked for a consistent explicit-error specification. Individual ids of
any type are then replaced by dense integer codes 1..k in order of first
appearance so downstream steps can rely on a stable numeric ordering.
"""

import numpy as np
import pandas as pd

from bsam.errors import InconsistentErrorSpecError
from bsam.logging_config import get_pipeline_logger
from bsam.schemas import ObservationSchema, validate_schema

log = get_pipeline_logger(__name__)

REQUIRED_COLUMNS = ["id", "date", "lc", "lon", "lat"]
ERROR_COLUMNS = ["lonerr", "laterr"]


def parse_dates(values):
    """Parse timestamps to UTC.

    Strings are read as ISO 8601 with any sub-second precision per row;
    other layouts fall back to per-element inference.
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        return pd.to_datetime(values, utc=True)
    try:
        return pd.to_datetime(values, utc=True, format="ISO8601")
    except (ValueError, TypeError):
        return pd.to_datetime(values, utc=True, format="mixed")


def standardize_observations(data):
    """Return a copy of ``data`` with parsed dates and canonical dtypes.

    Raises
    ------
    ValueError
        If a required column is missing.
    InconsistentErrorSpecError
        If only one of ``lonerr``/``laterr`` is present.
    """
    df = pd.DataFrame(data).copy()
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Observation table is missing columns: {missing}")

    present = [c for c in ERROR_COLUMNS if c in df.columns]
    if len(present) == 1:
        raise InconsistentErrorSpecError(
            f"Explicit errors need both 'lonerr' and 'laterr'; only '{present[0]}' given"
        )

    df["date"] = parse_dates(df["date"])
    if pd.api.types.is_numeric_dtype(df["lc"]):
        # Numeric Argos classes read from CSV as 0..3
        df["lc"] = df["lc"].astype("Int64").astype(str)
    else:
        df["lc"] = df["lc"].astype(str).str.strip()
    for col in ["lon", "lat"] + present:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype(float)
    return df.reset_index(drop=True)


def validate_observations(df, strict=True):
    """Validate an observation table with ObservationSchema.

    Returns the list of schema warnings (empty when valid). With
    ``strict=True`` any violation raises ValueError.
    """
    warnings_list = validate_schema(df, ObservationSchema, "validate_observations",
                                    strict=strict)
    for w in warnings_list:
        log.warning(w)
    return warnings_list


def check_error_spec(df):
    """Check the explicit lon/lat error specification.

    Explicit errors are allowed only on rows with location class "G".
    An individual that gives explicit errors must have only "G" rows, and
    an individual with "G" rows must give errors on all of them or on
    none of them.

    Returns
    -------
    bool
        True when explicit errors are present anywhere in ``df``.

    Raises
    ------
    InconsistentErrorSpecError
    """
    if not all(c in df.columns for c in ERROR_COLUMNS):
        return False

    lon_given = df["lonerr"].notna()
    lat_given = df["laterr"].notna()
    given = lon_given | lat_given

    half = given & ~(lon_given & lat_given)
    if half.any():
        ids = pd.unique(df.loc[half, "id"]).tolist()
        raise InconsistentErrorSpecError(
            f"Rows give only one of lonerr/laterr for individuals {ids}"
        )

    wrong_class = given & (df["lc"] != "G")
    if wrong_class.any():
        ids = pd.unique(df.loc[wrong_class, "id"]).tolist()
        raise InconsistentErrorSpecError(
            f"Explicit errors require lc == 'G' on every row; "
            f"found other classes for individuals {ids}"
        )

    all_g = (df["lc"] == "G").groupby(df["id"], sort=False, dropna=False).transform("all")
    mixed = given & ~all_g
    if mixed.any():
        ids = pd.unique(df.loc[mixed, "id"]).tolist()
        raise InconsistentErrorSpecError(
            f"Individuals {ids} give explicit errors, so every one of their "
            f"observations must have lc == 'G'"
        )

    g_rows = df["lc"] == "G"
    for ind, flags in given[g_rows].groupby(df.loc[g_rows, "id"], sort=False):
        if flags.any() and not flags.all():
            raise InconsistentErrorSpecError(
                f"Individual {ind!r}: explicit errors given for {int(flags.sum())} "
                f"of {len(flags)} 'G' observations"
            )

    return bool(given.any())


def normalize_ids(df):
    """Replace ``id`` with integer codes 1..k by first appearance.

    Returns
    -------
    tuple[pd.DataFrame, list]
        The recoded table and the original ids, where
        ``original_ids[code - 1]`` is the id behind ``code``.
    """
    codes, uniques = pd.factorize(df["id"], sort=False)
    if (codes < 0).any():
        raise ValueError("Observation table contains missing individual ids")
    out = df.copy()
    out["id"] = (codes + 1).astype(np.int64)
    return out, list(uniques)


def restore_ids(values, original_ids):
    """Map integer codes back to the original ids.

    Works on a Series (returned with the same index) or any iterable.
    """
    lookup = {i + 1: orig for i, orig in enumerate(original_ids)}
    if isinstance(values, pd.Series):
        return values.map(lookup).astype(object)
    return [lookup[int(v)] for v in values]
