"""
Pandera DataFrame schemas for input and output validation gates.

Checks both structure AND physical value ranges of observation tables
before any sampler work is done, and sanity-checks fitted summaries.

Usage:
    from bsam.schemas import ObservationSchema
    ObservationSchema.validate(df)  # raises pa.errors.SchemaError on failure
"""

import pandera as pa
from pandera import Check, Column, DataFrameSchema

from bsam import config


# ── Raw observations ────────────────────────────────────────────────────

ObservationSchema = DataFrameSchema(
    columns={
        "id": Column(nullable=False),
        "date": Column(nullable=False),
        "lc": Column(str, Check.isin(list(config.LOCATION_CLASSES)), nullable=False),
        "lon": Column(float, Check.in_range(-180.0, 360.0), nullable=False, coerce=True),
        "lat": Column(float, Check.in_range(-90.0, 90.0), nullable=False, coerce=True),
        "lonerr": Column(float, Check.greater_than(0.0), nullable=True,
                         required=False, coerce=True),
        "laterr": Column(float, Check.greater_than(0.0), nullable=True,
                         required=False, coerce=True),
    },
    # Allow extra columns (tag metadata, dive data, etc.)
    strict=False,
    coerce=False,
    name="ObservationSchema",
)


# ── Fitted summaries ────────────────────────────────────────────────────

SummarySchema = DataFrameSchema(
    columns={
        "id": Column(nullable=False),
        "date": Column(nullable=False),
        "lon": Column(float, nullable=False),
        "lat": Column(float, Check.in_range(-90.0, 90.0), nullable=False),
        "b": Column(float, Check.in_range(1.0, 2.0), nullable=True, required=False),
    },
    strict=False,
    coerce=False,
    name="SummarySchema",
)


# ── Convenience validation function ─────────────────────────────────────

def validate_schema(df, schema, step_name, strict=False):
    """Validate a DataFrame against a Pandera schema.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to validate.
    schema : pa.DataFrameSchema
        Schema to validate against.
    step_name : str
        Step name for error messages.
    strict : bool
        If True, raise on failure. If False, return warnings list.

    Returns
    -------
    list[str]
        Validation warning messages (empty if all pass).

    Raises
    ------
    ValueError
        Only if strict=True and validation fails.
    """
    warnings_list = []

    if df is None:
        msg = f"[{step_name}] DataFrame is None"
        if strict:
            raise ValueError(msg)
        return [msg]

    if len(df) == 0:
        msg = f"[{step_name}] DataFrame is empty (0 rows)"
        if strict:
            raise ValueError(msg)
        return [msg]

    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as exc:
        for failure in exc.failure_cases.itertuples():
            msg = (
                f"[{step_name}] Schema violation: "
                f"column='{failure.column}' check='{failure.check}' "
                f"failure_case={failure.failure_case}"
            )
            warnings_list.append(msg)

        if strict:
            raise ValueError(
                f"[{step_name}] Schema validation failed with "
                f"{len(warnings_list)} errors:\n" + "\n".join(warnings_list)
            ) from exc

    return warnings_list
