"""
Observation preparation: irregular tracks onto a regular time grid.

For each individual the observations are assigned to the nearest step of
a grid spaced ``tstep`` days apart, starting at the first observation.
Each observation carries its measurement-error coefficients (from the
Argos location-class table or from explicit errors), and LOWESS-smoothed
coordinates on the grid seed the sampler's latent locations.

Grid arithmetic is done in integer nanoseconds so the step count is exact:

    n_steps = floor((t_last - t_first) / tstep) + 1

Nearest-step policy: an observation exactly halfway between two steps
goes to the earlier one; observations after the last step (the remainder
of the span that does not fill a whole step) go to the last step.
"""

from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import pandas as pd

from bsam import config
from bsam.errors import InconsistentErrorSpecError, InsufficientDataError
from bsam.formulas.argos import explicit_error_parameters, lookup_error_parameters
from bsam.formulas.smoothing import smooth_initial_locations
from bsam.logging_config import get_pipeline_logger
from bsam.sampler.base import DataBundle

log = get_pipeline_logger(__name__)

NS_PER_DAY = 86_400 * 10**9

COEFFICIENT_COLUMNS = ["itau2_lon", "itau2_lat", "nu_lon", "nu_lat"]


class ErrorModel(str, Enum):
    """Source of measurement-error coefficients.

    AUTO uses explicit errors on rows that give them and the lookup table
    elsewhere; LOOKUP ignores explicit errors; EXPLICIT requires them on
    every row.
    """
    AUTO = "auto"
    LOOKUP = "lookup"
    EXPLICIT = "explicit"

    @classmethod
    def parse(cls, name):
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).lower())
        except ValueError:
            raise ValueError(
                f"Unknown error model {name!r}; choose auto, lookup or explicit"
            ) from None


@dataclass
class RegularizedTrack:
    """One individual's observations on a regular time grid.

    ``obs`` is the individual's observation table sorted by date, with the
    0-based nearest ``step`` and the COEFFICIENT_COLUMNS added.
    ``initial`` holds smoothed (lon, lat) per step.
    """

    id: int
    tstep: float
    step_times: pd.DatetimeIndex
    observed: np.ndarray
    obs: pd.DataFrame
    initial: np.ndarray

    @property
    def n_steps(self):
        return len(self.step_times)

    @property
    def n_obs(self):
        return len(self.obs)

    @property
    def obs_step(self):
        return self.obs["step"].to_numpy(dtype=np.int64)


@dataclass
class PreparedData:
    """Regularized tracks in first-appearance order, plus skipped individuals."""

    tstep: float
    span: float
    error_model: ErrorModel
    tracks: list = field(default_factory=list)
    failures: dict = field(default_factory=dict)  # id -> InsufficientDataError

    @property
    def ids(self):
        return [t.id for t in self.tracks]


# ── Grid construction ───────────────────────────────────────────────────


def step_nanoseconds(tstep):
    """Length of one time step (``tstep`` days) in integer nanoseconds."""
    tstep = float(tstep)
    if not np.isfinite(tstep) or tstep <= 0:
        raise ValueError(f"tstep must be a positive number of days, got {tstep!r}")
    step_ns = int(round(tstep * NS_PER_DAY))
    if step_ns < 1:
        raise ValueError(f"tstep {tstep!r} days is shorter than one nanosecond")
    return step_ns


def time_offsets(dates, start=None):
    """Nanoseconds elapsed since ``start`` (default: earliest date)."""
    dates = pd.Series(pd.to_datetime(dates, utc=True)).reset_index(drop=True)
    if start is None:
        start = dates.min()
    return (dates - start).to_numpy(dtype="timedelta64[ns]").astype(np.int64)


def regular_grid(start, duration_ns, step_ns):
    """Step times from ``start`` covering ``duration_ns`` at ``step_ns`` spacing."""
    n_steps = int(duration_ns) // int(step_ns) + 1
    offsets = pd.to_timedelta(np.arange(n_steps, dtype=np.int64) * step_ns, unit="ns")
    return pd.DatetimeIndex(start + offsets)


def assign_nearest_step(offsets_ns, step_ns, n_steps):
    """0-based nearest grid step for each offset; ties go to the earlier step."""
    offsets_ns = np.asarray(offsets_ns, dtype=np.int64)
    q, r = np.divmod(offsets_ns, step_ns)
    idx = np.where(2 * r > step_ns, q + 1, q)
    return np.minimum(idx, n_steps - 1).astype(np.int64)


# ── Error coefficients ──────────────────────────────────────────────────


def error_coefficients(obs, error_model, error_table=None):
    """Per-observation itau2/nu coefficients for ``obs`` (one individual)."""
    has_errors = "lonerr" in obs.columns and "laterr" in obs.columns
    given = (
        (obs["lonerr"].notna() & obs["laterr"].notna()).to_numpy()
        if has_errors else np.zeros(len(obs), dtype=bool)
    )

    if error_model is ErrorModel.EXPLICIT:
        if not given.all():
            raise InconsistentErrorSpecError(
                f"Explicit error model needs lonerr/laterr on every observation; "
                f"{int((~given).sum())} of {len(obs)} rows lack them"
            )
        return explicit_error_parameters(obs["lonerr"], obs["laterr"])

    coef = lookup_error_parameters(obs["lc"], obs["lat"], table=error_table)
    if error_model is ErrorModel.AUTO and given.any():
        explicit = explicit_error_parameters(obs.loc[given, "lonerr"], obs.loc[given, "laterr"])
        coef.loc[given, COEFFICIENT_COLUMNS] = explicit[COEFFICIENT_COLUMNS].to_numpy()
    return coef


# ── Per-individual preparation ──────────────────────────────────────────


def prepare_track(obs, tstep, span=config.DEFAULT_SPAN, error_model=ErrorModel.AUTO,
                  error_table=None):
    """Regularize one individual's observations.

    Raises
    ------
    InsufficientDataError
        Fewer than two distinct timestamps, or a span shorter than one step.
    InconsistentErrorSpecError
        EXPLICIT error model with missing errors.
    """
    error_model = ErrorModel.parse(error_model)
    ind = obs["id"].iloc[0]
    obs = obs.sort_values("date", kind="mergesort").reset_index(drop=True)

    if obs["date"].nunique() < 2:
        raise InsufficientDataError(
            f"Individual {ind}: fewer than 2 distinct observation times", individual=ind,
        )

    step_ns = step_nanoseconds(tstep)
    start = obs["date"].iloc[0]
    offsets = time_offsets(obs["date"], start)
    step_times = regular_grid(start, offsets.max(), step_ns)
    n_steps = len(step_times)
    if n_steps < 2:
        raise InsufficientDataError(
            f"Individual {ind}: observations span less than one time step "
            f"({tstep} d)", individual=ind,
        )

    steps = assign_nearest_step(offsets, step_ns, n_steps)
    observed = np.zeros(n_steps, dtype=bool)
    observed[steps] = True

    coef = error_coefficients(obs, error_model, error_table)
    out = obs.copy()
    out["step"] = steps
    for col in COEFFICIENT_COLUMNS:
        out[col] = coef[col].to_numpy(dtype=float)

    grid_days = np.arange(n_steps, dtype=np.int64) * step_ns / NS_PER_DAY
    initial = smooth_initial_locations(
        offsets / NS_PER_DAY, obs["lon"], obs["lat"], grid_days, span,
    )

    return RegularizedTrack(
        id=ind,
        tstep=float(tstep),
        step_times=step_times,
        observed=observed,
        obs=out,
        initial=initial,
    )


def prepare_observations(df, tstep=config.DEFAULT_TSTEP, span=config.DEFAULT_SPAN,
                         error_model=ErrorModel.AUTO, error_table=None,
                         skip_insufficient=False):
    """Regularize every individual in a normalized observation table.

    Individuals are processed in first-appearance order. With
    ``skip_insufficient=True`` individuals raising InsufficientDataError
    are recorded in ``PreparedData.failures`` instead of aborting.
    """
    step_nanoseconds(tstep)
    span = float(span)
    if not 0 < span <= 1:
        raise ValueError(f"span must be in (0, 1], got {span!r}")
    error_model = ErrorModel.parse(error_model)

    prepared = PreparedData(tstep=float(tstep), span=span, error_model=error_model)
    for ind, obs in df.groupby("id", sort=False):
        try:
            track = prepare_track(obs, tstep, span, error_model, error_table)
        except InsufficientDataError as exc:
            if not skip_insufficient:
                raise
            log.warning("Skipping individual %s: %s", ind, exc)
            prepared.failures[ind] = exc
            continue
        log.debug("Individual %s: %d observations on %d steps",
                  ind, track.n_obs, track.n_steps)
        prepared.tracks.append(track)

    log.info("Prepared %d track(s) at tstep=%s d (%d skipped)",
             len(prepared.tracks), tstep, len(prepared.failures))
    return prepared


# ── Sampler data bundles ────────────────────────────────────────────────


def _measurement_arrays(obs, row_offset=0):
    return {
        "y": obs[["lon", "lat"]].to_numpy(dtype=float),
        "s": obs["step"].to_numpy(dtype=np.int64) + row_offset + 1,
        "itau2": obs[["itau2_lon", "itau2_lat"]].to_numpy(dtype=float),
        "nu": obs[["nu_lon", "nu_lat"]].to_numpy(dtype=float),
    }


def _first_location(track):
    return track.obs[["lon", "lat"]].iloc[0].to_numpy(dtype=float)


def _shared_priors():
    return {
        "P0": np.eye(2) * config.FIRST_LOCATION_PRECISION,
        "Omega": np.eye(2),
        "pi": np.pi,
    }


def build_single_bundle(track, model):
    """DataBundle for fitting one RegularizedTrack with a single-series model."""
    data = _measurement_arrays(track.obs)
    data.update(N=track.n_steps, M=track.n_obs, x0=_first_location(track))
    data.update(_shared_priors())
    return DataBundle(
        data=data,
        inits={"x": track.initial},
        monitor=model.monitor,
        step_observed=track.observed.copy(),
    )


def build_hierarchical_bundle(tracks, model):
    """DataBundle stacking all tracks for a joint hierarchical fit.

    Latent locations of individual i occupy rows ``start[i]..end[i]``
    (1-based) of ``x``; ``ind`` gives the individual for every row.
    """
    if not tracks:
        raise InsufficientDataError("No individuals to fit")

    parts, start, end, ind, row_ids = [], [], [], [], []
    row = 0
    for k, track in enumerate(tracks, start=1):
        parts.append(_measurement_arrays(track.obs, row_offset=row))
        start.append(row + 1)
        end.append(row + track.n_steps)
        ind.append(np.full(track.n_steps, k, dtype=np.int64))
        row_ids.append(np.full(track.n_steps, track.id))
        row += track.n_steps

    data = {key: np.concatenate([p[key] for p in parts]) for key in ("y", "s", "itau2", "nu")}
    data.update(
        N=row,
        M=len(data["y"]),
        K=len(tracks),
        start=np.asarray(start, dtype=np.int64),
        end=np.asarray(end, dtype=np.int64),
        ind=np.concatenate(ind),
        x0=np.vstack([_first_location(t) for t in tracks]),
    )
    data.update(_shared_priors())
    return DataBundle(
        data=data,
        inits={"x": np.vstack([t.initial for t in tracks])},
        monitor=model.monitor,
        step_observed=np.concatenate([t.observed for t in tracks]),
        row_individual=np.concatenate(row_ids),
    )
