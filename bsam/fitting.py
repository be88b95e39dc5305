"""
Fit orchestration: one sampler run per individual, or one joint run.

Single-series models (DCRW, DCRWS) fit each individual independently.
Every individual runs inside ``run_step()`` so a failed sampler run is
recorded as a FitFailure and never blocks the others. Hierarchical
models (hDCRW, hDCRWS) share movement parameters across individuals, so
all tracks go to the sampler in one call and any error aborts the fit.
"""

import numpy as np
import pandas as pd

from bsam.errors import InsufficientDataError, SamplerError
from bsam.fit_types import FitFailure, FitResult, StepResult, StepStatus
from bsam.formulas.posterior import summarise_locations, summarise_states
from bsam.logging_config import StepTimer, get_pipeline_logger, log_step_summary
from bsam.parallel import map_ordered
from bsam.prepare import build_hierarchical_bundle, build_single_bundle
from bsam.step_runner import run_step

log = get_pipeline_logger(__name__)


def _check_draws(draws, model, n_steps):
    needed = ("x", "b") if model.switching else ("x",)
    missing = [name for name in needed if name not in draws]
    if missing:
        raise SamplerError(f"Sampler returned no draws for {missing}")
    x = draws.stacked("x")
    if x.ndim != 3 or x.shape[1:] != (n_steps, 2):
        raise SamplerError(
            f"Location draws shaped {x.shape[1:]}, expected ({n_steps}, 2)"
        )
    if model.switching:
        b = draws.stacked("b")
        if b.shape[1:] != (n_steps,):
            raise SamplerError(f"State draws shaped {b.shape[1:]}, expected ({n_steps},)")


def summarise_draws(draws, model, ids, dates):
    """Per-step posterior summary with ``id`` and ``date`` columns in front."""
    summary = summarise_locations(draws.stacked("x"))
    summary.insert(0, "id", np.asarray(ids, dtype=object))
    summary.insert(1, "date", pd.DatetimeIndex(dates))
    if model.switching:
        states = summarise_states(draws.stacked("b"))
        summary = pd.concat([summary, states], axis=1)
    return summary


def fit_track(track, model, sampler, run_config):
    """Fit one RegularizedTrack with a single-series model."""
    bundle = build_single_bundle(track, model)
    draws = sampler.run(model, bundle, run_config)
    _check_draws(draws, model, track.n_steps)
    summary = summarise_draws(draws, model, [track.id] * track.n_steps, track.step_times)
    return FitResult(
        id=track.id,
        model=model.value,
        timestep=track.tstep,
        data=track.obs,
        summary=summary,
        N=track.n_steps,
        mcmc=draws,
    )


def _failure_from_step(ind, step):
    return FitFailure(
        id=ind,
        error_type=step.error_type or "Exception",
        message=step.error_message or "",
        traceback=step.error,
    )


def fit_single(prepared, model, sampler, run_config, max_workers=1):
    """Fit each prepared track independently.

    Parameters
    ----------
    prepared : PreparedData
    model : ModelKind
        DCRW or DCRWS.
    sampler : Sampler
    run_config : SamplerConfig
    max_workers : int
        Individuals sampled concurrently.

    Returns
    -------
    tuple[dict, dict, list]
        ``(results, failures, step_results)``: id -> FitResult for
        successful individuals, id -> FitFailure for the rest (including
        individuals skipped during preparation), and the StepResults.
    """
    if model.hierarchical:
        raise ValueError(f"{model} is hierarchical; use fit_hierarchical()")

    def _fit_one(track):
        return run_step(
            f"fit_{model.value}_{track.id}",
            fit_track, track, model, sampler, run_config,
            input_summary={"individual": track.id, "n_obs": track.n_obs,
                           "n_steps": track.n_steps},
            output_summary_fn=lambda r: {"N": r.N},
        )

    outcomes = map_ordered(_fit_one, prepared.tracks, max_workers=max_workers,
                           label="individual fit")

    results, failures, step_results = {}, {}, []
    for ind, exc in prepared.failures.items():
        failures[ind] = FitFailure(id=ind, error_type=type(exc).__name__, message=str(exc))
    for track, (step, result) in zip(prepared.tracks, outcomes):
        step_results.append(step)
        if step.ok:
            results[track.id] = result
        else:
            failures[track.id] = _failure_from_step(track.id, step)

    # Normalized ids are first-appearance codes.
    failures = dict(sorted(failures.items()))
    return results, failures, step_results


def fit_hierarchical(prepared, model, sampler, run_config):
    """Fit all prepared tracks jointly with a hierarchical model.

    Returns
    -------
    tuple[FitResult, StepResult]

    Raises
    ------
    InsufficientDataError
        If any individual could not be prepared.
    SamplerError
        If the sampler run fails.
    """
    if not model.hierarchical:
        raise ValueError(f"{model} is not hierarchical; use fit_single()")
    if prepared.failures:
        ind, exc = next(iter(prepared.failures.items()))
        raise InsufficientDataError(
            f"Hierarchical fit needs every individual: {exc}", individual=ind,
        )

    tracks = prepared.tracks
    step_name = f"fit_{model.value}"
    input_summary = {"individuals": len(tracks),
                     "n_obs": sum(t.n_obs for t in tracks),
                     "n_steps": sum(t.n_steps for t in tracks)}

    with StepTimer() as timer:
        try:
            bundle = build_hierarchical_bundle(tracks, model)
            draws = sampler.run(model, bundle, run_config)
            _check_draws(draws, model, bundle.n_rows)
        except Exception as exc:
            log.error("%s failed: %s", step_name, exc)
            raise
    log_step_summary(log, step_name, StepStatus.SUCCESS.value,
                     input_summary=input_summary, output_summary={"N": bundle.n_rows},
                     timing_seconds=timer.elapsed)

    dates = tracks[0].step_times.append([t.step_times for t in tracks[1:]])
    summary = summarise_draws(draws, model, bundle.row_individual, dates)
    result = FitResult(
        id=[t.id for t in tracks],
        model=model.value,
        timestep=prepared.tstep,
        data=pd.concat([t.obs for t in tracks], ignore_index=True),
        summary=summary,
        N=bundle.n_rows,
        mcmc=draws,
    )
    step = StepResult(step_name=step_name, status=StepStatus.SUCCESS.value,
                      input_summary=input_summary, output_summary={"N": result.N},
                      timing_seconds=timer.elapsed)
    return result, step
