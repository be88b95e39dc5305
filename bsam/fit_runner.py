"""
Caller-facing entry point: fit a state-space model to tracking data.

    from bsam import fit_ssm
    fit = fit_ssm(obs, model="DCRWS", tstep=0.5)
    fit.failures          # individuals whose sampler run failed
    get_summary(fit)      # all fitted locations in one table

Input problems (unknown model, malformed table, inconsistent explicit
errors) raise before any sampler run. With single-series models a failed
individual is reported in ``fit.failures`` next to the others' results;
with hierarchical models any failure raises.
"""

import time
import warnings

from bsam import config
from bsam.aggregate import assemble_hierarchical, assemble_single
from bsam.fitting import fit_hierarchical, fit_single
from bsam.identifiers import (
    check_error_spec,
    normalize_ids,
    standardize_observations,
    validate_observations,
)
from bsam.logging_config import get_pipeline_logger, set_run_id
from bsam.models import ModelKind
from bsam.prepare import ErrorModel, prepare_observations
from bsam.sampler.base import SamplerConfig
from bsam.sampler.jags import JagsSampler

log = get_pipeline_logger(__name__)


def fit_ssm(
    data,
    model=config.DEFAULT_MODEL,
    tstep=config.DEFAULT_TSTEP,
    adapt=config.DEFAULT_ADAPT,
    samples=config.DEFAULT_SAMPLES,
    thin=config.DEFAULT_THIN,
    span=config.DEFAULT_SPAN,
    chains=config.DEFAULT_CHAINS,
    sampler=None,
    max_workers=config.DEFAULT_MAX_WORKERS,
    timeout=None,
    error_model=ErrorModel.AUTO,
    error_table=None,
    suppress_warnings=True,
    seed=config.DEFAULT_SEED,
):
    """Fit a Bayesian state-space movement model.

    Parameters
    ----------
    data : pd.DataFrame
        Observations with columns id, date, lc, lon, lat and optionally
        lonerr, laterr (degrees; only on lc == "G" rows).
    model : str or ModelKind
        One of DCRW, DCRWS, hDCRW, hDCRWS.
    tstep : float
        Time step as a fraction of a day.
    adapt, samples, thin, chains : int
        Sampler run configuration; ``adapt`` is split between
        adaptation and burn-in.
    span : float
        LOWESS bandwidth for initial locations, in (0, 1].
    sampler : Sampler, optional
        MCMC engine. Default: JagsSampler().
    max_workers : int
        Individuals fitted concurrently (single-series models only).
    timeout : float, optional
        Wall-clock limit in seconds for each sampler run.
    error_model : str or ErrorModel
        "auto", "lookup" or "explicit".
    error_table : pd.DataFrame, optional
        Replacement location-class error table.
    suppress_warnings : bool
        Silence Python warnings raised while fitting (this call only).
    seed : int
        Base sampler seed; chain k uses ``seed + k``.

    Returns
    -------
    FitBundle

    Raises
    ------
    InvalidModelError, InsufficientDataError, InconsistentErrorSpecError,
    SamplerError
    """
    kind = ModelKind.parse(model)
    run_config = SamplerConfig(adapt=adapt, samples=samples, thin=thin,
                               chains=chains, timeout=timeout, seed=seed)
    error_model = ErrorModel.parse(error_model)
    if sampler is None:
        sampler = JagsSampler()

    run_id = set_run_id()
    log.info("fit_ssm %s: model=%s tstep=%s %s", run_id, kind, tstep, run_config.to_dict())

    df = standardize_observations(data)
    validate_observations(df, strict=True)
    check_error_spec(df)
    df, original_ids = normalize_ids(df)
    log.info("%d observations from %d individual(s)", len(df), len(original_ids))

    start = time.perf_counter()
    with warnings.catch_warnings():
        if suppress_warnings:
            warnings.simplefilter("ignore")

        prepared = prepare_observations(
            df, tstep=tstep, span=span, error_model=error_model,
            error_table=error_table, skip_insufficient=not kind.hierarchical,
        )

        if kind.hierarchical:
            combined, step = fit_hierarchical(prepared, kind, sampler, run_config)
            elapsed = time.perf_counter() - start
            bundle = assemble_hierarchical(combined, original_ids, kind, tstep,
                                           step_results=[step], elapsed_seconds=elapsed)
        else:
            results, failures, steps = fit_single(prepared, kind, sampler, run_config,
                                                  max_workers=max_workers)
            elapsed = time.perf_counter() - start
            bundle = assemble_single(results, failures, original_ids, kind, tstep,
                                     step_results=steps, elapsed_seconds=elapsed)

    for ind, failure in bundle.failures.items():
        log.warning("Individual %s not fitted (%s): %s",
                    ind, failure.error_type, failure.message)
    log.info("Elapsed time: %.2f min", elapsed / 60.0)
    return bundle
