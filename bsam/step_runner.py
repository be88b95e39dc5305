"""
Generic step executor for fitting steps.

Wraps a unit of work (one individual's sampler run, one preparation
pass) with timing, error capture, structured logging and StepResult
construction, so callers can collect successes and failures without a
try/except around every loop body.
"""

import traceback
from typing import Callable, TypeVar

from bsam.errors import InsufficientDataError, SamplerError
from bsam.fit_types import StepResult, StepStatus
from bsam.logging_config import StepTimer, get_pipeline_logger, log_step_summary

T = TypeVar("T")

log = get_pipeline_logger(__name__)

_DEFAULT_EXPECTED = (
    SamplerError,
    InsufficientDataError,
    ValueError,
    KeyError,
)


def run_step(
    step_name: str,
    fn: Callable[..., T],
    *args,
    input_summary: dict | None = None,
    output_summary_fn: Callable[[T], dict] | None = None,
    expected_exceptions: tuple[type[Exception], ...] = _DEFAULT_EXPECTED,
    **kwargs,
) -> tuple[StepResult, T | None]:
    """Execute a step with standardised error handling and timing.

    Parameters
    ----------
    step_name : str
        Human-readable name stored in StepResult for provenance.
    fn : Callable
        The work function.  Called as ``fn(*args, **kwargs)``.
    input_summary : dict, optional
        Metadata about inputs (logged in StepResult).
    output_summary_fn : callable, optional
        Receives *fn*'s return value and produces an output-summary dict.
        Skipped when *fn* raises or returns None.
    expected_exceptions : tuple
        Exception types that produce a "known error" log message.

    Returns
    -------
    tuple[StepResult, T | None]
    """
    result_data = None
    error_tb = None
    error = None

    with StepTimer() as timer:
        try:
            result_data = fn(*args, **kwargs)
        except expected_exceptions as exc:
            error, error_tb = exc, traceback.format_exc()
            log.error("%s failed: %s", step_name, exc)
            log.debug("%s traceback:\n%s", step_name, error_tb)
        except Exception as exc:
            error, error_tb = exc, traceback.format_exc()
            log.error("%s failed unexpectedly", step_name, exc_info=True)

    if error_tb:
        log_step_summary(log, step_name, StepStatus.ERROR.value,
                         timing_seconds=timer.elapsed)
        return StepResult(
            step_name=step_name,
            status=StepStatus.ERROR.value,
            input_summary=input_summary or {},
            error=error_tb,
            error_type=type(error).__name__,
            error_message=str(error),
            timing_seconds=timer.elapsed,
        ), None

    out_summary = {}
    if output_summary_fn is not None and result_data is not None:
        out_summary = output_summary_fn(result_data)

    log_step_summary(
        log, step_name, StepStatus.SUCCESS.value,
        input_summary=input_summary or {},
        output_summary=out_summary,
        timing_seconds=timer.elapsed,
    )
    return StepResult(
        step_name=step_name,
        status=StepStatus.SUCCESS.value,
        input_summary=input_summary or {},
        output_summary=out_summary,
        timing_seconds=timer.elapsed,
    ), result_data
