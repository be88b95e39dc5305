"""
Result aggregation: original ids back on, results into a FitBundle.
"""

from dataclasses import replace

import pandas as pd

from bsam.fit_types import FitBundle, FitResult
from bsam.identifiers import restore_ids
from bsam.logging_config import get_pipeline_logger
from bsam.schemas import SummarySchema, validate_schema

log = get_pipeline_logger(__name__)


def relabel_result(result, original_ids):
    """Copy of ``result`` with normalized ids replaced by the originals."""
    summary = result.summary.copy()
    summary["id"] = restore_ids(summary["id"], original_ids)
    data = result.data.copy()
    data["id"] = restore_ids(data["id"], original_ids)
    if isinstance(result.id, list):
        new_id = restore_ids(result.id, original_ids)
    else:
        new_id = restore_ids([result.id], original_ids)[0]
    return replace(result, id=new_id, summary=summary, data=data)


def check_summary(summary, step_name="check_summary"):
    """Log SummarySchema violations in a fitted summary; returns the warnings."""
    warnings_list = validate_schema(summary, SummarySchema, step_name, strict=False)
    for w in warnings_list:
        log.warning(w)
    return warnings_list


def assemble_single(results, failures, original_ids, model, tstep,
                    step_results=None, elapsed_seconds=0.0):
    """FitBundle for a single-series fit, keyed by original id."""
    bundle = FitBundle(model=str(model), timestep=float(tstep),
                       elapsed_seconds=elapsed_seconds,
                       step_results=list(step_results or []))
    for ind, result in results.items():
        relabeled = relabel_result(result, original_ids)
        check_summary(relabeled.summary, f"summary_{relabeled.id}")
        bundle.results[relabeled.id] = relabeled
    for ind, failure in failures.items():
        original = restore_ids([ind], original_ids)[0]
        bundle.failures[original] = replace(failure, id=original)
    return bundle


def assemble_hierarchical(combined, original_ids, model, tstep,
                          step_results=None, elapsed_seconds=0.0):
    """FitBundle for a hierarchical fit.

    ``combined`` keeps the joint draws; ``results`` holds each
    individual's rows of the combined summary and data (without draws).
    """
    relabeled = relabel_result(combined, original_ids)
    check_summary(relabeled.summary, "summary_hierarchical")
    bundle = FitBundle(model=str(model), timestep=float(tstep), combined=relabeled,
                       elapsed_seconds=elapsed_seconds,
                       step_results=list(step_results or []))

    summary_groups = dict(list(relabeled.summary.groupby("id", sort=False)))
    data_groups = dict(list(relabeled.data.groupby("id", sort=False)))
    for ind in relabeled.id:
        rows = summary_groups[ind].reset_index(drop=True)
        bundle.results[ind] = FitResult(
            id=ind,
            model=relabeled.model,
            timestep=relabeled.timestep,
            data=data_groups[ind].reset_index(drop=True),
            summary=rows,
            N=len(rows),
        )
    return bundle


def get_summary(fit):
    """One table of all fitted locations.

    Accepts a FitBundle or a single FitResult. Rows are grouped by
    individual in first-appearance order.
    """
    if isinstance(fit, FitResult):
        return fit.summary.copy()
    if fit.combined is not None:
        return fit.combined.summary.copy()
    if not fit.results:
        return pd.DataFrame()
    return pd.concat([r.summary for r in fit.results.values()], ignore_index=True)
