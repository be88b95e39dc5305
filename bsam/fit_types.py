"""
Typed result dataclasses for model fits.

These types standardize what each fitting step returns, enabling
structured logging, partial-failure reporting, and provenance tracking.
"""

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

import pandas as pd


class StepStatus(str, Enum):
    """Fitting step outcome status."""
    SUCCESS = "success"
    ERROR = "error"


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


def _get_git_sha():
    """Return the short git SHA of the current HEAD, or None."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
        ).strip()
    except (subprocess.SubprocessError, FileNotFoundError):
        return None


@dataclass
class StepResult:
    """Result of a single step (one individual's fit, one preparation pass)."""

    step_name: str
    status: str  # "success", "error"
    input_summary: dict = field(default_factory=dict)
    output_summary: dict = field(default_factory=dict)
    timing_seconds: float = 0.0
    warnings: list = field(default_factory=list)
    error: Optional[str] = None  # formatted traceback
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: str = field(default_factory=_now_iso)

    @property
    def ok(self):
        return self.status == "success"

    def to_dict(self):
        return {
            "step_name": self.step_name,
            "status": self.status,
            "input_summary": self.input_summary,
            "output_summary": self.output_summary,
            "timing_seconds": self.timing_seconds,
            "warnings": self.warnings,
            "error": self.error,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "started_at": self.started_at,
        }


@dataclass
class FitFailure:
    """Failure notice for one individual in a single-series fit."""

    id: Any
    error_type: str
    message: str
    traceback: Optional[str] = None

    def to_dict(self):
        return {
            "id": self.id,
            "error_type": self.error_type,
            "message": self.message,
        }


@dataclass
class FitResult:
    """Posterior summary and draws for one individual (or all, hierarchical).

    ``summary`` has one row per regular time step with posterior mean and
    median locations; switching models add the behavioural state ``b``.
    ``data`` holds the input observations used for the fit.
    """

    id: Any
    model: str
    timestep: float
    data: pd.DataFrame
    summary: pd.DataFrame
    N: int
    mcmc: Any = None  # PosteriorDraws

    @property
    def ids(self):
        """Distinct ids in row order (one for single-series fits)."""
        return list(pd.unique(self.summary["id"]))


@dataclass
class FitBundle(Mapping):
    """Everything returned by ``fit_ssm``.

    For single-series models ``results`` maps each original id to its
    FitResult in first-appearance order and ``failures`` lists the
    individuals whose fit did not complete. For hierarchical models
    ``combined`` holds the joint FitResult (with the draws) and
    ``results`` holds per-individual row slices of it without draws.
    """

    model: str
    timestep: float
    results: dict = field(default_factory=dict)
    failures: dict = field(default_factory=dict)
    combined: Optional[FitResult] = None
    elapsed_seconds: float = 0.0
    step_results: list = field(default_factory=list)
    git_sha: Optional[str] = field(default_factory=_get_git_sha)
    started_at: str = field(default_factory=_now_iso)

    def __getitem__(self, key):
        return self.results[key]

    def __iter__(self):
        return iter(self.results)

    def __len__(self):
        return len(self.results)

    @property
    def hierarchical(self):
        return self.combined is not None

    @property
    def all_ok(self):
        return not self.failures

    @property
    def failed_ids(self):
        return list(self.failures)

    def to_dict(self):
        """Serializable provenance (no DataFrames or draws)."""
        return {
            "model": self.model,
            "timestep": self.timestep,
            "hierarchical": self.hierarchical,
            "ids": [str(k) for k in self.results],
            "failures": {str(k): f.to_dict() for k, f in self.failures.items()},
            "elapsed_seconds": self.elapsed_seconds,
            "steps": [s.to_dict() for s in self.step_results],
            "all_ok": self.all_ok,
            "git_sha": self.git_sha,
            "started_at": self.started_at,
        }
