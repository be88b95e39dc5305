"""
bsam: Bayesian state-space models for animal tracking data.

Observations are regularized onto a fixed time grid and fitted with a
first-difference correlated random walk (DCRW), optionally with two
behavioural states (DCRWS) and optionally pooled across individuals
(hDCRW, hDCRWS). Sampling is delegated to JAGS.
"""

from bsam.aggregate import get_summary
from bsam.errors import (
    BsamError,
    InconsistentErrorSpecError,
    InsufficientDataError,
    InvalidModelError,
    SamplerError,
    SamplerTimeoutError,
)
from bsam.fit_runner import fit_ssm
from bsam.fit_types import FitBundle, FitFailure, FitResult
from bsam.models import ModelKind
from bsam.prepare import ErrorModel
from bsam.sampler import JagsSampler, Sampler, SamplerConfig

__version__ = "1.2.0"

__all__ = [
    "BsamError",
    "ErrorModel",
    "FitBundle",
    "FitFailure",
    "FitResult",
    "InconsistentErrorSpecError",
    "InsufficientDataError",
    "InvalidModelError",
    "JagsSampler",
    "ModelKind",
    "Sampler",
    "SamplerConfig",
    "SamplerError",
    "SamplerTimeoutError",
    "fit_ssm",
    "get_summary",
]
