"""
MCMC engines behind a single ``run(model, bundle, config)`` call.
"""

from bsam.sampler.base import DataBundle, PosteriorDraws, Sampler, SamplerConfig
from bsam.sampler.jags import JagsSampler, format_rdump, read_coda

__all__ = [
    "DataBundle",
    "JagsSampler",
    "PosteriorDraws",
    "Sampler",
    "SamplerConfig",
    "format_rdump",
    "read_coda",
]
