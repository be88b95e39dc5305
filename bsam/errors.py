"""
Exception types raised while preparing data and fitting models.

Input problems subclass ValueError so they are treated as expected
failures by ``run_step()``; sampler problems subclass RuntimeError.
"""


class BsamError(Exception):
    """Base class for all bsam errors."""


class InvalidModelError(BsamError, ValueError):
    """Model name is not one of DCRW, DCRWS, hDCRW, hDCRWS."""


class InsufficientDataError(BsamError, ValueError):
    """An individual's track cannot form even one time step."""

    def __init__(self, message, individual=None):
        super().__init__(message)
        self.individual = individual


class InconsistentErrorSpecError(BsamError, ValueError):
    """Explicit lon/lat errors are malformed or attached to non-"G" rows."""


class SamplerError(BsamError, RuntimeError):
    """The external sampler failed; ``output`` holds its diagnostic text."""

    def __init__(self, message, output=""):
        super().__init__(message)
        self.output = output

    def __str__(self):
        base = super().__str__()
        if self.output:
            return f"{base}\n{self.output}"
        return base


class SamplerTimeoutError(SamplerError):
    """The sampler exceeded its wall-clock timeout and was terminated."""
