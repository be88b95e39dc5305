"""
Model variants understood by the fitting pipeline.

Untrusted model names are parsed once at the entry point; everything
downstream works with the closed ``ModelKind`` enumeration.
"""

import os
from enum import Enum

from bsam import config
from bsam.errors import InvalidModelError


class ModelKind(str, Enum):
    """State-space model variant."""
    DCRW = "DCRW"
    DCRWS = "DCRWS"
    hDCRW = "hDCRW"
    hDCRWS = "hDCRWS"

    @classmethod
    def parse(cls, name):
        """Return the ModelKind for ``name`` or raise InvalidModelError."""
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise InvalidModelError(
                f"Model not implemented: {name!r}. "
                f"Choose one of {', '.join(config.MODEL_NAMES)}"
            ) from None

    @property
    def hierarchical(self):
        return self in (ModelKind.hDCRW, ModelKind.hDCRWS)

    @property
    def switching(self):
        return self in (ModelKind.DCRWS, ModelKind.hDCRWS)

    @property
    def model_file(self):
        """Path to the JAGS model description for this variant."""
        return os.path.join(config.JAGS_MODEL_DIR, f"{self.value}.txt")

    @property
    def monitor(self):
        return config.MONITOR_DCRWS if self.switching else config.MONITOR_DCRW

    def __str__(self):
        return self.value
