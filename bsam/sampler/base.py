"""
Narrow interface between the fitting orchestrators and an MCMC engine.

An engine receives a model variant, a DataBundle and a SamplerConfig and
returns PosteriorDraws. Anything that honours ``Sampler.run`` can stand
in for JAGS (test doubles included).
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from bsam import config


@dataclass(frozen=True)
class SamplerConfig:
    """Run configuration for one sampler invocation.

    ``adapt`` is split evenly between adaptation and burn-in updates.
    ``samples`` post-burn-in iterations are run and every ``thin``-th is
    kept, per chain.
    """

    adapt: int = config.DEFAULT_ADAPT
    samples: int = config.DEFAULT_SAMPLES
    thin: int = config.DEFAULT_THIN
    chains: int = config.DEFAULT_CHAINS
    timeout: Optional[float] = None  # seconds per invocation
    seed: int = config.DEFAULT_SEED

    def __post_init__(self):
        for name, minimum in (("adapt", 1), ("samples", 1), ("thin", 1), ("chains", 1)):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < minimum:
                raise ValueError(f"{name} must be >= {minimum}, got {value}")
        if self.timeout is not None and not self.timeout > 0:
            raise ValueError(f"timeout must be positive, got {self.timeout!r}")

    @property
    def n_adapt(self):
        return max(1, self.adapt // 2)

    @property
    def n_burnin(self):
        return max(1, self.adapt - self.n_adapt)

    @property
    def n_kept(self):
        """Draws kept per chain after thinning."""
        return self.samples // self.thin

    def to_dict(self):
        return {
            "adapt": self.adapt,
            "samples": self.samples,
            "thin": self.thin,
            "chains": self.chains,
            "timeout": self.timeout,
            "seed": self.seed,
        }


@dataclass
class DataBundle:
    """Numeric inputs for one sampler invocation.

    ``data`` and ``inits`` are the named arrays the model description
    consumes. ``step_observed`` (observed vs gap per time step) and
    ``row_individual`` (1-based individual per stacked row) describe the
    grid for callers and are not sent to the engine.
    """

    data: dict
    inits: dict
    monitor: tuple
    step_observed: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=bool))
    row_individual: Optional[np.ndarray] = None

    @property
    def n_rows(self):
        return int(self.data["N"])


class PosteriorDraws(Mapping):
    """Posterior draws keyed by quantity name.

    Each array is shaped ``(chains, draws, *dims)``; e.g. locations are
    ``(chains, draws, N, 2)``.
    """

    def __init__(self, draws):
        self._draws = {}
        shape = None
        for name, values in draws.items():
            arr = np.asarray(values, dtype=float)
            if arr.ndim < 2:
                raise ValueError(f"Draws for '{name}' need (chains, draws, ...) axes")
            if shape is None:
                shape = arr.shape[:2]
            elif arr.shape[:2] != shape:
                raise ValueError(
                    f"Draws for '{name}' have {arr.shape[:2]} chains/draws, expected {shape}"
                )
            self._draws[name] = arr
        self._shape = shape or (0, 0)

    def __getitem__(self, name):
        return self._draws[name]

    def __iter__(self):
        return iter(self._draws)

    def __len__(self):
        return len(self._draws)

    @property
    def n_chains(self):
        return self._shape[0]

    @property
    def n_draws(self):
        return self._shape[1]

    def stacked(self, name):
        """Draws for ``name`` with chains concatenated: (chains * draws, *dims)."""
        arr = self._draws[name]
        return arr.reshape((-1,) + arr.shape[2:])

    def __repr__(self):
        shapes = ", ".join(f"{k}{v.shape[2:]}" for k, v in self._draws.items())
        return f"PosteriorDraws(chains={self.n_chains}, draws={self.n_draws}, {shapes})"


class Sampler:
    """Base class for MCMC engines."""

    name = "sampler"

    def run(self, model, bundle, config):
        """Sample from the posterior of ``model`` given ``bundle``.

        Parameters
        ----------
        model : ModelKind
        bundle : DataBundle
        config : SamplerConfig

        Returns
        -------
        PosteriorDraws

        Raises
        ------
        SamplerError
        """
        raise NotImplementedError
