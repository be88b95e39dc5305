"""
Shared fixtures for bsam tests.

Provides synthetic tracking data and a deterministic in-process sampler
so each test module can verify preparation and orchestration logic
without a JAGS installation.
"""

import os
import stat
import tempfile
import threading

import numpy as np
import pandas as pd
import pytest

from bsam.errors import SamplerError
from bsam.logging_config import reset_logging
from bsam.sampler.base import PosteriorDraws, Sampler, SamplerConfig


# ---------------------------------------------------------------------------
# Synthetic tracks
# ---------------------------------------------------------------------------
T0 = pd.Timestamp("2021-03-01 00:00", tz="UTC")

# Deliberately unsorted ids so first-appearance order differs from sort order.
TRACK_IDS = ["zeta", "alpha", "mid"]


def make_track(ind, n_obs=12, days=5.0, lon0=150.0, lat0=-40.0, lc=None, seed=0,
               start=T0):
    """Irregularly timed observations drifting north-east from (lon0, lat0)."""
    rng = np.random.default_rng(seed)
    offsets = np.sort(rng.uniform(0.0, days, n_obs))
    offsets[0], offsets[-1] = 0.0, days
    if lc is None:
        lc = rng.choice(["3", "2", "1", "0", "A", "B", "Z"], size=n_obs)
    return pd.DataFrame({
        "id": ind,
        "date": start + pd.to_timedelta(offsets, unit="D"),
        "lc": lc,
        "lon": lon0 + 0.1 * offsets + rng.normal(0, 0.01, n_obs),
        "lat": lat0 + 0.05 * offsets + rng.normal(0, 0.01, n_obs),
    })


@pytest.fixture
def observations():
    """Three individuals, each starting at a distinct longitude."""
    return pd.concat(
        [make_track(ind, lon0=150.0 + 10 * i, seed=i) for i, ind in enumerate(TRACK_IDS)],
        ignore_index=True,
    )


@pytest.fixture
def gps_observations():
    """Two individuals with explicit errors on 'G' class fixes."""
    frames = []
    for i, ind in enumerate(["g1", "g2"]):
        df = make_track(ind, n_obs=8, lon0=120.0 + i, seed=10 + i, lc=["G"] * 8)
        df["lonerr"] = 0.01
        df["laterr"] = 0.02
        frames.append(df)
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory(prefix="bsam_test_") as d:
        yield d


@pytest.fixture
def fast_config():
    return SamplerConfig(adapt=10, samples=20, thin=2, chains=2, seed=7)


@pytest.fixture(autouse=True)
def _isolated_logging():
    yield
    reset_logging()


# ---------------------------------------------------------------------------
# Deterministic sampler
# ---------------------------------------------------------------------------


class FakeSampler(Sampler):
    """In-process stand-in for JAGS.

    Location draws scatter tightly around the initial values; switching
    models get state 1 on the first half of each track and 2 after.
    ``fail_if(bundle)`` returning True makes a call raise SamplerError.
    """

    name = "fake"

    def __init__(self, fail_if=None, fail_on_calls=()):
        self.fail_if = fail_if
        self.fail_on_calls = set(fail_on_calls)
        self.calls = []
        self._lock = threading.Lock()

    def run(self, model, bundle, config):
        with self._lock:
            self.calls.append((model, bundle, config))
            call_no = len(self.calls)
        if call_no in self.fail_on_calls or (self.fail_if and self.fail_if(bundle)):
            raise SamplerError("simulated sampler failure", output="RUNTIME ERROR: test")

        rng = np.random.default_rng(config.seed)
        n_draws = config.n_kept
        x0 = np.asarray(bundle.inits["x"], dtype=float)
        n = x0.shape[0]
        x = x0 + rng.normal(0.0, 1e-3, size=(config.chains, n_draws, n, 2))
        draws = {
            "x": x,
            "gamma": rng.uniform(0.2, 0.8, size=(config.chains, n_draws)),
            "theta": rng.uniform(-0.5, 0.5, size=(config.chains, n_draws)),
        }
        if model.switching:
            if bundle.row_individual is None:
                b = np.where(np.arange(n) < n // 2, 1.0, 2.0)
            else:
                b = np.ones(n)
                ind = pd.Series(bundle.row_individual)
                for _, rows in ind.groupby(ind, sort=False).groups.items():
                    rows = np.asarray(rows)
                    b[rows[len(rows) // 2:]] = 2.0
            draws["b"] = np.broadcast_to(b, (config.chains, n_draws, n)).copy()
        return PosteriorDraws(draws)


@pytest.fixture
def fake_sampler():
    return FakeSampler()


# ---------------------------------------------------------------------------
# Fake JAGS executables
# ---------------------------------------------------------------------------


def write_executable(directory, name, body):
    """Write a shell script and make it executable."""
    path = os.path.join(directory, name)
    with open(path, "w") as f:
        f.write("#!/bin/sh\n" + body)
    os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def sampler_factory():
    """Build FakeSamplers with custom failure rules."""
    return FakeSampler


@pytest.fixture
def script_writer():
    """Write executable shell scripts standing in for the jags binary."""
    return write_executable
