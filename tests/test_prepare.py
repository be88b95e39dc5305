"""
Tests for bsam/prepare.py: regular grids, nearest-step assignment,
error coefficients, initial values, and sampler data bundles.
"""

import numpy as np
import pandas as pd
import pytest

from bsam import config
from bsam.errors import InconsistentErrorSpecError, InsufficientDataError
from bsam.identifiers import normalize_ids, standardize_observations
from bsam.models import ModelKind
from bsam.prepare import (
    NS_PER_DAY,
    ErrorModel,
    assign_nearest_step,
    build_hierarchical_bundle,
    build_single_bundle,
    prepare_observations,
    prepare_track,
    step_nanoseconds,
)

T0 = pd.Timestamp("2020-06-01", tz="UTC")


def _track(day_offsets, ind=1, lc=None, **extra):
    n = len(day_offsets)
    df = pd.DataFrame({
        "id": ind,
        "date": T0 + pd.to_timedelta(day_offsets, unit="D"),
        "lc": lc or ["3"] * n,
        "lon": 100.0 + np.asarray(day_offsets, dtype=float) * 0.1,
        "lat": 10.0 + np.asarray(day_offsets, dtype=float) * 0.05,
    })
    for k, v in extra.items():
        df[k] = v
    return df


class TestGrid:

    def test_two_observations_one_step_apart(self):
        track = prepare_track(_track([0.0, 1.0]), tstep=1.0)
        assert track.n_steps == 2
        assert track.step_times[1] - track.step_times[0] == pd.Timedelta(days=1)

    @pytest.mark.parametrize("days,tstep,expected", [
        (2.5, 1.0, 3),
        (2.5, 0.5, 6),
        (3.0, 0.25, 13),
        (10.0, 3.0, 4),
    ])
    def test_step_count_law(self, days, tstep, expected):
        track = prepare_track(_track([0.0, days / 2, days]), tstep=tstep)
        assert track.n_steps == expected

    def test_grid_starts_at_first_observation(self):
        obs = _track([1.7, 0.3, 2.9])
        track = prepare_track(obs, tstep=1.0)
        assert track.step_times[0] == obs["date"].min()
        assert track.n_steps == 3

    def test_single_timestamp_raises(self):
        with pytest.raises(InsufficientDataError):
            prepare_track(_track([0.0]), tstep=1.0)

    def test_duplicated_timestamp_raises(self):
        with pytest.raises(InsufficientDataError):
            prepare_track(_track([1.0, 1.0]), tstep=1.0)

    def test_span_shorter_than_step_raises(self):
        with pytest.raises(InsufficientDataError, match="less than one time step"):
            prepare_track(_track([0.0, 0.5]), tstep=1.0)

    def test_unsorted_input_is_sorted(self):
        track = prepare_track(_track([2.0, 0.0, 1.0]), tstep=1.0)
        assert track.obs["date"].is_monotonic_increasing

    def test_nonpositive_tstep_rejected(self):
        with pytest.raises(ValueError):
            prepare_track(_track([0.0, 1.0]), tstep=0)

    def test_sub_nanosecond_tstep_rejected(self):
        with pytest.raises(ValueError, match="nanosecond"):
            step_nanoseconds(1e-16)
        with pytest.raises(ValueError):
            prepare_track(_track([0.0, 1.0]), tstep=1e-16)


class TestNearestStep:

    def test_tie_goes_to_earlier_step(self):
        step = NS_PER_DAY
        assert assign_nearest_step([step // 2], step, 3).tolist() == [0]
        assert assign_nearest_step([step // 2 + 1], step, 3).tolist() == [1]

    def test_past_last_step_clipped(self):
        step = NS_PER_DAY
        assert assign_nearest_step([int(2.9 * step)], step, 3).tolist() == [2]

    def test_assignment_and_observed_flags(self):
        track = prepare_track(_track([0.0, 0.5, 0.75, 3.0]), tstep=1.0)
        assert track.obs_step.tolist() == [0, 0, 1, 3]
        assert track.observed.tolist() == [True, True, False, True]


class TestErrorCoefficients:

    def test_lookup_by_class(self):
        track = prepare_track(_track([0.0, 1.0], lc=["Z", "B"]), tstep=1.0)
        assert track.obs["itau2_lat"].iloc[0] == pytest.approx(track.obs["itau2_lat"].iloc[1])
        assert track.obs["nu_lon"].iloc[0] == pytest.approx(1.079216)

    def test_explicit_errors_used_on_g_rows(self):
        df = _track([0.0, 1.0], lc=["G", "G"], lonerr=[0.01, 0.01], laterr=[0.02, 0.02])
        track = prepare_track(df, tstep=1.0)
        np.testing.assert_allclose(track.obs["itau2_lon"], 1.0 / 0.01 ** 2)
        np.testing.assert_allclose(track.obs["itau2_lat"], 1.0 / 0.02 ** 2)
        assert (track.obs["nu_lat"] == config.EXPLICIT_ERROR_NU).all()

    def test_lookup_mode_ignores_explicit_errors(self):
        df = _track([0.0, 1.0], lc=["G", "G"], lonerr=[0.01, 0.01], laterr=[0.02, 0.02])
        track = prepare_track(df, tstep=1.0, error_model="lookup")
        sd_lat = 0.1 / config.KM_PER_DEGREE
        np.testing.assert_allclose(track.obs["itau2_lat"], 1.0 / sd_lat ** 2)

    def test_explicit_mode_requires_errors(self):
        with pytest.raises(InconsistentErrorSpecError):
            prepare_track(_track([0.0, 1.0]), tstep=1.0, error_model=ErrorModel.EXPLICIT)

    def test_unknown_error_model(self):
        with pytest.raises(ValueError):
            ErrorModel.parse("bogus")


class TestInitialValues:

    def test_one_row_per_step(self):
        track = prepare_track(_track([0.0, 0.4, 1.3, 2.2, 4.0]), tstep=0.5)
        assert track.initial.shape == (track.n_steps, 2)
        assert np.isfinite(track.initial).all()

    def test_follows_track(self):
        track = prepare_track(_track(np.linspace(0, 4, 20)), tstep=1.0, span=0.3)
        np.testing.assert_allclose(track.initial[:, 0], 100.0 + 0.1 * np.arange(5), atol=1e-6)


class TestPrepareObservations:

    def _normalized(self, observations):
        df, original = normalize_ids(standardize_observations(observations))
        return df, original

    def test_tracks_in_first_appearance_order(self, observations):
        df, _ = self._normalized(observations)
        prepared = prepare_observations(df, tstep=1.0)
        assert prepared.ids == [1, 2, 3]
        assert all(t.n_steps == 6 for t in prepared.tracks)

    def test_insufficient_individual_raises_by_default(self, observations):
        lone = observations.iloc[[0]].assign(id="lone")
        df, _ = self._normalized(pd.concat([observations, lone], ignore_index=True))
        with pytest.raises(InsufficientDataError):
            prepare_observations(df, tstep=1.0)

    def test_insufficient_individual_skipped(self, observations):
        lone = observations.iloc[[0]].assign(id="lone")
        df, _ = self._normalized(pd.concat([observations, lone], ignore_index=True))
        prepared = prepare_observations(df, tstep=1.0, skip_insufficient=True)
        assert prepared.ids == [1, 2, 3]
        assert list(prepared.failures) == [4]
        assert isinstance(prepared.failures[4], InsufficientDataError)

    @pytest.mark.parametrize("span", [0.0, -0.1, 1.5])
    def test_span_validated(self, observations, span):
        df, _ = self._normalized(observations)
        with pytest.raises(ValueError):
            prepare_observations(df, span=span)

    def test_idempotent(self, observations):
        df, _ = self._normalized(observations)
        a = prepare_observations(df, tstep=0.5)
        b = prepare_observations(df, tstep=0.5)
        for ta, tb in zip(a.tracks, b.tracks):
            pd.testing.assert_frame_equal(ta.obs, tb.obs)
            assert ta.step_times.equals(tb.step_times)
            assert np.array_equal(ta.observed, tb.observed)
            assert ta.initial.tobytes() == tb.initial.tobytes()


class TestBundles:

    def test_single_bundle(self, observations):
        df, _ = normalize_ids(standardize_observations(observations))
        track = prepare_observations(df, tstep=1.0).tracks[0]
        bundle = build_single_bundle(track, ModelKind.DCRW)
        data = bundle.data
        assert data["N"] == track.n_steps
        assert data["M"] == track.n_obs
        assert data["y"].shape == (track.n_obs, 2)
        assert data["s"].min() == 1 and data["s"].max() == track.n_steps
        assert data["itau2"].shape == data["nu"].shape == (track.n_obs, 2)
        assert bundle.inits["x"].shape == (track.n_steps, 2)
        assert bundle.monitor == ModelKind.DCRW.monitor
        assert bundle.row_individual is None
        assert "K" not in data

    def test_hierarchical_bundle(self, observations):
        df, _ = normalize_ids(standardize_observations(observations))
        tracks = prepare_observations(df, tstep=1.0).tracks
        bundle = build_hierarchical_bundle(tracks, ModelKind.hDCRWS)
        data = bundle.data
        total = sum(t.n_steps for t in tracks)
        assert data["K"] == 3
        assert data["N"] == total
        assert data["start"].tolist() == [1, 7, 13]
        assert data["end"].tolist() == [6, 12, 18]
        assert data["x0"].shape == (3, 2)
        assert data["ind"].tolist() == [1] * 6 + [2] * 6 + [3] * 6
        assert bundle.row_individual.tolist() == [1] * 6 + [2] * 6 + [3] * 6
        # each observation's step lies inside its own individual's rows
        obs_ind = np.concatenate([np.full(t.n_obs, k) for k, t in enumerate(tracks, 1)])
        assert np.array_equal(data["ind"][data["s"] - 1], obs_ind)
        assert bundle.inits["x"].shape == (total, 2)

    def test_hierarchical_bundle_needs_tracks(self):
        with pytest.raises(InsufficientDataError):
            build_hierarchical_bundle([], ModelKind.hDCRW)
