"""
Tests for the bsam-fit command line entry point.
"""

import json
import os

import pandas as pd

from bsam.cli import main, parse_args

FAST_ARGS = ["--adapt", "10", "--samples", "20", "--thin", "2", "--chains", "2"]


def _write_csv(df, directory):
    path = os.path.join(directory, "obs.csv")
    df.to_csv(path, index=False)
    return path


class TestParseArgs:

    def test_defaults(self):
        args = parse_args(["--data", "obs.csv"])
        assert args.model == "DCRW"
        assert args.tstep == 1.0
        assert args.error_model == "auto"
        assert args.onemap is True
        assert not args.maps

    def test_no_onemap(self):
        assert parse_args(["--data", "x.csv", "--no-onemap"]).onemap is False


class TestMain:

    def test_successful_run_writes_outputs(self, observations, fake_sampler, tmp_dir):
        out = os.path.join(tmp_dir, "run")
        status = main(["--data", _write_csv(observations, tmp_dir), "--output-dir", out,
                       "--model", "DCRWS", *FAST_ARGS], sampler=fake_sampler)
        assert status == 0

        summary = pd.read_csv(os.path.join(out, "csv", "summary.csv"))
        assert list(pd.unique(summary["id"])) == ["zeta", "alpha", "mid"]
        assert "b_state" in summary.columns

        with open(os.path.join(out, "fit_run.json")) as f:
            record = json.load(f)
        assert record["model"] == "DCRWS"
        assert record["all_ok"] is True
        assert record["args"]["model"] == "DCRWS"
        assert os.path.exists(os.path.join(out, "fit.jsonl"))

    def test_maps_and_plots(self, observations, fake_sampler, tmp_dir):
        out = os.path.join(tmp_dir, "run")
        status = main(["--data", _write_csv(observations, tmp_dir), "--output-dir", out,
                       "--maps", "--plots", *FAST_ARGS], sampler=fake_sampler)
        assert status == 0
        assert os.listdir(os.path.join(out, "maps")) == ["map_DCRW.png"]
        assert len(os.listdir(os.path.join(out, "plots"))) == 3

    def test_invalid_model_exits_nonzero(self, observations, fake_sampler, tmp_dir):
        out = os.path.join(tmp_dir, "run")
        status = main(["--data", _write_csv(observations, tmp_dir), "--output-dir", out,
                       "--model", "CRW"], sampler=fake_sampler)
        assert status == 1
        assert fake_sampler.calls == []

    def test_all_failed_exits_nonzero(self, observations, sampler_factory, tmp_dir):
        out = os.path.join(tmp_dir, "run")
        sampler = sampler_factory(fail_if=lambda b: True)
        status = main(["--data", _write_csv(observations, tmp_dir), "--output-dir", out,
                       *FAST_ARGS], sampler=sampler)
        assert status == 1
        with open(os.path.join(out, "fit_run.json")) as f:
            record = json.load(f)
        assert sorted(record["failures"]) == ["alpha", "mid", "zeta"]
        assert not os.path.exists(os.path.join(out, "csv", "summary.csv"))

    def test_partial_failure_still_succeeds(self, observations, sampler_factory, tmp_dir):
        out = os.path.join(tmp_dir, "run")
        sampler = sampler_factory(fail_on_calls={1})
        status = main(["--data", _write_csv(observations, tmp_dir), "--output-dir", out,
                       *FAST_ARGS], sampler=sampler)
        assert status == 0
        summary = pd.read_csv(os.path.join(out, "csv", "summary.csv"))
        assert list(pd.unique(summary["id"])) == ["alpha", "mid"]
