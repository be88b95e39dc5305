"""
Tests for bsam/step_runner.py.

Verifies the step execution wrapper every per-individual fit runs
through: timing, error capture, StepResult construction, and the
expected_exceptions pattern.

A bug here either lets one individual's sampler failure escape and abort
its siblings, or silently misreports a failed fit as a success.
"""

import json
import time

import pytest

from bsam.errors import InsufficientDataError, SamplerError, SamplerTimeoutError
from bsam.fit_types import StepResult
from bsam.step_runner import run_step


class TestRunStepSuccess:
    """Tests for successful step execution."""

    def test_basic_success(self):
        result, data = run_step("fit_1", lambda: 42)
        assert isinstance(result, StepResult)
        assert result.status == "success"
        assert result.ok
        assert result.step_name == "fit_1"
        assert result.error is None
        assert result.error_type is None
        assert data == 42

    def test_timing_recorded(self):
        def slow_fn():
            time.sleep(0.05)
            return "done"

        result, _ = run_step("timed_step", slow_fn)
        assert result.timing_seconds >= 0.04

    def test_args_and_kwargs_passed(self):
        def adder(a, b, multiplier=1):
            return (a + b) * multiplier

        result, data = run_step("adder", adder, 3, 4, multiplier=2)
        assert data == 14

    def test_input_summary_recorded(self):
        result, _ = run_step(
            "summarized",
            lambda: "ok",
            input_summary={"individual": 1, "n_obs": 12},
        )
        assert result.input_summary == {"individual": 1, "n_obs": 12}

    def test_output_summary_fn_called(self):
        result, _ = run_step(
            "with_summary",
            lambda: [1, 2, 3],
            output_summary_fn=lambda x: {"N": len(x)},
        )
        assert result.output_summary == {"N": 3}

    def test_output_summary_skipped_for_none(self):
        called = []
        result, data = run_step(
            "none_result",
            lambda: None,
            output_summary_fn=lambda x: called.append(True) or {"n": 0},
        )
        assert data is None
        assert called == []


class TestRunStepErrorHandling:
    """Failures are captured in the StepResult, never raised."""

    def test_sampler_error_caught(self):
        def fails():
            raise SamplerError("JAGS failed", output="RUNTIME ERROR: bad node")

        result, data = run_step("fit_2", fails)
        assert result.status == "error"
        assert not result.ok
        assert result.error_type == "SamplerError"
        assert "JAGS failed" in result.error_message
        assert "RUNTIME ERROR" in result.error
        assert data is None

    def test_timeout_is_a_sampler_error(self):
        def times_out():
            raise SamplerTimeoutError("exceeded 1s")

        result, _ = run_step("fit_3", times_out)
        assert result.error_type == "SamplerTimeoutError"

    def test_insufficient_data_caught(self):
        def too_short():
            raise InsufficientDataError("one timestamp", individual=4)

        result, data = run_step("fit_4", too_short)
        assert result.status == "error"
        assert data is None

    def test_key_error_caught(self):
        def missing_key():
            raise KeyError("x")

        result, _ = run_step("missing_key", missing_key)
        assert result.status == "error"

    def test_unexpected_exception_also_caught(self):
        def unexpected():
            raise ZeroDivisionError("unexpected crash")

        result, data = run_step("unexpected", unexpected)
        assert result.status == "error"
        assert "unexpected crash" in result.error
        assert result.error_type == "ZeroDivisionError"

    def test_custom_expected_exceptions(self):
        def type_error():
            raise TypeError("wrong type")

        result, _ = run_step("custom", type_error, expected_exceptions=(TypeError,))
        assert result.status == "error"

    def test_error_timing_still_recorded(self):
        def fails_slowly():
            time.sleep(0.05)
            raise SamplerError("slow fail")

        result, _ = run_step("slow_fail", fails_slowly)
        assert result.timing_seconds >= 0.04


class TestStepResultSerialization:

    def test_to_dict_is_json_serializable(self):
        result, _ = run_step("fit_5", lambda: 1, input_summary={"n_steps": 6})
        record = json.loads(json.dumps(result.to_dict()))
        assert record["step_name"] == "fit_5"
        assert record["input_summary"] == {"n_steps": 6}
        assert record["error"] is None

    @pytest.mark.parametrize("status", ["success", "error"])
    def test_to_dict_keeps_status(self, status):
        assert StepResult(step_name="s", status=status).to_dict()["status"] == status
