"""
Tests for the step executor — skip, run, record, abort.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from wslstack.core.errors import ConfigurationError, StepError
from wslstack.core.engine.executor import StepExecutor
from wslstack.core.models.step import InstallStep
from wslstack.core.persistence.state_file import StateStore


def _step(name: str, action=None) -> InstallStep:
    return InstallStep(name, action or MagicMock(return_value=None))


class TestRunStep:
    """Single-step behavior."""

    def test_runs_and_records(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        step = _step("hadoop_install")

        result = StepExecutor(store).run_step(step, step_ctx)

        assert result.ok
        step.action.assert_called_once_with(step_ctx)
        assert store.contains("hadoop_install")

    def test_skips_recorded_step(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        store.mark_done("hadoop_install")
        step = _step("hadoop_install")

        result = StepExecutor(store).run_step(step, step_ctx)

        assert result.skipped
        step.action.assert_not_called()

    def test_failure_is_not_recorded(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        output = tmp_path / "partial.txt"

        def _half_done(ctx):
            output.write_text("half")
            raise ConfigurationError("disk full")

        with pytest.raises(ConfigurationError):
            StepExecutor(store).run_step(InstallStep("hadoop_config", _half_done), step_ctx)
        assert not store.contains("hadoop_config")

        # a second invocation runs the action again
        retry = _step("hadoop_config")
        StepExecutor(store).run_step(retry, step_ctx)
        retry.action.assert_called_once()
        assert store.contains("hadoop_config")

    def test_unclassified_error_wrapped(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        step = _step("pig_install", MagicMock(side_effect=ValueError("bad")))

        with pytest.raises(StepError) as exc:
            StepExecutor(store).run_step(step, step_ctx)
        assert exc.value.step == "pig_install"
        assert "bad" in exc.value.message
        assert isinstance(exc.value.__cause__, ValueError)

    def test_events(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        events = []
        executor = StepExecutor(store, on_event=events.append)

        executor.run_step(_step("a"), step_ctx)
        executor.run_step(_step("a"), step_ctx)
        with pytest.raises(StepError):
            executor.run_step(_step("b", MagicMock(side_effect=OSError("x"))), step_ctx)

        assert [(e.kind, e.subject) for e in events] == [
            ("start", "a"), ("done", "a"), ("skip", "a"), ("start", "b"), ("fail", "b"),
        ]


class TestRun:
    """Sequential runs."""

    def test_second_run_has_no_side_effects(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        steps = [_step("one"), _step("two"), _step("three")]

        first = StepExecutor(store).run(steps, step_ctx)
        assert first.succeeded == 3
        for s in steps:
            s.action.reset_mock()

        second = StepExecutor(store).run(steps, step_ctx)
        assert second.skipped == 3
        assert second.status == "ok"
        for s in steps:
            s.action.assert_not_called()

    def test_aborts_at_first_failure(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        steps = [
            _step("one"),
            _step("two", MagicMock(side_effect=ConfigurationError("nope"))),
            _step("three"),
        ]

        with pytest.raises(ConfigurationError) as exc:
            StepExecutor(store).run(steps, step_ctx)

        steps[2].action.assert_not_called()
        assert store.completed() == ["one"]
        report = exc.value.report
        assert [r.status for r in report.results] == ["ok", "failed"]
        assert report.status == "partial"
        assert report.to_dict()["steps"][1]["error"] == "nope"

    def test_resumes_after_failure(self, tmp_path: Path, step_ctx):
        store = StateStore(tmp_path / "state")
        flaky = MagicMock(side_effect=[ConfigurationError("first"), None])
        one = _step("one")
        steps = [one, _step("two", flaky)]

        with pytest.raises(ConfigurationError):
            StepExecutor(store).run(steps, step_ctx)
        report = StepExecutor(store).run(steps, step_ctx)

        assert one.action.call_count == 1
        assert flaky.call_count == 2
        assert [r.status for r in report.results] == ["skipped", "ok"]


class TestInstallStep:

    @pytest.mark.parametrize("name", ["", "a\nb"])
    def test_invalid_name(self, name: str):
        with pytest.raises(ValueError):
            InstallStep(name, lambda ctx: None)
