"""Tests for analysis_spine.core.sweeper."""

from __future__ import annotations

import threading

import pytest

from analysis_spine.core.sweeper import PeriodicSweeper


class TestPeriodicSweeper:
    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicSweeper(lambda: None, 0)

    def test_runs_until_stopped(self):
        ran = threading.Event()
        sweeper = PeriodicSweeper(ran.set, 0.01, name="test-sweeper").start()
        try:
            assert ran.wait(2.0)
        finally:
            sweeper.stop()
        assert not sweeper.running

    def test_failed_pass_does_not_stop_the_timer(self):
        calls = []
        second = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first pass fails")
            second.set()

        sweeper = PeriodicSweeper(flaky, 0.01).start()
        try:
            assert second.wait(2.0)
        finally:
            sweeper.stop()

    def test_stop_is_prompt(self):
        sweeper = PeriodicSweeper(lambda: None, 3600).start()
        sweeper.stop(timeout=2.0)
        assert not sweeper.running
