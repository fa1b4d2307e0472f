"""Tests for SweepLoop lifecycle and the Celery sweep task."""
import time
from unittest.mock import MagicMock, patch

from app.workers.poller import SweepLoop


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class TestSweepLoop:
    def test_start_and_stop(self):
        sweep = MagicMock()
        loop = SweepLoop(sweep, interval_seconds=0.01)

        loop.start()
        assert _wait_for(lambda: loop.ticks >= 2)
        loop.stop(timeout=2)

        assert loop.running is False
        ticks = loop.ticks
        time.sleep(0.05)
        assert loop.ticks == ticks
        assert sweep.run_once.call_count == ticks

    def test_tick_error_keeps_loop_alive(self):
        sweep = MagicMock()
        sweep.run_once.side_effect = [RuntimeError("db down"), None, None]
        loop = SweepLoop(sweep, interval_seconds=0.01)

        loop.start()
        assert _wait_for(lambda: loop.ticks >= 2)
        loop.stop(timeout=2)

        assert sweep.run_once.call_count >= 2

    def test_stop_before_start_is_safe(self):
        loop = SweepLoop(MagicMock(), interval_seconds=1)
        loop.stop()
        assert loop.running is False


class TestSweepTask:
    def test_task_runs_one_tick(self):
        from app.services.generations.sweep import SweepReport
        from app.workers.tasks.sweep_processing import sweep_processing_jobs

        services = MagicMock()
        services.sweep.run_once.return_value = SweepReport(polled=3, applied=1)
        with patch("app.workers.tasks.sweep_processing.get_generation_services", return_value=services):
            result = sweep_processing_jobs.run()

        assert result["ok"] is True
        assert result["polled"] == 3
        assert result["applied"] == 1
