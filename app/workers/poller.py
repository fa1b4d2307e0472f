"""
Standalone polling loop for deployments that run without Celery beat.

    python -m app.workers.poller

start() runs the loop in a daemon thread; stop() ends it after the current
tick. Each tick is one bounded PollingSweep.run_once().
"""
import logging
import signal
import threading

from app.services.generations.sweep import PollingSweep

logger = logging.getLogger(__name__)


class SweepLoop:
    def __init__(self, sweep: PollingSweep, interval_seconds: float):
        self.sweep = sweep
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="sweep-loop", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_forever(self) -> None:
        logger.info("sweep_loop_started", extra={"batch_size": self.sweep.batch_size})
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self.interval_seconds)
        logger.info("sweep_loop_stopped", extra={"processed": self.ticks})

    def tick(self) -> None:
        try:
            self.sweep.run_once()
        except Exception:
            logger.exception("sweep_tick_failed")
        self.ticks += 1


def main() -> None:
    from app.core.config import settings
    from app.core.logging import configure_logging
    from app.services.generations.builder import get_generation_services

    configure_logging()
    services = get_generation_services()
    loop = SweepLoop(services.sweep, settings.sweep_interval_seconds)

    def _shutdown(signum, frame):
        loop.stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)
    try:
        loop.run_forever()
    finally:
        services.close()


if __name__ == "__main__":
    main()
