import logging
import threading

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class HoldSweeper(threading.Thread):
    """Background thread that expires overdue holds every ``interval`` seconds."""

    def __init__(self, app, hold_manager, interval=10.0):
        super().__init__(name="hold-sweeper", daemon=True)
        self.app = app
        self.hold_manager = hold_manager
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self):
        logger.info("Hold sweeper started (every %ss)", self.interval)
        while not self._stop_event.wait(self.interval):
            self.sweep_once()
        logger.info("Hold sweeper stopped")

    def sweep_once(self):
        with self.app.app_context():
            try:
                return self.hold_manager.sweep()
            except SQLAlchemyError:
                logger.exception("Hold sweep failed")
                return []

    def stop(self, timeout=5):
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout=timeout)
