# filepath: tenantsync/src/cancellation.py

"""Cooperative cancellation checked between units of work."""

import logging
import signal
import threading

logger = logging.getLogger(__name__)


class CancellationToken:
    """Set once; checked by the migrator and sweeper between steps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def install_signal_handler(self, signum: int = signal.SIGINT):
        """First Ctrl-C requests a stop after the current step."""
        def handler(sig, frame):
            logger.warning("Cancellation requested, stopping after the current step")
            self.cancel()
        signal.signal(signum, handler)
