"""
Module for connectivity signals that suspend and resume uploads.
"""
import logging
import socket
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# Called with True when connectivity comes back, False when it is lost
ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Delivers online/offline signals to registered listeners."""

    def __init__(self):
        self._listeners: List[ConnectivityListener] = []
        self._lock = threading.Lock()

    def register_listener(self, listener: ConnectivityListener) -> None:
        """Register a listener for connectivity changes.

        Args:
            listener: Function called with the new online status
        """
        with self._lock:
            self._listeners.append(listener)

    def unregister_listener(self, listener: ConnectivityListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, online: bool) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(online)


class ManualConnectivityMonitor(ConnectivityMonitor):
    """Monitor driven by the application, e.g. from an OS network hook.

    Every call is forwarded, repeated signals included.
    """

    def set_offline(self) -> None:
        logger.info("Connectivity lost")
        self._notify(False)

    def set_online(self) -> None:
        logger.info("Connectivity restored")
        self._notify(True)


class PollingConnectivityMonitor(ConnectivityMonitor):
    """Periodically probes a TCP endpoint and signals status transitions."""

    def __init__(self, host: str, port: int = 443, interval: float = 5.0,
                 timeout: float = 3.0):
        """Initialize the polling monitor.

        Args:
            host: Host to open probe connections to
            port: Port to probe
            interval: Seconds between probes
            timeout: Seconds before a probe counts as failed
        """
        super().__init__()
        self.host = host
        self.port = port
        self.interval = interval
        self.timeout = timeout
        self.online = True
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def probe(self) -> bool:
        """Check if the probe endpoint accepts connections."""
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError as e:
            logger.debug(f"Probe of {self.host}:{self.port} failed: {e}")
            return False

    def check(self) -> None:
        """Probe once and notify listeners if the status changed."""
        online = self.probe()
        if online == self.online:
            return

        self.online = online
        logger.info(f"Connectivity to {self.host}:{self.port} is {'up' if online else 'down'}")
        self._notify(online)

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll,
            name=f"connectivity-{self.host}:{self.port}",
            daemon=True
        )
        self._thread.start()
        logger.info(f"Started connectivity probes to {self.host}:{self.port}")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.timeout + 1)
            self._thread = None

    def _poll(self) -> None:
        """Background thread that probes until stopped."""
        while not self._stop_event.is_set():
            try:
                self.check()
            except Exception as e:
                logger.error(f"Error checking connectivity: {e}")

            self._stop_event.wait(self.interval)
