"""Coordinated shutdown: run registered teardown functions on termination."""

import logging
import signal
import threading
from collections.abc import Callable
from typing import Optional

_log = logging.getLogger(__name__)


def _run_safely(func: Callable[[], None]) -> None:
    try:
        func()
    except Exception:
        _log.exception("Teardown function failed.")


class TeardownManager:
    """Collects teardown functions and runs them together when the process stops."""

    def __init__(self) -> None:
        self.stop_event = threading.Event()
        self._terminate = threading.Event()
        self._registry_lock = threading.Lock()
        self._shutdown_lock = threading.Lock()
        self._funcs: list[Callable[[], None]] = []
        self._done = False

    def register(self, func: Callable[[], None]) -> None:
        """Run func at shutdown; runs it at once if shutdown already happened."""
        with self._registry_lock:
            if not self._done:
                self._funcs.append(func)
                return
        _run_safely(func)

    def shutdown(self) -> None:
        """Signal stop and run every registered function concurrently, waiting for all."""
        with self._shutdown_lock:
            with self._registry_lock:
                if self._done:
                    return
                self._done = True
                funcs = list(self._funcs)
                self._funcs.clear()
            self._terminate.set()
            self.stop_event.set()
            threads = [threading.Thread(target=_run_safely, args=(f,)) for f in funcs]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

    def wait(self) -> None:
        """Block until termination is requested, then shut down."""
        self._terminate.wait()
        self.shutdown()

    def _handle_signal(self, signum: int, frame: object) -> None:
        self._terminate.set()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for name in ("SIGINT", "SIGTERM", "SIGHUP"):
            signum = getattr(signal, name, None)
            if signum is not None:
                signal.signal(signum, self._handle_signal)


_manager: Optional[TeardownManager] = None
_manager_lock = threading.Lock()


def get_teardown_manager() -> TeardownManager:
    """Return the process-wide manager, creating it and hooking signals on first use."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = TeardownManager()
            _manager._install_signal_handlers()
        return _manager