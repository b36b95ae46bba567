"""Periodic background tasks that stop when a stop event is set."""

import logging
import threading
from abc import ABC, abstractmethod

_log = logging.getLogger(__name__)


class Task(ABC):
    """A unit of work run repeatedly, sleeping sleep_time seconds before each run."""

    @property
    @abstractmethod
    def sleep_time(self) -> float:
        """Seconds to wait before each run."""

    @abstractmethod
    def run(self) -> None:
        """Do one round of work."""


def register(task: Task, stop_event: threading.Event) -> threading.Thread:
    """Start running task periodically in a daemon thread until stop_event is set."""

    def loop() -> None:
        while not stop_event.wait(task.sleep_time):
            task.run()
        _log.info("Stopping task execution.")

    thread = threading.Thread(target=loop, name=f"task-{type(task).__name__}", daemon=True)
    thread.start()
    return thread