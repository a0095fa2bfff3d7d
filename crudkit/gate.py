"""Serializing write gates.

A ``WriteGate`` runs scheduled operations one at a time, in submission
order, on its own worker thread. Each call to ``run`` returns a
``concurrent.futures.Future`` that settles with that operation's own
outcome; a failing operation never holds up the ones queued behind it.

``WriteGates`` keeps one gate per resource (for example a table
directory) so writes to different resources proceed independently.
Serialization is in-process only.
"""

import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

from crudkit.exceptions import GateClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STOP = object()


class WriteGate:
    """Single-writer queue with an owned worker thread."""

    def __init__(self, name: str = "default"):
        self.name = name
        self._queue: queue.SimpleQueue[Any] = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self, operation: Callable[[], T]) -> "Future[T]":
        """Schedule an operation after everything already scheduled.

        Raises:
            GateClosedError: If the gate has been closed.
        """
        future: Future[T] = Future()
        with self._lock:
            if self._closed:
                raise GateClosedError(self.name)
            self._queue.put((operation, future))
            if self._worker is None:
                self._worker = threading.Thread(
                    target=self._drain, name=f"write-gate:{self.name}", daemon=True
                )
                self._worker.start()
                logger.debug(f"Started write gate worker for {self.name}")
        return future

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            operation, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = operation()
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)

    def close(self, wait: bool = True) -> None:
        """Stop accepting work and let the worker finish what is queued."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._queue.put(_STOP)

        if worker is not None and wait:
            worker.join()


class WriteGates:
    """Registry of write gates keyed by resource."""

    def __init__(self):
        self._gates: dict[str, WriteGate] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, key: str) -> WriteGate:
        """Get the gate for a resource, creating it on first use."""
        with self._lock:
            if self._closed:
                raise GateClosedError(key)
            gate = self._gates.get(key)
            if gate is None:
                gate = self._gates[key] = WriteGate(key)
            return gate

    def run(self, key: str, operation: Callable[[], T]) -> "Future[T]":
        """Schedule an operation on the gate for a resource."""
        return self.get(key).run(operation)

    def close(self, wait: bool = True) -> None:
        """Close every gate."""
        with self._lock:
            self._closed = True
            gates = list(self._gates.values())
        for gate in gates:
            gate.close(wait=wait)

    def __len__(self) -> int:
        with self._lock:
            return len(self._gates)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._gates
