"""Sampling engine for socstat."""

import logging
import threading
import time
from collections.abc import Callable
from queue import Queue

from socstat.access import SysfsAccess
from socstat.cpu import CpuReader
from socstat.gpu import DEFAULT_HISTORY_SIZE, GpuReader
from socstat.memory import RamReader
from socstat.models import Snapshot

logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 100


class StatsMonitor:
    """
    Sampler that collects CPU, GPU and RAM state once per interval.

    Runs in a separate daemon thread. Each pass reads CPU, then GPU, then RAM
    sequentially and publishes an immutable Snapshot, available through
    ``latest`` and, when a queue is given, pushed onto it.
    """

    def __init__(
        self,
        update_queue: Queue[Snapshot] | None = None,
        interval_ms: int = 1000,
        gpu_history_size: int = DEFAULT_HISTORY_SIZE,
        access: SysfsAccess | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the StatsMonitor.

        Args:
            update_queue: Optional thread-safe queue to push snapshots to.
            interval_ms: Delay between collection passes. Default 1000ms.
            gpu_history_size: Capacity of the GPU usage ring buffer.
            access: Sysfs accessor; defaults to the live system with su fallback.
            clock: Monotonic clock used for cache and throttle windows.
        """
        self._queue = update_queue
        self._interval_ms = max(MIN_INTERVAL_MS, interval_ms)
        self._access = access if access is not None else SysfsAccess()
        self._cpu = CpuReader(self._access, clock=clock)
        self._gpu = GpuReader(self._access, history_size=gpu_history_size, clock=clock)
        self._ram = RamReader(self._access)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._latest = Snapshot()

    @property
    def interval_ms(self) -> int:
        """Get the current sampling interval."""
        return self._interval_ms

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        """Set the sampling interval."""
        self._interval_ms = max(MIN_INTERVAL_MS, value)

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def latest(self) -> Snapshot:
        """Get the most recently published snapshot."""
        with self._lock:
            return self._latest

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="StatsMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.collect()
            except Exception:
                logger.exception("collection pass failed")

            self._stop_event.wait(timeout=self._interval_ms / 1000)

    def collect(self) -> Snapshot:
        """Run one collection pass and publish its snapshot."""
        snapshot = Snapshot(
            cpu=self._cpu.read(),
            gpu=self._gpu.read(),
            ram=self._ram.read(),
            timestamp=time.time(),
        )
        with self._lock:
            self._latest = snapshot
        if self._queue is not None:
            self._queue.put(snapshot)
        return snapshot

    def get_gpu_history(self) -> list[float]:
        """Get the GPU usage history for sparkline rendering."""
        return self._gpu.history
