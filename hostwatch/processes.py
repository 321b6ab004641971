from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .counters import CounterReader, ProcessCounters
from .models import ProcessTable, ProcessView
from .rates import RateStatus, RawCounterSample, cpu_percent, measure

log = logging.getLogger(__name__)

MB = 1024.0 * 1024.0


# ──────────────────────────────────────────────
# ProcessSampler – per-process CPU / memory / I/O
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class _Tracked:
    """Baseline for one process plus the rates last reported for it."""
    create_time: float
    sample: RawCounterSample            # (cpu_seconds, read_bytes, write_bytes)
    io_readable: bool
    cpu_rate: float = 0.0               # cpu-seconds per second
    read_bps: float = 0.0
    write_bps: float = 0.0
    io_mb: float = 0.0


class ProcessSampler:
    """
    Walks the process table each pass and derives per-process rates from
    the previous pass of *this* sampler, so elapsed time is the process
    loop's own interval.

    Baselines are keyed by PID and evicted as soon as a PID is missing
    from a pass. A PID whose start time changed is a new process. I/O
    rates start over whenever either side of the interval had no
    readable I/O counters.
    """

    def __init__(self, reader: CounterReader,
                 weight_cpu: float = 0.4, weight_memory: float = 0.4, weight_io: float = 0.2,
                 clock: Callable[[], float] = time.monotonic):
        self.reader = reader
        self.clock = clock
        self.weights = (weight_cpu, weight_memory, weight_io)
        self._cores = reader.logical_cores()
        self._prev: Dict[int, _Tracked] = {}

    def sample(self) -> List[ProcessView]:
        now = self.clock()
        try:
            total_mem = self.reader.memory().total
        except OSError:
            total_mem = 0

        rows: List[ProcessView] = []
        live: Dict[int, _Tracked] = {}
        for pc in self.reader.processes():
            tracked = self._track(pc, self._baseline(pc), now)
            live[pc.pid] = tracked
            rows.append(self._view(pc, tracked, total_mem))

        # swap rather than update: exited PIDs drop out here
        self._prev = live
        rows.sort(key=lambda r: r.score, reverse=True)
        return rows

    def _baseline(self, pc: ProcessCounters) -> Optional[_Tracked]:
        entry = self._prev.get(pc.pid)
        if entry is None or entry.create_time != pc.create_time:
            return None     # new, or PID reused
        return entry

    def _track(self, pc: ProcessCounters, prev: Optional[_Tracked], now: float) -> _Tracked:
        io_readable = pc.read_bytes is not None and pc.write_bytes is not None
        curr = RawCounterSample(
            pc.pid,
            (pc.cpu_seconds, pc.read_bytes or 0, pc.write_bytes or 0),
            now,
        )
        if prev is None:
            return _Tracked(pc.create_time, curr, io_readable)

        base = prev.sample
        cpu = measure(base, curr, 0, unchanged=prev.cpu_rate)
        if cpu.status is RateStatus.DEGENERATE:
            # nothing elapsed: report the last rates, keep the old baseline
            return prev

        read_bps = write_bps = io_mb = 0.0
        if io_readable and prev.io_readable:
            read_bps = measure(base, curr, 1).value
            write_bps = measure(base, curr, 2).value
            io_mb = (read_bps + write_bps) * (curr.ts - base.ts) / MB
        return _Tracked(pc.create_time, curr, io_readable,
                        cpu_rate=cpu.value, read_bps=read_bps, write_bps=write_bps, io_mb=io_mb)

    def _view(self, pc: ProcessCounters, t: _Tracked, total_mem: int) -> ProcessView:
        # process CPU time can accrue on every core at once
        cpu_pct = cpu_percent(t.cpu_rate, cores=self._cores)
        mem_pct = pc.rss_bytes * 100.0 / total_mem if total_mem > 0 else 0.0
        w_cpu, w_mem, w_io = self.weights
        return ProcessView(
            pid=pc.pid,
            name=pc.name,
            cpu_pct=cpu_pct,
            memory_mb=pc.rss_bytes / MB,
            memory_pct=mem_pct,
            read_bytes=pc.read_bytes or 0,
            write_bytes=pc.write_bytes or 0,
            read_bps=t.read_bps,
            write_bps=t.write_bps,
            score=w_cpu * cpu_pct + w_mem * mem_pct + w_io * t.io_mb,
        )

    def tracked_pids(self):
        return set(self._prev)


# ──────────────────────────────────────────────
# ProcessSamplingLoop – background cadence
# ──────────────────────────────────────────────
class ProcessSamplingLoop(threading.Thread):
    """
    Runs ProcessSampler on its own interval and publishes each completed
    pass as an immutable ProcessTable. Readers take the lock only to copy
    the reference out; the sampler never holds it while walking /proc.
    """

    def __init__(self, sampler: ProcessSampler, interval_s: float,
                 clock: Callable[[], float] = time.time):
        super().__init__(name="hostwatch-processes", daemon=True)
        self.sampler = sampler
        self.interval_s = interval_s
        self.clock = clock
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._table = ProcessTable()

    def latest(self) -> ProcessTable:
        with self._lock:
            return self._table

    def run_once(self) -> ProcessTable:
        rows = self.sampler.sample()
        table = ProcessTable(
            processes=tuple(rows),
            sequence=self._table.sequence + 1,
            sampled_at=self.clock(),
        )
        with self._lock:
            self._table = table
        return table

    def run(self):
        log.debug("process loop started (interval %.3fs)", self.interval_s)
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                log.exception("process sampling pass failed, keeping previous list")
            self._stop_event.wait(self.interval_s)
        log.debug("process loop stopped")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop and wait for it; returns within one interval."""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout if timeout is not None else self.interval_s + 5.0)

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()
