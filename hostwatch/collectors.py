from __future__ import annotations
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from .counters import CounterReader, CpuTicks, InterfaceCounters
from .models import CoreView, CpuView, DiskView, InterfaceView, MemoryView, PartitionView
from .rates import (CounterReset, DegenerateInterval, RateStatus, RawCounterSample,
                    delta_ratio, measure)

log = logging.getLogger(__name__)

Clock = Callable[[], float]

# Pseudo filesystems never reported as disks.
VIRTUAL_FSTYPES = frozenset({
    "tmpfs", "devtmpfs", "proc", "sysfs", "devpts", "cgroup", "cgroup2",
    "debugfs", "tracefs", "securityfs", "pstore", "bpf", "configfs",
    "fusectl", "hugetlbfs", "mqueue", "autofs", "ramfs", "overlay", "squashfs",
})

RATE_KINDS = ("ethernet", "wireless")


def utilisation(prev: Optional[CpuTicks], curr: CpuTicks, last: float = 0.0) -> float:
    """
    100 * (1 - idleDelta / totalDelta).

    First observation and counter resets give 0.0; a pass with no elapsed
    ticks gives `last` unchanged.
    """
    if prev is None:
        return 0.0
    try:
        idle = delta_ratio(prev.idle, prev.total, curr.idle, curr.total)
    except CounterReset:
        return 0.0
    except DegenerateInterval:
        return last
    return max(0.0, min(100.0, (1.0 - idle) * 100.0))


# ──────────────────────────────────────────────
# CPU
# ──────────────────────────────────────────────
class CpuSampler:
    """
    Ratio-of-deltas utilisation, system-wide and per core.

    A counter read failure is logged once and the last view is returned
    unchanged until reads succeed again.
    """

    def __init__(self, reader: CounterReader):
        self.reader = reader
        self._cores = reader.logical_cores()
        self._prev_total: Optional[CpuTicks] = None
        self._prev_cores: Dict[int, CpuTicks] = {}
        self._last_core_pct: Dict[int, float] = {}
        self._last_view = CpuView(usage_pct=0.0, logical_cores=self._cores)
        self._failing = False

    def sample(self) -> CpuView:
        try:
            total = self.reader.cpu_ticks()
            per_core = self.reader.per_core_ticks()
        except OSError as e:
            if not self._failing:
                log.warning("CPU counters unreadable, holding last value: %s", e)
                self._failing = True
            return self._last_view
        if self._failing:
            log.info("CPU counters readable again")
            self._failing = False

        usage = utilisation(self._prev_total, total, self._last_view.usage_pct)
        self._prev_total = total

        temps = self.reader.cpu_temperatures()
        freqs = self.reader.cpu_frequencies()
        cores: List[CoreView] = []
        for idx, ticks in enumerate(per_core):
            pct = utilisation(self._prev_cores.get(idx), ticks,
                              self._last_core_pct.get(idx, 0.0))
            self._prev_cores[idx] = ticks
            self._last_core_pct[idx] = pct
            cores.append(CoreView(
                index=idx,
                usage_pct=pct,
                temperature_c=temps.get(idx),
                frequency_mhz=freqs.get(idx),
            ))
        for idx in list(self._prev_cores):
            if idx >= len(per_core):
                del self._prev_cores[idx]
                self._last_core_pct.pop(idx, None)

        self._last_view = CpuView(usage_pct=usage, logical_cores=self._cores,
                                  cores=tuple(cores))
        return self._last_view

    @property
    def tracked_cores(self) -> int:
        return len(self._prev_cores)


# ──────────────────────────────────────────────
# Memory
# ──────────────────────────────────────────────
class MemorySampler:
    """Point-in-time: used = total - free - buffers - cached."""

    def __init__(self, reader: CounterReader):
        self.reader = reader

    def sample(self) -> MemoryView:
        m = self.reader.memory()
        used = max(0, m.total - m.free - m.buffers - m.cached)
        pct = used * 100.0 / m.total if m.total > 0 else 0.0
        return MemoryView(
            total_bytes=m.total,
            used_bytes=used,
            usage_pct=pct,
            swap_total_bytes=m.swap_total,
            swap_used_bytes=m.swap_used,
        )


# ──────────────────────────────────────────────
# Disk
# ──────────────────────────────────────────────
class DiskSampler:
    """Per-partition space ratios. No previous state: not a rate."""

    def __init__(self, reader: CounterReader):
        self.reader = reader

    def sample(self) -> DiskView:
        rows: List[PartitionView] = []
        seen_mounts = set()
        try:
            parts = self.reader.partitions()
        except OSError as e:
            log.debug("disk: partition table unreadable: %s", e)
            parts = []
        for part in parts:
            if part.fstype in VIRTUAL_FSTYPES or part.mountpoint in seen_mounts:
                continue
            try:
                space = self.reader.disk_space(part.mountpoint)
            except OSError as e:
                log.debug("disk: skipping %s: %s", part.mountpoint, e)
                continue
            if space.total <= 0:
                continue
            seen_mounts.add(part.mountpoint)
            rows.append(PartitionView(
                device=part.device,
                mountpoint=part.mountpoint,
                fstype=part.fstype,
                total_bytes=space.total,
                used_bytes=space.used,
                free_bytes=space.free,
                usage_pct=space.used * 100.0 / space.total,
            ))

        root = next((r for r in rows if r.mountpoint == "/"), None)
        if root is not None:
            usage = root.usage_pct
        else:
            usage = max((r.usage_pct for r in rows), default=0.0)
        return DiskView(partitions=tuple(rows), usage_pct=usage)


# ──────────────────────────────────────────────
# Network
# ──────────────────────────────────────────────
class NetworkSampler:
    """
    Download/upload rate per active ethernet or wireless interface.

    Per-interface peaks are high-water marks for the life of the process
    and survive the interface disappearing; byte-counter baselines do not.
    """

    def __init__(self, reader: CounterReader, clock: Clock = time.monotonic):
        self.reader = reader
        self.clock = clock
        self._prev: Dict[str, RawCounterSample] = {}
        self._last: Dict[str, Tuple[float, float]] = {}
        self._peaks: Dict[str, Tuple[float, float]] = {}
        self._kinds: Dict[str, str] = {}

    def _kind(self, name: str) -> str:
        kind = self._kinds.get(name)
        if kind is None:
            kind = self._kinds[name] = self.reader.interface_kind(name)
        return kind

    def sample(self) -> Tuple[InterfaceView, ...]:
        now = self.clock()
        try:
            ifaces = self.reader.interfaces()
        except OSError as e:
            log.debug("network: counters unreadable: %s", e)
            ifaces = []

        views: List[InterfaceView] = []
        seen = set()
        for nic in ifaces:
            seen.add(nic.name)
            kind = self._kind(nic.name)
            if not (nic.is_up and kind in RATE_KINDS):
                self._forget(nic.name)
                views.append(self._view(nic, kind, None, None))
                continue

            curr = RawCounterSample(nic.name, (nic.rx_bytes, nic.tx_bytes), now)
            prev = self._prev.get(nic.name)
            last_down, last_up = self._last.get(nic.name, (0.0, 0.0))
            down = measure(prev, curr, 0, unchanged=last_down)
            up = measure(prev, curr, 1, unchanged=last_up)
            if down.status is not RateStatus.DEGENERATE:
                self._prev[nic.name] = curr
            self._last[nic.name] = (down.value, up.value)

            max_down, max_up = self._peaks.get(nic.name, (0.0, 0.0))
            self._peaks[nic.name] = (max(max_down, down.value), max(max_up, up.value))
            views.append(self._view(nic, kind, down.value, up.value))

        for name in list(self._kinds):
            if name not in seen:
                self._forget(name)
                del self._kinds[name]
        return tuple(views)

    def _forget(self, name: str) -> None:
        self._prev.pop(name, None)
        self._last.pop(name, None)

    def _view(self, nic: InterfaceCounters, kind: str,
              down: Optional[float], up: Optional[float]) -> InterfaceView:
        max_down, max_up = self._peaks.get(nic.name, (0.0, 0.0))
        return InterfaceView(
            name=nic.name,
            kind=kind,
            is_up=nic.is_up,
            rx_bytes=nic.rx_bytes,
            tx_bytes=nic.tx_bytes,
            download_bps=down,
            upload_bps=up,
            max_download_bps=max_down,
            max_upload_bps=max_up,
        )

    @property
    def tracked(self) -> Tuple[str, ...]:
        return tuple(self._prev)
