from __future__ import annotations
import os
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

import psutil

from .errors import CounterUnavailable

CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq")

# Sensor chips that report per-core temperatures.
_CORE_TEMP_CHIPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal")
_CORE_LABEL = re.compile(r"core\s*(\d+)", re.IGNORECASE)


# ──────────────────────────────────────────────
# Raw counter records
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class CpuTicks:
    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0

    @property
    def total(self) -> float:
        return (self.user + self.nice + self.system + self.idle
                + self.iowait + self.irq + self.softirq)

    def as_tuple(self):
        return tuple(getattr(self, f) for f in CPU_FIELDS)


@dataclass(frozen=True)
class MemoryCounters:
    total: int
    free: int
    buffers: int = 0
    cached: int = 0
    swap_total: int = 0
    swap_used: int = 0


@dataclass(frozen=True)
class InterfaceCounters:
    name: str
    rx_bytes: int
    tx_bytes: int
    is_up: bool


@dataclass(frozen=True)
class Partition:
    device: str
    mountpoint: str
    fstype: str


@dataclass(frozen=True)
class DiskSpace:
    total: int
    used: int
    free: int


@dataclass(frozen=True)
class ProcessCounters:
    pid: int
    name: str
    create_time: float
    cpu_seconds: float          # user + system, cumulative
    rss_bytes: int
    read_bytes: Optional[int]   # None when /proc/<pid>/io is not readable
    write_bytes: Optional[int]


def _ticks(t) -> CpuTicks:
    return CpuTicks(**{f: float(getattr(t, f, 0.0) or 0.0) for f in CPU_FIELDS})


# ──────────────────────────────────────────────
# CounterReader – stateless, read-only view of OS counters
# ──────────────────────────────────────────────
class CounterReader:
    """
    Every method reads the OS afresh and keeps no state between calls.
    Samplers own all previous-sample bookkeeping.
    """

    def __init__(self, sys_class_net: str = "/sys/class/net"):
        self.sys_class_net = sys_class_net

    # ── cpu ───────────────────────────────────
    def logical_cores(self) -> int:
        return psutil.cpu_count(logical=True) or 1

    def cpu_ticks(self) -> CpuTicks:
        return _ticks(psutil.cpu_times(percpu=False))

    def per_core_ticks(self) -> List[CpuTicks]:
        return [_ticks(t) for t in psutil.cpu_times(percpu=True)]

    def cpu_temperatures(self) -> Dict[int, float]:
        """Core index -> °C. Empty when no sensor is exposed."""
        if not hasattr(psutil, "sensors_temperatures"):
            return {}
        try:
            chips = psutil.sensors_temperatures()
        except (OSError, RuntimeError):
            return {}
        out: Dict[int, float] = {}
        for chip in _CORE_TEMP_CHIPS:
            for entry in chips.get(chip, []):
                m = _CORE_LABEL.search(entry.label or "")
                if m and entry.current is not None:
                    out.setdefault(int(m.group(1)), float(entry.current))
        return out

    def cpu_frequencies(self) -> Dict[int, float]:
        """Core index -> MHz. Empty when cpufreq is not exposed."""
        try:
            freqs = psutil.cpu_freq(percpu=True) or []
        except (OSError, NotImplementedError, AttributeError):
            return {}
        return {i: float(f.current) for i, f in enumerate(freqs) if f and f.current}

    # ── memory ────────────────────────────────
    def memory(self) -> MemoryCounters:
        vm = psutil.virtual_memory()
        try:
            sw = psutil.swap_memory()
            swap_total, swap_used = int(sw.total), int(sw.used)
        except (OSError, RuntimeError):
            swap_total, swap_used = 0, 0
        return MemoryCounters(
            total=int(vm.total),
            free=int(vm.free),
            buffers=int(getattr(vm, "buffers", 0) or 0),
            cached=int(getattr(vm, "cached", 0) or 0),
            swap_total=swap_total,
            swap_used=swap_used,
        )

    # ── network ───────────────────────────────
    def interfaces(self) -> List[InterfaceCounters]:
        counters = psutil.net_io_counters(pernic=True)
        try:
            stats = psutil.net_if_stats()
        except OSError:
            stats = {}
        out = []
        for name, c in counters.items():
            st = stats.get(name)
            out.append(InterfaceCounters(
                name=name,
                rx_bytes=int(c.bytes_recv),
                tx_bytes=int(c.bytes_sent),
                is_up=bool(st.isup) if st is not None else False,
            ))
        return out

    def interface_kind(self, name: str) -> str:
        path = os.path.join(self.sys_class_net, name)
        if os.path.exists(os.path.join(path, "wireless")):
            return "wireless"
        if os.path.exists(os.path.join(path, "device")):
            return "ethernet"
        if name == "lo":
            return "loopback"
        return "unknown"

    # ── disks ─────────────────────────────────
    def partitions(self) -> List[Partition]:
        return [Partition(p.device, p.mountpoint, p.fstype)
                for p in psutil.disk_partitions(all=False)]

    def disk_space(self, mountpoint: str) -> DiskSpace:
        u = psutil.disk_usage(mountpoint)
        return DiskSpace(total=int(u.total), used=int(u.used), free=int(u.free))

    # ── processes ─────────────────────────────
    def processes(self) -> Iterator[ProcessCounters]:
        """
        Walk the process table. Processes that exit or deny access while
        being read are skipped: churn is normal.
        """
        for p in psutil.process_iter(["pid", "name"]):
            try:
                with p.oneshot():
                    ct = p.cpu_times()
                    mi = p.memory_info()
                    created = p.create_time()
                    try:
                        io = p.io_counters()
                        rd, wr = int(io.read_bytes), int(io.write_bytes)
                    except (psutil.AccessDenied, AttributeError, NotImplementedError):
                        rd, wr = None, None
                yield ProcessCounters(
                    pid=int(p.info["pid"]),
                    name=p.info.get("name") or "",
                    create_time=float(created),
                    cpu_seconds=float(ct.user + ct.system),
                    rss_bytes=int(mi.rss),
                    read_bytes=rd,
                    write_bytes=wr,
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

    # ── startup check ─────────────────────────
    def probe(self) -> None:
        """Raise CounterUnavailable unless CPU and memory counters read."""
        try:
            ticks = self.cpu_ticks()
        except (OSError, RuntimeError) as e:
            raise CounterUnavailable("cpu", str(e)) from e
        if ticks.total <= 0:
            raise CounterUnavailable("cpu", "all tick counters are zero")
        try:
            mem = self.memory()
        except (OSError, RuntimeError) as e:
            raise CounterUnavailable("memory", str(e)) from e
        if mem.total <= 0:
            raise CounterUnavailable("memory", "total memory reported as zero")
