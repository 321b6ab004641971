from __future__ import annotations
from dataclasses import dataclass, field
from typing import Generic, Optional, Tuple, TypeVar, Union

T = TypeVar("T")


# ──────────────────────────────────────────────
# Optional sources
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class Unavailable:
    reason: str

    @property
    def available(self) -> bool:
        return False


@dataclass(frozen=True)
class Available(Generic[T]):
    value: T

    @property
    def available(self) -> bool:
        return True


Optionally = Union[Unavailable, Available[T]]


# ──────────────────────────────────────────────
# Metric views
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class CoreView:
    index: int
    usage_pct: float
    temperature_c: Optional[float] = None   # None: no sensor
    frequency_mhz: Optional[float] = None


@dataclass(frozen=True)
class CpuView:
    usage_pct: float
    logical_cores: int
    cores: Tuple[CoreView, ...] = ()


@dataclass(frozen=True)
class MemoryView:
    total_bytes: int
    used_bytes: int
    usage_pct: float
    swap_total_bytes: int = 0
    swap_used_bytes: int = 0

    @property
    def swap_pct(self) -> float:
        if self.swap_total_bytes <= 0:
            return 0.0
        return self.swap_used_bytes * 100.0 / self.swap_total_bytes


@dataclass(frozen=True)
class PartitionView:
    device: str
    mountpoint: str
    fstype: str
    total_bytes: int
    used_bytes: int
    free_bytes: int
    usage_pct: float


@dataclass(frozen=True)
class DiskView:
    partitions: Tuple[PartitionView, ...]
    usage_pct: float    # root filesystem, or the fullest partition without one


@dataclass(frozen=True)
class InterfaceView:
    name: str
    kind: str               # ethernet | wireless | loopback | unknown
    is_up: bool
    rx_bytes: int
    tx_bytes: int
    download_bps: Optional[float]   # None: excluded from rate reporting
    upload_bps: Optional[float]
    max_download_bps: float = 0.0
    max_upload_bps: float = 0.0

    @property
    def reported(self) -> bool:
        return self.download_bps is not None


@dataclass(frozen=True)
class ProcessView:
    pid: int
    name: str
    cpu_pct: float
    memory_mb: float
    memory_pct: float
    read_bytes: int
    write_bytes: int
    read_bps: float
    write_bps: float
    score: float


@dataclass(frozen=True)
class ProcessTable:
    """One completed pass of the process sampling loop."""
    processes: Tuple[ProcessView, ...] = ()
    sequence: int = 0
    sampled_at: float = 0.0


@dataclass(frozen=True)
class GpuView:
    index: int
    name: str
    temperature_c: Optional[float]
    power_w: Optional[float]
    fan_pct: Optional[float]
    gpu_util_pct: Optional[float]
    memory_util_pct: Optional[float]


@dataclass(frozen=True)
class BatteryView:
    state: str                      # Charging | Discharging | Full | ...
    percent: Optional[float]
    seconds_left: Optional[float]   # only while discharging with positive draw

    @property
    def time_left(self) -> str:
        if self.seconds_left is None:
            return "N/A"
        minutes = int(self.seconds_left // 60)
        return f"{minutes // 60}h {minutes % 60}m"


# ──────────────────────────────────────────────
# Snapshot / alerts
# ──────────────────────────────────────────────
@dataclass(frozen=True)
class AlertState:
    triggered: bool = False
    messages: Tuple[str, ...] = ()

    @property
    def summary(self) -> str:
        if not self.triggered:
            return ""
        return "Alert triggered: " + "; ".join(self.messages)


@dataclass(frozen=True)
class Snapshot:
    sequence: int
    captured_at: float
    cpu: CpuView
    memory: MemoryView
    disk: DiskView
    network: Tuple[InterfaceView, ...]
    processes: ProcessTable
    gpu: Optionally[Tuple[GpuView, ...]] = field(default_factory=lambda: Unavailable("not sampled"))
    battery: Optionally[BatteryView] = field(default_factory=lambda: Unavailable("not sampled"))
