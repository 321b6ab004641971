from __future__ import annotations
import logging
import threading
import time
from typing import Callable, Optional, Set, Tuple

from .alerts import AlertEvaluator
from .battery import BatterySampler
from .collectors import CpuSampler, DiskSampler, MemorySampler, NetworkSampler
from .config import AppConfig
from .counters import CounterReader
from .errors import CounterUnavailable, StartupError
from .gpu import GpuSampler
from .models import AlertState, Available, DiskView, MemoryView, Snapshot, Unavailable
from .processes import ProcessSampler, ProcessSamplingLoop

log = logging.getLogger(__name__)

TOP_LOGGED = 5


class SystemMonitor:
    """
    Main-cadence aggregator.

    Each update() runs every enabled sampler, builds one immutable
    Snapshot, evaluates alerts against it and publishes the pair with a
    single reference swap. Process rows come from the background
    ProcessSamplingLoop's latest table; this class never waits for it.
    """

    def __init__(self, cfg: AppConfig, reader: Optional[CounterReader] = None,
                 gpu: Optional[GpuSampler] = None, battery: Optional[BatterySampler] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time):
        self.cfg = cfg
        self.reader = reader if reader is not None else CounterReader()
        self.wall_clock = wall_clock

        self.cpu = CpuSampler(self.reader)
        self.memory = MemorySampler(self.reader)
        self.disk = DiskSampler(self.reader)
        self.network = NetworkSampler(self.reader, clock=clock)
        self.process_loop = ProcessSamplingLoop(
            ProcessSampler(self.reader,
                           weight_cpu=cfg.rank_weight_cpu,
                           weight_memory=cfg.rank_weight_memory,
                           weight_io=cfg.rank_weight_io,
                           clock=clock),
            cfg.process_interval_s,
            clock=wall_clock,
        )
        self.gpu = gpu if gpu is not None else GpuSampler(enabled=cfg.gpu_enabled)
        self.battery = battery if battery is not None else BatterySampler(cfg.power_supply_path)
        self.alerts = AlertEvaluator(cfg)

        self._lock = threading.Lock()
        self._published: Optional[Tuple[Snapshot, AlertState]] = None
        self._sequence = 0
        self._notified: Set[str] = set()
        self._degraded: Set[str] = set()
        self._running = False
        self._stopped = False

    # ── lifecycle ─────────────────────────────
    def start(self, background: bool = True) -> Snapshot:
        """
        Verify counters, start the process loop and run the first pass.
        Raises StartupError when the host's counters cannot be read.

        A monitor runs once: stop() ends its process thread and releases
        NVML, so a stopped monitor refuses to start again.
        """
        if self._stopped:
            raise StartupError("monitor already stopped; create a new SystemMonitor")
        if self._running:
            return self.update()
        try:
            self.reader.probe()
        except CounterUnavailable as e:
            log.error("startup failed: %s", e)
            raise StartupError(str(e)) from e

        if background:
            self.process_loop.start()
        else:
            self.process_loop.run_once()
        self._running = True
        log.info("System Monitor started")
        return self.update()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._stopped = True
        self.process_loop.stop()
        self.gpu.close()
        log.info("System Monitor stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ── renderer / logger side ────────────────
    def current(self) -> Optional[Tuple[Snapshot, AlertState]]:
        with self._lock:
            return self._published

    def snapshot(self) -> Optional[Snapshot]:
        pub = self.current()
        return pub[0] if pub else None

    def alert_state(self) -> AlertState:
        pub = self.current()
        return pub[1] if pub else AlertState()

    def is_gpu_available(self) -> bool:
        return self.gpu.available

    # ── one aggregation pass ──────────────────
    def update(self) -> Snapshot:
        prev = self.snapshot()

        cpu = self.cpu.sample()
        memory = self._guarded("memory", self.memory.sample,
                               prev.memory if prev else MemoryView(0, 0, 0.0))
        disk = self._guarded("disk", self.disk.sample,
                             prev.disk if prev else DiskView((), 0.0))
        network = self.network.sample()
        processes = self.process_loop.latest()

        gpu = self.gpu.sample()
        if isinstance(gpu, Unavailable):
            self._notice_once("gpu", logging.WARNING, "GPU unavailable: %s", gpu.reason)
        battery = self.battery.sample()
        if isinstance(battery, Unavailable):
            self._notice_once("battery", logging.INFO, "Battery: %s", battery.reason)

        self._sequence += 1
        snap = Snapshot(
            sequence=self._sequence,
            captured_at=self.wall_clock(),
            cpu=cpu,
            memory=memory,
            disk=disk,
            network=network,
            processes=processes,
            gpu=gpu,
            battery=battery,
        )
        alert = self.alerts.evaluate(snap)
        with self._lock:
            self._published = (snap, alert)

        self._log_pass(snap, alert)
        return snap

    def _guarded(self, source: str, fn, fallback):
        try:
            value = fn()
        except OSError as e:
            if source not in self._degraded:
                log.warning("%s counters unreadable, holding last value: %s", source, e)
                self._degraded.add(source)
            return fallback
        if source in self._degraded:
            log.info("%s counters readable again", source)
            self._degraded.discard(source)
        return value

    def _notice_once(self, key: str, level: int, msg: str, *args) -> None:
        if key in self._notified:
            return
        self._notified.add(key)
        log.log(level, msg, *args)

    def _log_pass(self, snap: Snapshot, alert: AlertState) -> None:
        log.info("System update: CPU=%.1f%%, Memory=%.1f%%, Disk=%.1f%%",
                 snap.cpu.usage_pct, snap.memory.usage_pct, snap.disk.usage_pct)
        for i, p in enumerate(snap.processes.processes[:TOP_LOGGED], 1):
            log.info("Top Process %d: %s (PID: %d) CPU: %.1f%%, Mem: %.1f MB",
                     i, p.name, p.pid, p.cpu_pct, p.memory_mb)
        if isinstance(snap.gpu, Available):
            for g in snap.gpu.value:
                log.info("GPU %d: %s Temp: %s Util: %s Mem: %s", g.index, g.name,
                         _fmt(g.temperature_c, "C"), _fmt(g.gpu_util_pct, "%"),
                         _fmt(g.memory_util_pct, "%"))
        if alert.triggered:
            log.warning("%s", alert.summary)


def _fmt(value: Optional[float], unit: str) -> str:
    return "n/a" if value is None else f"{value:.0f}{unit}"
