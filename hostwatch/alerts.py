from __future__ import annotations
from typing import List

from .config import AppConfig
from .models import AlertState, Available, Snapshot


class AlertEvaluator:
    """
    Level-triggered threshold checks. Every call starts from scratch: no
    history, no hysteresis, so a metric sitting above its limit alerts on
    every pass.
    """

    def __init__(self, cfg: AppConfig):
        self.cfg = cfg

    def evaluate(self, snap: Snapshot) -> AlertState:
        cfg = self.cfg
        exceeded: List[str] = []

        if snap.cpu.usage_pct > cfg.cpu_threshold_pct:
            exceeded.append(f"CPU={snap.cpu.usage_pct:.1f}% (limit {cfg.cpu_threshold_pct:.1f}%)")
        if snap.memory.usage_pct > cfg.memory_threshold_pct:
            exceeded.append(f"Memory={snap.memory.usage_pct:.1f}% (limit {cfg.memory_threshold_pct:.1f}%)")
        if snap.disk.usage_pct > cfg.disk_threshold_pct:
            exceeded.append(f"Disk={snap.disk.usage_pct:.1f}% (limit {cfg.disk_threshold_pct:.1f}%)")

        if isinstance(snap.gpu, Available):
            for g in snap.gpu.value:
                if g.temperature_c is not None and g.temperature_c > cfg.gpu_temp_threshold_c:
                    exceeded.append(f"GPU{g.index} temp={g.temperature_c:.0f}C "
                                    f"(limit {cfg.gpu_temp_threshold_c:.0f}C)")

        return AlertState(triggered=bool(exceeded), messages=tuple(exceeded))
