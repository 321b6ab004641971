"""
hostwatch – terminal dashboard

Pure consumer of SystemMonitor snapshots. The only state kept here is
the process-list scroll offset and the recent log lines; neither feeds
back into sampling.
"""
from __future__ import annotations

import datetime as _dt
import socket
from typing import Callable, List, Optional

from rich.console import Group
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..config import AppConfig
from ..models import AlertState, Available, ProcessView, Snapshot
from . import keys
from .widgets import (PALETTE, PANEL_COLORS, bar, fmt_bps, fmt_bytes, fmt_opt,
                      level_color)


class ScrollState:
    """Offset of the first visible process row; UI-only."""

    def __init__(self, page: int = 10):
        self.offset = 0
        self.page = page

    def scroll(self, delta: int, total: int) -> None:
        last = max(0, total - self.page)
        self.offset = max(0, min(last, self.offset + delta))

    def window(self, rows: List[ProcessView]) -> List[ProcessView]:
        self.scroll(0, len(rows))   # clamp after the list shrank
        return rows[self.offset:self.offset + self.page]


class Dashboard:
    def __init__(self, cfg: AppConfig, log_lines: Callable[[], List[str]] = list):
        self.cfg = cfg
        self.scroll = ScrollState(page=cfg.top_processes)
        self._log_lines = log_lines
        self._host = socket.gethostname()

    # ── input ─────────────────────────────────
    def handle_key(self, key: str, total_rows: int) -> bool:
        """Apply a key to UI state. Returns False when the user quit."""
        if key in ("q", "Q"):
            return False
        step = {keys.UP: -1, keys.DOWN: 1,
                keys.PAGE_UP: -self.scroll.page, keys.PAGE_DOWN: self.scroll.page}.get(key)
        if step is not None:
            self.scroll.scroll(step, total_rows)
        return True

    # ── render ────────────────────────────────
    def render(self, snap: Optional[Snapshot], alert: AlertState) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="log", size=12),
        )
        layout["header"].update(self._header(snap, alert))
        if snap is None:
            layout["body"].update(Panel(Text("waiting for first sample…")))
            layout["log"].update(self._log_panel())
            return layout

        body = Layout()
        body.split_row(Layout(name="left", ratio=2), Layout(name="right", ratio=3))
        body["left"].split_column(
            Layout(self._cpu_panel(snap), name="cpu", ratio=3),
            Layout(self._memory_panel(snap), name="memory", size=5),
            Layout(self._disk_panel(snap), name="disk", ratio=2),
        )
        body["right"].split_column(
            Layout(self._process_panel(snap), name="processes", ratio=3),
            Layout(self._network_panel(snap), name="network", ratio=2),
            Layout(self._devices_panel(snap), name="devices", ratio=1),
        )
        layout["body"].update(body)
        layout["log"].update(self._log_panel())
        return layout

    def _header(self, snap: Optional[Snapshot], alert: AlertState) -> Panel:
        now = _dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        seq = snap.sequence if snap else 0
        text = Text(f"{self._host} | {now} | pass #{seq} | q quit, ↑/↓ scroll")
        if alert.triggered:
            return Panel(Text(alert.summary, style="bold white"),
                         style=f"on {PALETTE['red']}", border_style=PANEL_COLORS["alert"])
        return Panel(text, border_style=PALETTE["accent_cyan"])

    def _cpu_panel(self, snap: Snapshot) -> Panel:
        cpu = snap.cpu
        t = Table(expand=True, box=None, show_header=True)
        t.add_column("Core", justify="right")
        t.add_column("Usage", justify="right")
        t.add_column("Bar", ratio=3)
        t.add_column("Temp", justify="right")
        t.add_column("MHz", justify="right")
        t.add_row("All", f"{cpu.usage_pct:.1f}%", bar(cpu.usage_pct), "", "")
        for c in cpu.cores:
            t.add_row(str(c.index), f"{c.usage_pct:.1f}%", bar(c.usage_pct),
                      fmt_opt(c.temperature_c, unit="°C"), fmt_opt(c.frequency_mhz))
        return Panel(t, title=f"CPU ({cpu.logical_cores} logical)",
                     border_style=PANEL_COLORS["cpu"])

    def _memory_panel(self, snap: Snapshot) -> Panel:
        m = snap.memory
        t = Table(expand=True, box=None, show_header=False)
        t.add_column("Kind")
        t.add_column("Usage")
        t.add_column("Bar", ratio=3)
        t.add_row("RAM", f"{m.usage_pct:.1f}% ({fmt_bytes(m.used_bytes)}/{fmt_bytes(m.total_bytes)})",
                  bar(m.usage_pct))
        if m.swap_total_bytes > 0:
            t.add_row("Swap", f"{m.swap_pct:.1f}%", bar(m.swap_pct))
        return Panel(t, title="Memory", border_style=PANEL_COLORS["memory"])

    def _disk_panel(self, snap: Snapshot) -> Panel:
        t = Table(expand=True, box=None)
        t.add_column("Mount")
        t.add_column("Size", justify="right")
        t.add_column("Free", justify="right")
        t.add_column("Usage", ratio=2)
        for p in snap.disk.partitions:
            t.add_row(p.mountpoint, fmt_bytes(p.total_bytes), fmt_bytes(p.free_bytes),
                      bar(p.usage_pct, color=level_color(p.usage_pct, 75.0, self.cfg.disk_threshold_pct)))
        return Panel(t, title="Disks", border_style=PANEL_COLORS["disk"])

    def _process_panel(self, snap: Snapshot) -> Panel:
        rows = list(snap.processes.processes)
        t = Table(expand=True, box=None)
        t.add_column("PID", justify="right")
        t.add_column("Name")
        t.add_column("CPU%", justify="right")
        t.add_column("Mem", justify="right")
        t.add_column("Read", justify="right")
        t.add_column("Write", justify="right")
        t.add_column("Score", justify="right")
        for p in self.scroll.window(rows):
            t.add_row(
                str(p.pid),
                p.name[:24],
                Text(f"{p.cpu_pct:.1f}", style=level_color(p.cpu_pct)),
                f"{p.memory_mb:.1f} MB",
                fmt_bps(p.read_bps),
                fmt_bps(p.write_bps),
                f"{p.score:.1f}",
            )
        first = self.scroll.offset + 1 if rows else 0
        last = min(len(rows), self.scroll.offset + self.scroll.page)
        return Panel(t, title=f"Processes {first}-{last} of {len(rows)}",
                     border_style=PANEL_COLORS["processes"])

    def _network_panel(self, snap: Snapshot) -> Panel:
        t = Table(expand=True, box=None)
        t.add_column("Interface")
        t.add_column("Type")
        t.add_column("↓", justify="right")
        t.add_column("↑", justify="right")
        t.add_column("Max ↓", justify="right")
        t.add_column("Max ↑", justify="right")
        for n in snap.network:
            if not n.reported:
                continue
            t.add_row(n.name, n.kind, fmt_bps(n.download_bps), fmt_bps(n.upload_bps),
                      fmt_bps(n.max_download_bps), fmt_bps(n.max_upload_bps))
        return Panel(t, title="Network", border_style=PANEL_COLORS["network"])

    def _devices_panel(self, snap: Snapshot) -> Panel:
        parts = []
        if isinstance(snap.gpu, Available):
            for g in snap.gpu.value:
                parts.append(Text(
                    f"GPU{g.index} {g.name}: {fmt_opt(g.temperature_c, unit='°C')} "
                    f"util {fmt_opt(g.gpu_util_pct, unit='%')} "
                    f"mem {fmt_opt(g.memory_util_pct, unit='%')} "
                    f"power {fmt_opt(g.power_w, '{:.1f}', 'W')} "
                    f"fan {fmt_opt(g.fan_pct, unit='%')}"
                ))
        else:
            parts.append(Text(f"GPU: {snap.gpu.reason}", style=PALETTE["text_muted"]))
        if isinstance(snap.battery, Available):
            b = snap.battery.value
            parts.append(Text(f"Battery: {b.state} {fmt_opt(b.percent, '{:.0f}', '%')} "
                              f"({b.time_left} left)"))
        else:
            parts.append(Text(f"Battery: {snap.battery.reason}", style=PALETTE["text_muted"]))
        return Panel(Group(*parts), title="Devices", border_style=PANEL_COLORS["gpu"])

    def _log_panel(self) -> Panel:
        lines = self._log_lines()
        return Panel(Text("\n".join(lines)), title="Log", border_style=PANEL_COLORS["log"])
