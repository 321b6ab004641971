"""
hostwatch – terminal palette and formatting primitives
"""
from __future__ import annotations

from typing import Optional

from rich.text import Text

# ──────────────────────────────────────────────
# Palette
# ──────────────────────────────────────────────
PALETTE = {
    "text_primary":  "#e2e6ec",
    "text_muted":    "#6b7280",
    "accent_cyan":   "#22d3ee",
    "accent_blue":   "#3b82f6",
    "accent_purple": "#a78bfa",
    "green":         "#22c55e",
    "yellow":        "#eab308",
    "orange":        "#f97316",
    "red":           "#ef4444",
}

PANEL_COLORS = {
    "cpu":       PALETTE["accent_cyan"],
    "memory":    PALETTE["accent_purple"],
    "disk":      PALETTE["accent_blue"],
    "network":   PALETTE["green"],
    "processes": PALETTE["yellow"],
    "gpu":       PALETTE["orange"],
    "log":       PALETTE["text_muted"],
    "alert":     PALETTE["red"],
}


# ──────────────────────────────────────────────
# Formatting helpers
# ──────────────────────────────────────────────
def fmt_bytes(n: float) -> str:
    units = ["B", "KB", "MB", "GB", "TB"]
    x = float(n)
    for u in units:
        if abs(x) < 1024.0:
            return f"{x:.1f} {u}"
        x /= 1024.0
    return f"{x:.1f} PB"

def fmt_bps(bps: Optional[float]) -> str:
    if bps is None:
        return "-"
    return fmt_bytes(bps) + "/s"

def fmt_opt(value: Optional[float], fmt: str = "{:.0f}", unit: str = "") -> str:
    """Render an optional reading; None means the sensor is not there."""
    if value is None:
        return "n/a"
    return fmt.format(value) + unit

def level_color(pct: float, warn: float = 60.0, crit: float = 85.0) -> str:
    if pct > crit:
        return PALETTE["red"]
    if pct > warn:
        return PALETTE["orange"]
    return PALETTE["accent_cyan"]

def bar(pct: float, width: int = 20, color: Optional[str] = None) -> Text:
    """Fixed-width horizontal gauge."""
    pct = max(0.0, min(100.0, pct))
    filled = int(round(pct / 100.0 * width))
    t = Text()
    t.append("█" * filled, style=color or level_color(pct))
    t.append("░" * (width - filled), style=PALETTE["text_muted"])
    return t
