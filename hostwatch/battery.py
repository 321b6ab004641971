from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from .models import Available, BatteryView, Optionally, Unavailable

log = logging.getLogger(__name__)

NO_BATTERY = Unavailable("No Battery")


def find_battery(power_supply: Path) -> Optional[Path]:
    """First power_supply entry of type Battery (BAT0, BAT1, ...)."""
    try:
        entries = sorted(power_supply.iterdir())
    except OSError:
        return None
    for entry in entries:
        kind = _read(entry / "type")
        if kind == "Battery" or (kind is None and entry.name.startswith("BAT")):
            return entry
    return None


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return None


def _read_number(path: Path) -> Optional[float]:
    raw = _read(path)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class BatterySampler:
    """
    Battery state from sysfs. Device presence is checked once: a machine
    without a battery reports NO_BATTERY for the whole run.

    Energy is read in µWh/µW when the driver exposes energy_*/power_*,
    and in µAh/µA (charge_*/current_*) otherwise. Units cancel in both
    the percentage and the hours-left estimate.
    """

    def __init__(self, power_supply: str = "/sys/class/power_supply"):
        self.device = find_battery(Path(power_supply))

    @property
    def present(self) -> bool:
        return self.device is not None

    def sample(self) -> Optionally[BatteryView]:
        if self.device is None:
            return NO_BATTERY
        dev = self.device
        state = _read(dev / "status") or "Unknown"

        now = _read_number(dev / "energy_now")
        full = _read_number(dev / "energy_full")
        draw = _read_number(dev / "power_now")
        if now is None or full is None:
            now = _read_number(dev / "charge_now")
            full = _read_number(dev / "charge_full")
            draw = _read_number(dev / "current_now")

        if now is not None and full:
            percent: Optional[float] = min(100.0, now * 100.0 / full)
        else:
            percent = _read_number(dev / "capacity")

        seconds_left = None
        if state == "Discharging" and now is not None and draw is not None and draw > 0:
            seconds_left = now / draw * 3600.0

        return Available(BatteryView(state=state, percent=percent, seconds_left=seconds_left))
