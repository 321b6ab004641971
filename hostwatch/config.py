from __future__ import annotations
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional
import json
import logging

log = logging.getLogger(__name__)

APP_DIR = Path.home() / ".hostwatch"
CFG_PATH = APP_DIR / "config.json"
LOG_PATH = APP_DIR / "hostwatch.log"

@dataclass(frozen=True)
class AppConfig:
    # Cadences
    update_interval_ms: int = 2000
    process_interval_ms: int = 1000

    # Alert thresholds
    cpu_threshold_pct: float = 80.0
    memory_threshold_pct: float = 80.0
    disk_threshold_pct: float = 90.0
    gpu_temp_threshold_c: float = 80.0

    # Process ranking: heuristic weights for the top-N view, not a resource metric
    top_processes: int = 10
    rank_weight_cpu: float = 0.4
    rank_weight_memory: float = 0.4
    rank_weight_io: float = 0.2

    # Optional sources
    gpu_enabled: bool = True
    power_supply_path: str = "/sys/class/power_supply"

    # Log sink
    log_path: str = str(LOG_PATH)
    log_level: str = "INFO"

    @property
    def update_interval_s(self) -> float:
        return self.update_interval_ms / 1000.0

    @property
    def process_interval_s(self) -> float:
        return self.process_interval_ms / 1000.0

_POSITIVE = {"update_interval_ms", "process_interval_ms", "top_processes"}

def ensure_dirs() -> None:
    APP_DIR.mkdir(parents=True, exist_ok=True)

def _coerce(name: str, kind: str, value: Any) -> Any:
    """Return a value of the field's type or raise ValueError."""
    if kind == "bool":
        if isinstance(value, bool):
            return value
        raise ValueError(f"{name}: expected true/false")
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number")
    if kind == "int":
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{name}: expected an integer")
        v = int(value)
        if name in _POSITIVE and v <= 0:
            raise ValueError(f"{name}: must be positive")
        return v
    if kind == "float":
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"{name}: expected a string")
    return value

def from_mapping(data: Dict[str, Any]) -> AppConfig:
    """Build a config from a plain mapping; bad or unknown keys are dropped."""
    known: Dict[str, Any] = {}
    for f in fields(AppConfig):
        if f.name not in data:
            continue
        try:
            known[f.name] = _coerce(f.name, str(f.type), data[f.name])
        except (TypeError, ValueError) as e:
            log.warning("config: ignoring %s (%s), using default", f.name, e)
    return AppConfig(**known)

def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load the JSON config. A missing file at the default location is created
    with defaults; an unreadable or malformed file yields defaults and is
    left untouched.
    """
    if path is None:
        path = CFG_PATH
        if not path.exists():
            cfg = AppConfig()
            try:
                save_config(cfg)
            except OSError as e:
                log.warning("config: could not write defaults to %s: %s", path, e)
            return cfg
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        log.warning("config: %s unreadable (%s), using defaults", path, e)
        return AppConfig()
    if not isinstance(data, dict):
        log.warning("config: %s is not a JSON object, using defaults", path)
        return AppConfig()
    return from_mapping(data)

def save_config(cfg: AppConfig, path: Optional[Path] = None) -> None:
    if path is None:
        ensure_dirs()
        path = CFG_PATH
    Path(path).write_text(json.dumps(asdict(cfg), indent=2), encoding="utf-8")
