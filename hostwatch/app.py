from __future__ import annotations
import argparse
import dataclasses
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.live import Live

from .config import AppConfig, load_config
from .errors import StartupError
from .logsink import RecentLogHandler, setup_logging
from .monitor import SystemMonitor
from .ui.dashboard import Dashboard
from .ui.keys import KeyReader

log = logging.getLogger(__name__)

__version__ = "0.3.0"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hostwatch", description="Terminal host telemetry dashboard.")
    p.add_argument("--config", type=Path, default=None, help="JSON config file (default ~/.hostwatch/config.json)")
    p.add_argument("--log-file", default=None, help="log file path (overrides config)")
    p.add_argument("--update-interval-ms", type=int, default=None)
    p.add_argument("--process-interval-ms", type=int, default=None)
    p.add_argument("--no-gpu", action="store_true", help="disable GPU monitoring")
    p.add_argument("--once", action="store_true", help="print one snapshot and exit")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def resolve_config(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    overrides = {}
    if args.log_file:
        overrides["log_path"] = args.log_file
    if args.update_interval_ms and args.update_interval_ms > 0:
        overrides["update_interval_ms"] = args.update_interval_ms
    if args.process_interval_ms and args.process_interval_ms > 0:
        overrides["process_interval_ms"] = args.process_interval_ms
    if args.no_gpu:
        overrides["gpu_enabled"] = False
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


def run_dashboard(monitor: SystemMonitor, dashboard: Dashboard, cfg: AppConfig) -> None:
    """Main cadence: one monitor.update() per interval, redraw on update or key."""
    console = Console()
    interval = cfg.update_interval_s
    next_update = time.monotonic() + interval
    with Live(console=console, screen=True, auto_refresh=False) as live, KeyReader() as keys:
        dirty = True
        while True:
            if dirty:
                snap, alert = monitor.current() or (None, monitor.alert_state())
                live.update(dashboard.render(snap, alert), refresh=True)
                dirty = False

            key = keys.read(timeout=max(0.0, min(0.1, next_update - time.monotonic())))
            if key is not None:
                snap = monitor.snapshot()
                total = len(snap.processes.processes) if snap else 0
                if not dashboard.handle_key(key, total):
                    return
                dirty = True

            if time.monotonic() >= next_update:
                monitor.update()
                next_update = time.monotonic() + interval
                dirty = True


def run_once(monitor: SystemMonitor, dashboard: Dashboard, cfg: AppConfig) -> None:
    # rates need two passes
    time.sleep(min(cfg.update_interval_s, cfg.process_interval_s))
    monitor.process_loop.run_once()
    monitor.update()
    snap, alert = monitor.current()
    Console().print(dashboard.render(snap, alert))


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = resolve_config(args)
    logger = setup_logging(cfg.log_path, cfg.log_level)
    recent = RecentLogHandler(capacity=10)
    logger.addHandler(recent)

    monitor = SystemMonitor(cfg)
    dashboard = Dashboard(cfg, log_lines=recent.lines)
    try:
        monitor.start(background=not args.once)
    except StartupError as e:
        print(f"hostwatch: cannot start: {e}", file=sys.stderr)
        monitor.gpu.close()
        return 1

    try:
        if args.once:
            run_once(monitor, dashboard, cfg)
        else:
            run_dashboard(monitor, dashboard, cfg)
    except KeyboardInterrupt:
        log.info("interrupted")
    finally:
        monitor.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
