from __future__ import annotations

import logging

import pytest

from hostwatch.battery import NO_BATTERY, BatterySampler
from hostwatch.gpu import GpuSampler
from hostwatch.models import Available, Unavailable
from tests.helpers.fakes import FakeNVMLError, FakeNvml


# ── gpu ───────────────────────────────────────
def test_gpu_init_failure_is_permanent():
    nvml = FakeNvml(init_error=FakeNVMLError("driver not loaded"))
    gpu = GpuSampler(nvml=nvml)
    assert gpu.available is False
    for _ in range(10):
        assert isinstance(gpu.sample(), Unavailable)
    assert nvml.init_calls == 1


def test_device_count_failure_shuts_nvml_down():
    nvml = FakeNvml(count_error=FakeNVMLError("GPU is lost"))
    gpu = GpuSampler(nvml=nvml)
    assert not gpu.available
    assert "GPU is lost" in gpu.unavailable_reason
    assert nvml.shutdown_calls == 1
    gpu.close()
    assert nvml.shutdown_calls == 1


def test_gpu_disabled_never_touches_nvml():
    nvml = FakeNvml()
    gpu = GpuSampler(nvml=nvml, enabled=False)
    assert not gpu.available
    assert nvml.init_calls == 0


def test_gpu_reads_devices():
    nvml = FakeNvml(devices=[
        {"name": b"GeForce RTX", "temp": 65, "power_mw": 120_500, "fan": 40, "util": (90, 30)},
    ])
    gpu = GpuSampler(nvml=nvml)
    out = gpu.sample()
    assert isinstance(out, Available)
    (g,) = out.value
    assert g.name == "GeForce RTX"
    assert g.temperature_c == 65.0
    assert g.power_w == pytest.approx(120.5)
    assert g.fan_pct == 40.0
    assert (g.gpu_util_pct, g.memory_util_pct) == (90.0, 30.0)


def test_missing_fan_reported_as_none_and_logged_once(caplog):
    nvml = FakeNvml(devices=[{"name": "A100", "temp": 50, "power_mw": 1000, "util": (1, 1)}])
    gpu = GpuSampler(nvml=nvml)
    with caplog.at_level(logging.WARNING, logger="hostwatch"):
        for _ in range(5):
            (g,) = gpu.sample().value
            assert g.fan_pct is None
    assert sum("fan speed unavailable" in r.message for r in caplog.records) == 1


def test_unreadable_device_skipped_for_the_pass():
    nvml = FakeNvml(devices=[{"temp": 50}, {"name": "ok", "temp": 40, "util": (0, 0)}])
    (g,) = GpuSampler(nvml=nvml).sample().value
    assert g.name == "ok"


def test_close_shuts_nvml_down_once():
    nvml = FakeNvml()
    gpu = GpuSampler(nvml=nvml)
    gpu.close()
    gpu.close()
    assert nvml.shutdown_calls == 1
    assert not gpu.available


# ── battery ───────────────────────────────────
def make_battery(root, **files):
    bat = root / "BAT0"
    bat.mkdir(parents=True)
    (bat / "type").write_text("Battery\n")
    for name, value in files.items():
        (bat / name).write_text(f"{value}\n")
    return bat


def test_no_battery_device(tmp_path):
    (tmp_path / "AC").mkdir()
    (tmp_path / "AC" / "type").write_text("Mains\n")
    b = BatterySampler(str(tmp_path))
    assert not b.present
    assert b.sample() is NO_BATTERY
    assert b.sample().reason == "No Battery"


def test_missing_power_supply_dir(tmp_path):
    assert BatterySampler(str(tmp_path / "nope")).sample() is NO_BATTERY


def test_discharging_estimate(tmp_path):
    make_battery(tmp_path, status="Discharging", energy_now=30_000_000,
                 energy_full=60_000_000, power_now=12_000_000)
    view = BatterySampler(str(tmp_path)).sample().value
    assert view.state == "Discharging"
    assert view.percent == pytest.approx(50.0)
    assert view.seconds_left == pytest.approx(2.5 * 3600)
    assert view.time_left == "2h 30m"


def test_no_estimate_while_charging(tmp_path):
    make_battery(tmp_path, status="Charging", energy_now=30, energy_full=60, power_now=10)
    view = BatterySampler(str(tmp_path)).sample().value
    assert view.seconds_left is None
    assert view.time_left == "N/A"


def test_no_estimate_with_zero_draw(tmp_path):
    make_battery(tmp_path, status="Discharging", energy_now=30, energy_full=60, power_now=0)
    assert BatterySampler(str(tmp_path)).sample().value.seconds_left is None


def test_charge_based_battery(tmp_path):
    make_battery(tmp_path, status="Discharging", charge_now=2000, charge_full=4000, current_now=1000)
    view = BatterySampler(str(tmp_path)).sample().value
    assert view.percent == pytest.approx(50.0)
    assert view.seconds_left == pytest.approx(2 * 3600)
