from __future__ import annotations

import logging

import pytest

from hostwatch.collectors import (CpuSampler, DiskSampler, MemorySampler, NetworkSampler,
                                  utilisation)
from hostwatch.counters import CpuTicks, DiskSpace, InterfaceCounters, MemoryCounters, Partition
from tests.helpers.fakes import FakeReader


# ── cpu ───────────────────────────────────────
def test_system_cpu_scenario_fifty_percent(reader):
    reader.cpu = CpuTicks(user=100, idle=900)
    cpu = CpuSampler(reader)
    assert cpu.sample().usage_pct == 0.0      # first pass: no rate yet

    reader.cpu = CpuTicks(user=150, idle=950)
    assert cpu.sample().usage_pct == pytest.approx(50.0)


def test_per_core_usage_is_independent(reader):
    reader.per_core = [CpuTicks(user=10, idle=90), CpuTicks(user=50, idle=50)]
    cpu = CpuSampler(reader)
    cpu.sample()
    reader.per_core = [CpuTicks(user=10, idle=190), CpuTicks(user=125, idle=75)]
    view = cpu.sample()
    assert [c.usage_pct for c in view.cores] == [pytest.approx(0.0), pytest.approx(75.0)]


def test_cpu_counter_reset_is_fresh_baseline(reader):
    reader.cpu = CpuTicks(user=1000, idle=9000)
    cpu = CpuSampler(reader)
    cpu.sample()
    reader.cpu = CpuTicks(user=10, idle=90)
    assert cpu.sample().usage_pct == 0.0
    reader.cpu = CpuTicks(user=30, idle=170)
    assert cpu.sample().usage_pct == pytest.approx(20.0)


def test_cpu_degenerate_pass_keeps_last_value(reader):
    cpu = CpuSampler(reader)
    reader.cpu = CpuTicks(user=100, idle=900)
    cpu.sample()
    reader.cpu = CpuTicks(user=150, idle=950)
    cpu.sample()
    assert cpu.sample().usage_pct == pytest.approx(50.0)   # no ticks elapsed


def test_missing_sensors_are_none_not_zero(reader):
    reader.per_core = [CpuTicks(user=1, idle=1), CpuTicks(user=1, idle=1)]
    reader.temps = {1: 55.0}
    view = CpuSampler(reader).sample()
    assert view.cores[0].temperature_c is None
    assert view.cores[0].frequency_mhz is None
    assert view.cores[1].temperature_c == 55.0


def test_unreadable_cpu_freezes_value_and_logs_once(reader, caplog):
    cpu = CpuSampler(reader)
    reader.cpu = CpuTicks(user=100, idle=900)
    cpu.sample()
    reader.cpu = CpuTicks(user=150, idle=950)
    cpu.sample()

    reader.cpu_error = OSError("stat gone")
    with caplog.at_level(logging.WARNING, logger="hostwatch"):
        for _ in range(5):
            assert cpu.sample().usage_pct == pytest.approx(50.0)
    assert sum("CPU counters unreadable" in r.message for r in caplog.records) == 1


def test_removed_core_is_evicted(reader):
    reader.per_core = [CpuTicks(user=1, idle=1)] * 4
    cpu = CpuSampler(reader)
    cpu.sample()
    reader.per_core = [CpuTicks(user=2, idle=2)] * 2
    cpu.sample()
    assert cpu.tracked_cores == 2


def test_utilisation_first_observation():
    assert utilisation(None, CpuTicks(user=5, idle=5)) == 0.0


# ── memory ────────────────────────────────────
def test_memory_scenario():
    reader = FakeReader(mem=MemoryCounters(total=8_000_000, free=2_000_000,
                                           buffers=100_000, cached=900_000))
    view = MemorySampler(reader).sample()
    assert view.used_bytes == 5_000_000
    assert view.usage_pct == pytest.approx(62.5)


def test_memory_swap_pct():
    reader = FakeReader(mem=MemoryCounters(total=100, free=50, swap_total=200, swap_used=50))
    assert MemorySampler(reader).sample().swap_pct == pytest.approx(25.0)


# ── disk ──────────────────────────────────────
def test_disk_excludes_virtual_filesystems(reader):
    reader.parts = [
        Partition("/dev/sda1", "/", "ext4"),
        Partition("tmpfs", "/run", "tmpfs"),
        Partition("udev", "/dev", "devtmpfs"),
        Partition("/dev/sdb1", "/data", "xfs"),
    ]
    reader.spaces = {
        "/": DiskSpace(total=100, used=40, free=60),
        "/run": DiskSpace(total=10, used=10, free=0),
        "/dev": DiskSpace(total=10, used=10, free=0),
        "/data": DiskSpace(total=200, used=190, free=10),
    }
    view = DiskSampler(reader).sample()
    assert [p.mountpoint for p in view.partitions] == ["/", "/data"]
    assert view.usage_pct == pytest.approx(40.0)   # root filesystem drives the scalar


def test_disk_skips_unreadable_partition(reader):
    reader.parts = [Partition("/dev/sdc1", "/mnt/usb", "vfat"), Partition("/dev/sdb1", "/data", "ext4")]
    reader.spaces = {"/mnt/usb": PermissionError("denied"), "/data": DiskSpace(100, 25, 75)}
    view = DiskSampler(reader).sample()
    assert [p.mountpoint for p in view.partitions] == ["/data"]
    assert view.usage_pct == pytest.approx(25.0)


# ── network ───────────────────────────────────
def nic(name, rx, tx, up=True):
    return InterfaceCounters(name=name, rx_bytes=rx, tx_bytes=tx, is_up=up)


def by_name(views):
    return {v.name: v for v in views}


def test_network_rates(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    reader.nics = [nic("eth0", 1000, 500)]
    first = by_name(net.sample())["eth0"]
    assert first.download_bps == 0.0 and first.upload_bps == 0.0

    clock.advance(2.0)
    reader.nics = [nic("eth0", 5000, 1500)]
    v = by_name(net.sample())["eth0"]
    assert v.download_bps == pytest.approx(2000.0)
    assert v.upload_bps == pytest.approx(500.0)


def test_loopback_and_down_interfaces_enumerated_without_rates(reader, clock):
    reader.kinds = {"lo": "loopback", "wlan0": "wireless", "eth1": "ethernet"}
    reader.nics = [nic("lo", 1, 1), nic("wlan0", 1, 1), nic("eth1", 1, 1, up=False)]
    net = NetworkSampler(reader, clock=clock)
    views = by_name(net.sample())
    assert set(views) == {"lo", "wlan0", "eth1"}
    assert views["lo"].download_bps is None
    assert views["eth1"].download_bps is None
    assert views["wlan0"].download_bps == 0.0
    assert net.tracked == ("wlan0",)


def test_peak_speed_is_monotonic(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    totals = [0, 10_000, 10_500, 50_000, 50_000, 20, 30]   # includes a counter reset
    peaks = []
    for rx in totals:
        reader.nics = [nic("eth0", rx, rx)]
        peaks.append(by_name(net.sample())["eth0"].max_download_bps)
        clock.advance(1.0)
    assert peaks == sorted(peaks)
    assert peaks[-1] == pytest.approx(39_500.0)


def test_counter_reset_yields_zero_not_negative(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    reader.nics = [nic("eth0", 10_000, 10_000)]
    net.sample()
    clock.advance(1.0)
    reader.nics = [nic("eth0", 100, 100)]
    v = by_name(net.sample())["eth0"]
    assert v.download_bps == 0.0 and v.upload_bps == 0.0


def test_vanished_interface_is_evicted(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    reader.nics = [nic("eth0", 1, 1), nic("usb0", 1, 1)]
    net.sample()
    clock.advance(1.0)
    reader.nics = [nic("eth0", 2, 2)]
    net.sample()
    assert net.tracked == ("eth0",)


def test_interface_kind_looked_up_once(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    reader.nics = [nic("eth0", 1, 1)]
    for _ in range(5):
        net.sample()
        clock.advance(1.0)
    assert reader.kind_lookups == 1


def test_zero_elapsed_pass_keeps_rate_and_baseline(reader, clock):
    net = NetworkSampler(reader, clock=clock)
    reader.nics = [nic("eth0", 1000, 1000)]
    net.sample()
    clock.advance(2.0)
    reader.nics = [nic("eth0", 5000, 1000)]
    assert by_name(net.sample())["eth0"].download_bps == pytest.approx(2000.0)

    reader.nics = [nic("eth0", 9000, 1000)]                 # clock did not move
    assert by_name(net.sample())["eth0"].download_bps == pytest.approx(2000.0)

    clock.advance(1.0)
    reader.nics = [nic("eth0", 10_000, 1000)]               # measured from the 5000 baseline
    assert by_name(net.sample())["eth0"].download_bps == pytest.approx(5000.0)
