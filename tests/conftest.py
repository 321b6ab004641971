from __future__ import annotations

import pytest

from hostwatch.config import AppConfig
from tests.helpers.fakes import FakeClock, FakeReader


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def cfg(tmp_path):
    return AppConfig(power_supply_path=str(tmp_path / "no_power_supply"), gpu_enabled=False,
                     log_path=str(tmp_path / "hostwatch.log"))
