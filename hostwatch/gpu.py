from __future__ import annotations
import logging
from typing import Any, List, Optional, Set, Tuple

from .models import Available, GpuView, Optionally, Unavailable

log = logging.getLogger(__name__)


def _load_nvml():
    import pynvml  # provided by nvidia-ml-py
    return pynvml


def _decode(name: Any) -> str:
    if isinstance(name, (bytes, bytearray)):
        return name.decode("utf-8", errors="ignore")
    return str(name)


class GpuSampler:
    """
    NVIDIA telemetry through NVML.

    Availability is decided once, in the constructor. If the library is
    missing or nvmlInit fails, every sample() returns the same Unavailable
    and NVML is never retried for the life of the process.
    """

    def __init__(self, nvml: Any = None, enabled: bool = True):
        self._nvml = None
        self._count = 0
        self._fan_missing: Set[int] = set()
        if not enabled:
            self._status: Optionally[Tuple[GpuView, ...]] = Unavailable("GPU monitoring disabled")
            return
        try:
            lib = nvml if nvml is not None else _load_nvml()
            lib.nvmlInit()
        except Exception as e:
            # ImportError, NVMLError_LibraryNotFound, driver mismatch...
            self._status = Unavailable(f"NVML unavailable: {e}")
            return
        try:
            self._count = int(lib.nvmlDeviceGetCount())
        except Exception as e:
            _shutdown(lib)
            self._status = Unavailable(f"NVML unavailable: {e}")
            return
        self._nvml = lib
        self._status = Available(())

    @property
    def available(self) -> bool:
        return self._nvml is not None

    @property
    def unavailable_reason(self) -> Optional[str]:
        if isinstance(self._status, Unavailable):
            return self._status.reason
        return None

    def sample(self) -> Optionally[Tuple[GpuView, ...]]:
        if self._nvml is None:
            return self._status
        views: List[GpuView] = []
        for i in range(self._count):
            try:
                views.append(self._read_device(i))
            except self._nvml.NVMLError as e:
                log.debug("gpu %d: skipped this pass: %s", i, e)
        return Available(tuple(views))

    def _read_device(self, i: int) -> GpuView:
        nv = self._nvml
        h = nv.nvmlDeviceGetHandleByIndex(i)
        name = _decode(nv.nvmlDeviceGetName(h))

        temp = self._optional(nv.nvmlDeviceGetTemperature, h, nv.NVML_TEMPERATURE_GPU)
        power_mw = self._optional(nv.nvmlDeviceGetPowerUsage, h)
        try:
            fan: Optional[float] = float(nv.nvmlDeviceGetFanSpeed(h))
        except nv.NVMLError as e:
            if i not in self._fan_missing:
                log.warning("GPU %d fan speed unavailable: %s", i, e)
                self._fan_missing.add(i)
            fan = None
        try:
            util = nv.nvmlDeviceGetUtilizationRates(h)
            gpu_util, mem_util = float(util.gpu), float(util.memory)
        except nv.NVMLError:
            gpu_util = mem_util = None

        return GpuView(
            index=i,
            name=name,
            temperature_c=float(temp) if temp is not None else None,
            power_w=power_mw / 1000.0 if power_mw is not None else None,
            fan_pct=fan,
            gpu_util_pct=gpu_util,
            memory_util_pct=mem_util,
        )

    def _optional(self, fn, *args):
        try:
            return fn(*args)
        except self._nvml.NVMLError:
            return None

    def close(self) -> None:
        if self._nvml is None:
            return
        _shutdown(self._nvml)
        self._nvml = None
        self._status = Unavailable("GPU monitor closed")


def _shutdown(lib: Any) -> None:
    try:
        lib.nvmlShutdown()
    except lib.NVMLError as e:
        log.debug("nvmlShutdown failed: %s", e)
