from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, Optional, Tuple


class RateError(ValueError):
    pass


class DegenerateInterval(RateError):
    """Elapsed time between two samples is zero or negative."""


class CounterReset(RateError):
    """A counter went backwards (wraparound, restart, re-enumeration)."""


@dataclass(frozen=True)
class RawCounterSample:
    key: Hashable
    counters: Tuple[float, ...]
    ts: float

    @property
    def counter(self) -> float:
        return self.counters[0]


class RateStatus(str, Enum):
    OK = "ok"
    NO_RATE_YET = "no_rate_yet"
    RESET = "reset"
    DEGENERATE = "degenerate"


@dataclass(frozen=True)
class RateResult:
    value: float
    status: RateStatus

    @property
    def ok(self) -> bool:
        return self.status is RateStatus.OK


def rate(prev: RawCounterSample, curr: RawCounterSample, index: int = 0) -> float:
    """
    Counter units per second between two samples of the same entity.

    Raises DegenerateInterval when curr.ts <= prev.ts and CounterReset when
    the counter decreased.
    """
    elapsed = curr.ts - prev.ts
    if elapsed <= 0:
        raise DegenerateInterval(f"{curr.key!r}: elapsed {elapsed:.6f}s")
    delta = curr.counters[index] - prev.counters[index]
    if delta < 0:
        raise CounterReset(f"{curr.key!r}: counter[{index}] went from "
                           f"{prev.counters[index]} to {curr.counters[index]}")
    return delta / elapsed


def measure(prev: Optional[RawCounterSample], curr: RawCounterSample,
            index: int = 0, unchanged: float = 0.0) -> RateResult:
    """
    rate() with the caller-side substitutions applied:
    - no previous sample      -> 0.0, NO_RATE_YET
    - counter went backwards  -> 0.0, RESET (curr becomes the new baseline)
    - zero/negative interval  -> `unchanged`, DEGENERATE
    """
    if prev is None:
        return RateResult(0.0, RateStatus.NO_RATE_YET)
    try:
        return RateResult(rate(prev, curr, index), RateStatus.OK)
    except CounterReset:
        return RateResult(0.0, RateStatus.RESET)
    except DegenerateInterval:
        return RateResult(unchanged, RateStatus.DEGENERATE)


def delta_ratio(prev_part: float, prev_total: float,
                curr_part: float, curr_total: float) -> float:
    """
    (curr_part - prev_part) / (curr_total - prev_total).

    Same failure modes as rate(): a non-positive total delta is a
    DegenerateInterval, a negative delta is a CounterReset.
    """
    part = curr_part - prev_part
    total = curr_total - prev_total
    if part < 0 or total < 0:
        raise CounterReset(f"ticks went backwards (part {part}, total {total})")
    if total == 0:
        raise DegenerateInterval("no ticks elapsed")
    return part / total


def cpu_percent(cpu_seconds_per_second: float, *, cores: int) -> float:
    """
    Scale a CPU-time rate to a percentage.

    `cores` is mandatory: pass the logical core count when the counter
    covers the whole machine (a process may run on every core at once),
    and 1 when the counter belongs to a single core.
    """
    if cores < 1:
        raise ValueError(f"cores must be >= 1, got {cores}")
    return cpu_seconds_per_second * 100.0 / cores
