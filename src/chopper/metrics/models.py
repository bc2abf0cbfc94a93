from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

EXPECTED_STATUS_CODE = 200

_NS_PER_MS = 1_000_000


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    status_code: int
    response_time_ns: int
    # Reference value only; never compared against status_code.
    expected_status_code: int = EXPECTED_STATUS_CODE
    worker_id: int = 0


@dataclass(frozen=True, slots=True)
class Aggregate:
    total_requests: int
    fastest_ns: int
    slowest_ns: int
    average_ns: int
    run_duration_sec: float
    requests_per_second: float
    status_counts: Mapping[int, int] = field(default_factory=dict)

    @property
    def fastest_ms(self) -> float:
        return self.fastest_ns / _NS_PER_MS

    @property
    def slowest_ms(self) -> float:
        return self.slowest_ns / _NS_PER_MS

    @property
    def average_ms(self) -> float:
        return self.average_ns / _NS_PER_MS

    @property
    def rounded_rps(self) -> float:
        return round(self.requests_per_second, 2)
