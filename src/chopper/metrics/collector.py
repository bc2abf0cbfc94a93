from __future__ import annotations

from collections import Counter

import numpy as np

from chopper.metrics.models import Aggregate, RequestOutcome


class ResultCollector:
    """Holds every outcome of a run and derives summary statistics from them.

    Only the run's single conduit consumer calls :meth:`observe`, so the
    outcome list needs no locking.
    """

    def __init__(self) -> None:
        self._outcomes: list[RequestOutcome] = []

    def observe(self, outcome: RequestOutcome) -> None:
        self._outcomes.append(outcome)

    @property
    def outcomes(self) -> tuple[RequestOutcome, ...]:
        return tuple(self._outcomes)

    @property
    def total(self) -> int:
        return len(self._outcomes)

    @property
    def is_empty(self) -> bool:
        return not self._outcomes

    def aggregate(self, run_duration_sec: float) -> Aggregate | None:
        """Summarise the collected outcomes, or return ``None`` when there are none.

        Requests per second divide by the configured run duration, not by the
        sum of response times.
        """
        if not self._outcomes:
            return None
        if run_duration_sec <= 0:
            msg = f"Run duration must be positive to compute throughput, got {run_duration_sec}"
            raise ValueError(msg)
        times = np.fromiter(
            (o.response_time_ns for o in self._outcomes),
            dtype=np.int64,
            count=len(self._outcomes),
        )
        total = int(times.size)
        # Integer floor mean keeps fastest <= average <= slowest exact.
        average = int(times.sum()) // total
        return Aggregate(
            total_requests=total,
            fastest_ns=int(times.min()),
            slowest_ns=int(times.max()),
            average_ns=average,
            run_duration_sec=run_duration_sec,
            requests_per_second=total / run_duration_sec,
            status_counts=dict(sorted(Counter(o.status_code for o in self._outcomes).items())),
        )
