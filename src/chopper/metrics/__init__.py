from __future__ import annotations

from chopper.metrics.collector import ResultCollector
from chopper.metrics.models import EXPECTED_STATUS_CODE, Aggregate, RequestOutcome

__all__ = ["EXPECTED_STATUS_CODE", "Aggregate", "RequestOutcome", "ResultCollector"]
