from __future__ import annotations

from chopper.config.models import (
    ConfigError,
    HeaderPairs,
    RunConfig,
    TargetConfig,
    build_headers,
    parse_duration,
)

__all__ = [
    "ConfigError",
    "HeaderPairs",
    "RunConfig",
    "TargetConfig",
    "build_headers",
    "parse_duration",
]
