from __future__ import annotations

import ipaddress
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import httpx

HeaderPairs = tuple[tuple[str, str], ...]

_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(ValueError):
    """Raised when a run configuration cannot be used to start a run."""


@dataclass(frozen=True, slots=True)
class TargetConfig:
    url: str
    method: str = "GET"
    headers: HeaderPairs = ()
    timeout_sec: float | None = 10.0


@dataclass(frozen=True, slots=True)
class RunConfig:
    target: TargetConfig
    concurrency: int = 1
    duration_sec: float = 3600.0
    follow_redirects: bool = False
    max_redirects: int = 0
    use_cookie_jar: bool = False
    keep_alive: bool = False

    def validate(self) -> None:
        try:
            url = httpx.URL(self.target.url)
        except httpx.InvalidURL as exc:
            msg = f"Invalid URL {self.target.url!r}: {exc}"
            raise ConfigError(msg) from exc
        if url.scheme not in ("http", "https") or not url.host:
            msg = f"URL must be absolute http(s) with a host: {self.target.url!r}"
            raise ConfigError(msg)
        if not _TOKEN.match(self.target.method):
            msg = f"Invalid HTTP method: {self.target.method!r}"
            raise ConfigError(msg)
        for name, value in self.target.headers:
            if not _TOKEN.match(name):
                msg = f"Invalid header name: {name!r}"
                raise ConfigError(msg)
            if "\r" in value or "\n" in value:
                msg = f"Header {name!r} value must not contain line breaks"
                raise ConfigError(msg)
        try:
            httpx.Headers(list(self.target.headers))
        except UnicodeEncodeError as exc:
            msg = f"Header values must be ASCII: {exc}"
            raise ConfigError(msg) from exc
        if self.concurrency < 1:
            msg = f"Concurrency must be at least 1, got {self.concurrency}"
            raise ConfigError(msg)
        if self.duration_sec < 0:
            msg = f"Duration must not be negative, got {self.duration_sec}"
            raise ConfigError(msg)
        if self.max_redirects < 0:
            msg = f"Max redirects must not be negative, got {self.max_redirects}"
            raise ConfigError(msg)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "concurrency": self.concurrency,
            "duration_sec": self.duration_sec,
            "follow_redirects": self.follow_redirects,
            "max_redirects": self.max_redirects,
            "use_cookie_jar": self.use_cookie_jar,
            "keep_alive": self.keep_alive,
            "target": {
                "url": self.target.url,
                "method": self.target.method,
                "timeout_sec": self.target.timeout_sec,
                "headers": [list(pair) for pair in self.target.headers],
            },
        }


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"30s"``, ``"1h30m"`` or ``"250ms"`` into seconds.

    A bare number is read as seconds.
    """
    value = text.strip()
    if not value:
        raise ConfigError("Empty duration")
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return _non_negative(seconds, text)
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(value):
        msg = f"Invalid duration {text!r}; use units like 500ms, 30s, 5m, 1h"
        raise ConfigError(msg)
    return total


def _non_negative(seconds: float, text: str) -> float:
    if not math.isfinite(seconds) or seconds < 0:
        msg = f"Duration must be a finite, non-negative number: {text!r}"
        raise ConfigError(msg)
    return seconds


def build_headers(
    raw: Iterable[str],
    user_agent: str | None = None,
    ip_address: str | None = None,
    keep_alive: bool = False,
) -> HeaderPairs:
    headers: list[tuple[str, str]] = []
    for header in raw:
        name, sep, value = header.partition(":")
        name = name.strip()
        if not sep or not name:
            continue
        headers.append((name, value.strip()))
    if user_agent:
        headers.append(("User-Agent", user_agent))
    if ip_address:
        try:
            addr = ipaddress.ip_address(ip_address.strip())
        except ValueError:
            addr = None
        if addr is not None:
            headers.append(("X-Forwarded-For", str(addr)))
    if keep_alive:
        headers.append(("Connection", "keep-alive"))
    return tuple(headers)
