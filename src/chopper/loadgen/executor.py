from __future__ import annotations

import logging
import time

import httpx

from chopper.config import TargetConfig
from chopper.loadgen.cookies import refusing_jar, session_jar
from chopper.metrics import EXPECTED_STATUS_CODE, RequestOutcome

logger = logging.getLogger(__name__)


def _is_redirect(status_code: int) -> bool:
    return 300 <= status_code < 400


class RequestExecutor:
    """Executes one logical request (the request plus its redirect chain) at a time.

    Each executor owns its own client, and with it its own cookie jar, so two
    executors never share cookie state.
    """

    def __init__(
        self,
        target: TargetConfig,
        *,
        follow_redirects: bool = False,
        max_redirects: int = 0,
        use_cookies: bool = False,
        keep_alive: bool = False,
        worker_id: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_redirects < 0:
            msg = f"max_redirects must not be negative, got {max_redirects}"
            raise ValueError(msg)
        self.target = target
        self.follow_redirects = follow_redirects
        self.max_redirects = max_redirects
        self.use_cookies = use_cookies
        self.worker_id = worker_id
        jar = session_jar() if use_cookies else refusing_jar()
        limits = httpx.Limits() if keep_alive else httpx.Limits(max_keepalive_connections=0)
        self._headers = httpx.Headers(list(target.headers))
        self._client = httpx.AsyncClient(
            cookies=jar,
            follow_redirects=False,
            limits=limits,
            timeout=target.timeout_sec,
            transport=transport,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def execute_once(self) -> RequestOutcome | None:
        """Run one logical request and time it from the first hop to the final response.

        Returns ``None`` when a hop fails at the transport level, when a
        redirect carries no usable ``Location``, or when the chain needs more
        than ``max_redirects`` redirects. Failed attempts are not retried.
        """
        url = httpx.URL(self.target.url)
        hops = 0
        start = time.perf_counter_ns()
        while True:
            try:
                resp = await self._client.request(self.target.method, url, headers=self._headers)
            except httpx.TimeoutException as exc:
                logger.debug("worker %d: timeout on %s: %s", self.worker_id, url, exc)
                return None
            except httpx.HTTPError as exc:
                logger.debug("worker %d: request to %s failed: %r", self.worker_id, url, exc)
                return None
            if not (self.follow_redirects and _is_redirect(resp.status_code)):
                elapsed = time.perf_counter_ns() - start
                return RequestOutcome(
                    status_code=resp.status_code,
                    response_time_ns=elapsed,
                    expected_status_code=EXPECTED_STATUS_CODE,
                    worker_id=self.worker_id,
                )
            if hops >= self.max_redirects:
                logger.debug("worker %d: redirect budget of %d exhausted", self.worker_id, self.max_redirects)
                return None
            next_url = self._next_url(resp)
            if next_url is None:
                return None
            url = next_url
            hops += 1

    def _next_url(self, resp: httpx.Response) -> httpx.URL | None:
        location = resp.headers.get("Location")
        if not location:
            logger.debug("worker %d: %d response without Location", self.worker_id, resp.status_code)
            return None
        try:
            return resp.url.join(location)
        except httpx.InvalidURL as exc:
            logger.debug("worker %d: bad Location %r: %s", self.worker_id, location, exc)
            return None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RequestExecutor:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
