"""Readiness polling of the Crowbar installer.

After the framework service starts and Apache switches backends, the
installer takes a while to answer. The poller waits for its HTML page to
respond and then for its status document to contain the readiness marker.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..errors import TransportError

logger = structlog.get_logger(__name__)

PHASE_LIVENESS = "liveness"
PHASE_STATUS = "status"

DEFAULT_REQUEST_TIMEOUT = 5.0


@dataclass
class ReadinessState:
    """Polling cursor of a single wait."""

    last_status_code: int | None = None
    last_body: str | None = None
    satisfied: bool = False
    attempts: int = 0
    phase: str = PHASE_LIVENESS


class InstallerStatusClient:
    """Fetch the installer page and its status document."""

    def __init__(self, installer_url: str, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        """Initialize status client.

        Args:
            installer_url: Base URL of the installer (HTML page).
            timeout: Timeout for each HTTP request.
        """
        self.installer_url = installer_url.rstrip("/")
        self.timeout = timeout

    @property
    def status_url(self) -> str:
        """URL of the JSON status document."""
        return f"{self.installer_url}/status.json"

    async def get(self, url: str) -> tuple[int, str]:
        """GET a URL.

        Args:
            url: URL to fetch.

        Returns:
            Tuple of (status code, body text).

        Raises:
            TransportError: If the request could not be completed.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
                return response.status_code, response.text
        except httpx.ConnectError as e:
            raise TransportError(message="Connection refused", data={"url": url}) from e
        except httpx.TimeoutException as e:
            raise TransportError(message="Request timeout", data={"url": url}) from e
        except httpx.HTTPError as e:
            raise TransportError(message=str(e) or type(e).__name__, data={"url": url}) from e

    async def fetch(self, request_type: str = "html") -> dict[str, Any]:
        """Fetch the installer page or status document.

        Args:
            request_type: "html" for the installer page, "json" for status.json.

        Returns:
            ``{"code": ..., "body": ...}``; ``{"code": 500, "body": None}`` on
            any transport or decoding failure.
        """
        url = self.installer_url if request_type == "html" else self.status_url
        try:
            code, text = await self.get(url)
            body: Any = text if request_type == "html" else json.loads(text)
        except (TransportError, ValueError) as e:
            logger.debug("Installer status unavailable", url=url, error=str(e))
            return {"code": 500, "body": None}
        return {"code": code, "body": body}


class ReadinessPoller:
    """Poll the installer until it reports readiness."""

    def __init__(
        self,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize readiness poller.

        Args:
            request_timeout: Timeout for each HTTP request.
            sleep: Coroutine used for waits without a cancel event.
            clock: Monotonic clock used for deadlines.
        """
        self.request_timeout = request_timeout
        self._sleep = sleep
        self._clock = clock

    async def wait_until_ready(
        self,
        endpoint: str,
        marker: str,
        poll_interval: float = 1.0,
        settle_delay: float = 15.0,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
        on_attempt: Callable[[int, str, str | None], None] | None = None,
    ) -> bool:
        """Block until the installer is ready.

        Transport errors and unparseable status documents only mean "not
        ready yet". Without ``timeout`` or ``cancel_event`` this waits forever.

        Args:
            endpoint: Base URL of the installer.
            marker: Token that must appear in status.json.
            poll_interval: Seconds between attempts.
            settle_delay: Seconds to wait once after readiness is observed.
            timeout: Optional overall deadline in seconds.
            cancel_event: Optional event that aborts the wait when set.
            on_attempt: Optional callback called with (attempt, phase, error)
                       for progress reporting.

        Returns:
            True once ready and settled; False only if cancelled or the
            deadline passed.
        """
        client = InstallerStatusClient(endpoint, timeout=self.request_timeout)
        state = ReadinessState()
        deadline = self._clock() + timeout if timeout is not None else None

        logger.debug("Waiting for crowbar to become available", endpoint=endpoint)

        for phase, url in (
            (PHASE_LIVENESS, client.installer_url),
            (PHASE_STATUS, client.status_url),
        ):
            state.phase = phase
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Readiness wait cancelled", phase=phase, attempts=state.attempts)
                    return False

                state.attempts += 1
                error: str | None = None
                ready = False
                try:
                    state.last_status_code, state.last_body = await client.get(url)
                    ready = self._is_ready(phase, state.last_body, marker)
                except TransportError as e:
                    error = e.message

                if on_attempt:
                    on_attempt(state.attempts, phase, error)

                if ready:
                    break

                if not await self._pause(poll_interval, deadline, cancel_event):
                    logger.info(
                        "Readiness wait stopped",
                        phase=phase,
                        attempts=state.attempts,
                        last_status_code=state.last_status_code,
                    )
                    return False

        state.satisfied = True
        logger.info("Installer reports ready", attempts=state.attempts)

        # apache takes some time to perform the final switch
        if not await self._pause(settle_delay, None, cancel_event):
            return False
        return True

    @staticmethod
    def _is_ready(phase: str, body: str | None, marker: str) -> bool:
        if not body:
            return False
        if phase == PHASE_LIVENESS:
            return True
        try:
            json.loads(body)
        except ValueError:
            return False
        return marker in body

    async def _pause(
        self,
        seconds: float,
        deadline: float | None,
        cancel_event: asyncio.Event | None,
    ) -> bool:
        """Wait between attempts.

        Returns:
            False if the deadline passed or the wait was cancelled.
        """
        if deadline is not None:
            remaining = deadline - self._clock()
            if remaining <= 0:
                return False
            seconds = min(seconds, remaining)

        if cancel_event is None:
            await self._sleep(seconds)
            return True

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
