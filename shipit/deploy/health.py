"""Health endpoint polling with a bounded, fixed retry policy."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .models import HealthCheckResult

logger = logging.getLogger(__name__)

HEALTHY_STATUSES = frozenset({"ok", "healthy", "up", "pass"})


@dataclass(frozen=True)
class PingResult:
    """Outcome of a single liveness request."""

    healthy: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    payload_status: Optional[str] = None


class HealthChecker:
    """Polls a liveness endpoint until it reports healthy or retries run out.

    A request is healthy when the endpoint answers 2xx with a JSON object
    whose ``status`` field is one of HEALTHY_STATUSES. Timeouts, transport
    errors, other status codes and malformed payloads all count as failures.

    The delay between attempts is fixed unless ``backoff`` is above 1.0,
    in which case it is multiplied after every failed attempt.
    """

    def __init__(
        self,
        retries: int = 3,
        delay_seconds: float = 5.0,
        timeout_seconds: float = 5.0,
        backoff: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the HealthChecker.

        Args:
            retries: Number of attempts (at least 1).
            delay_seconds: Wait between attempts.
            timeout_seconds: Timeout of each request.
            backoff: Delay multiplier per failed attempt.
            client: Pre-built httpx client. Created lazily if not provided.
            sleep: Sleep function, replaceable in tests.
        """
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self._retries = retries
        self._delay = delay_seconds
        self._timeout = timeout_seconds
        self._backoff = backoff
        self._client = client
        self._sleep = sleep

    @property
    def retries(self) -> int:
        return self._retries

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def ping(self, url: str) -> PingResult:
        """Send one liveness request."""
        try:
            response = self._get_client().get(url, timeout=self._timeout)
        except httpx.TimeoutException:
            return PingResult(healthy=False, error="request timed out")
        except httpx.HTTPError as e:
            return PingResult(healthy=False, error=f"request failed: {e}")

        if not response.is_success:
            return PingResult(
                healthy=False,
                status_code=response.status_code,
                error=f"unexpected status {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError:
            return PingResult(
                healthy=False,
                status_code=response.status_code,
                error="response is not JSON",
            )

        status = payload.get("status") if isinstance(payload, dict) else None
        if status is None:
            return PingResult(
                healthy=False,
                status_code=response.status_code,
                error="payload has no status field",
            )

        status_text = str(status)
        if status_text.lower() not in HEALTHY_STATUSES:
            return PingResult(
                healthy=False,
                status_code=response.status_code,
                error=f"service reports status '{status_text}'",
                payload_status=status_text,
            )

        return PingResult(
            healthy=True, status_code=response.status_code, payload_status=status_text
        )

    def check(
        self,
        url: str,
        retries: Optional[int] = None,
        delay_seconds: Optional[float] = None,
    ) -> HealthCheckResult:
        """Poll ``url`` until healthy or the retry budget is spent.

        Args:
            url: Liveness endpoint.
            retries: Override of the configured attempt count.
            delay_seconds: Override of the configured delay.

        Returns:
            HealthCheckResult describing the last attempt.
        """
        attempts_allowed = retries if retries is not None else self._retries
        delay = delay_seconds if delay_seconds is not None else self._delay

        reply = PingResult(healthy=False)
        for attempt in range(1, attempts_allowed + 1):
            reply = self.ping(url)
            if reply.healthy:
                logger.info("Health check %s passed on attempt %d", url, attempt)
                return HealthCheckResult(
                    healthy=True,
                    attempts=attempt,
                    last_status_code=reply.status_code,
                    payload_status=reply.payload_status,
                )

            logger.warning(
                "Health check %s attempt %d/%d failed: %s",
                url,
                attempt,
                attempts_allowed,
                reply.error,
            )
            if attempt < attempts_allowed:
                self._sleep(delay)
                delay *= self._backoff

        return HealthCheckResult(
            healthy=False,
            attempts=attempts_allowed,
            last_status_code=reply.status_code,
            last_error=reply.error,
            payload_status=reply.payload_status,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
