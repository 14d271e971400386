"""
HTTP workload driver.

Issues one request per unit of work against the service under test. Unit
inputs are ids drawn from a bounded range by a seeded RNG, so repeated
requests do not all hit the same cached row.

A response with an unexpected status raises WorkloadFailure: the service
is broken, which is a test failure rather than a measurement fault.
"""

import random
from typing import Any, Iterable, Mapping, Optional

import httpx

from tracegate.errors import WorkloadFailure
from tracegate.loggers.error_log import get_error_logger
from tracegate.runtime.settings import HarnessSettings, WorkloadSettings


class HttpWorkload:

    def __init__(
        self,
        settings: Optional[WorkloadSettings] = None,
        seed: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings or WorkloadSettings()
        if self._settings.id_min > self._settings.id_max:
            raise ValueError(
                f"id_min ({self._settings.id_min}) > id_max ({self._settings.id_max})"
            )
        self._rng = random.Random(seed)
        self._client = httpx.Client(
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_sec,
            headers=dict(self._settings.headers),
            transport=transport,
        )
        self._logger = get_error_logger("HttpWorkload")
        self.total_requests = 0

    @classmethod
    def from_settings(
        cls,
        settings: HarnessSettings,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "HttpWorkload":
        """Build the driver for a harness run: target service and RNG seed."""
        return cls(settings.workload, seed=settings.seed, transport=transport)

    @property
    def settings(self) -> WorkloadSettings:
        return self._settings

    def next_id(self) -> int:
        return self._rng.randint(self._settings.id_min, self._settings.id_max)

    def url_for(self, unit_id: int) -> str:
        path = self._settings.path.strip("/")
        return f"/{path}/{self._settings.path_prefix}{unit_id}"

    def execute(self, unit_id: Optional[int] = None) -> httpx.Response:
        """Run one unit of work and require the expected status."""
        if unit_id is None:
            unit_id = self.next_id()
        url = self.url_for(unit_id)
        response = self._client.get(url)
        self.total_requests += 1
        self._require_status(response, self._settings.expected_status, url)
        return response

    def __call__(self, iteration: int) -> None:
        self.execute()

    def seed(
        self,
        items: Iterable[Mapping[str, Any]],
        path: Optional[str] = None,
        expected_status: int = 201,
    ) -> int:
        """POST setup items to the service before measuring. Returns the count."""
        url = "/" + (path or self._settings.path).strip("/")
        n = 0
        for item in items:
            response = self._client.post(url, json=dict(item))
            self._require_status(response, expected_status, url)
            n += 1
        self._logger.info(f"[TraceGate] seeded {n} items via POST {url}")
        return n

    def _require_status(self, response: httpx.Response, expected: int, url: str) -> None:
        if response.status_code != expected:
            msg = (
                f"{response.request.method} {url} returned {response.status_code}, "
                f"expected {expected}"
            )
            self._logger.error(f"[TraceGate] workload failure: {msg}")
            raise WorkloadFailure(msg, status_code=response.status_code, url=url)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpWorkload":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
