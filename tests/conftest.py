import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from clicktracker.domain.interfaces.clock import Clock
from clicktracker.infrastructure.config import settings
from clicktracker.infrastructure.crm.highlevel_client import HighLevelClient
from clicktracker.infrastructure.resilience.api_retry import ApiRetryService
from clicktracker.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

BASE_URL = "https://crm.test/v1"
LOCATION_ID = "loc-123"

FIELD_DEFINITIONS_PAYLOAD = {
    "customFields": [
        {"id": "f1", "name": "Click Count", "fieldKey": "contact.pnl_click_count"},
        {"id": "f2", "name": "Source", "fieldKey": "lead_source"},
        {"id": "f3", "name": "Broken"},  # no fieldKey: ignored
    ]
}


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeCrm:
    """Routes requests to per-path handlers and records every request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.routes["GET /custom-fields/"] = lambda request: httpx.Response(200, json=FIELD_DEFINITIONS_PAYLOAD)

    def on(self, method: str, path: str, handler: Any) -> None:
        """Registers a handler: a callable, an httpx.Response, or a list of them (consumed in order)."""
        if isinstance(handler, list):
            queue = list(handler)

            def from_queue(request: httpx.Request) -> httpx.Response:
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                return item

            self.routes[f"{method} {path}"] = from_queue
        elif isinstance(handler, httpx.Response):
            self.routes[f"{method} {path}"] = lambda request: handler
        else:
            self.routes[f"{method} {path}"] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/v1"):]
        handler = self.routes.get(f"{request.method} {path}")
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests
                if r.method == method and r.url.path == f"/v1{path}"]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_crm() -> FakeCrm:
    return FakeCrm()


@pytest.fixture
def make_client(fake_crm, clock, sleep_recorder):
    """Builds a HighLevelClient talking to fake_crm through httpx.MockTransport."""

    def factory(max_requests: int = 100, max_retries: int = 3,
                rate_limiter: Optional[SlidingWindowRateLimiter] = None,
                timeout: float = 30.0) -> HighLevelClient:
        return HighLevelClient(
            api_key="test-api-key",
            location_id=LOCATION_ID,
            base_url=BASE_URL,
            timeout=timeout,
            rate_limiter=rate_limiter or SlidingWindowRateLimiter(max_requests, 60, clock=clock),
            retry_service=ApiRetryService(max_retries=max_retries, base_delay=1.0,
                                          sleep=sleep_recorder, jitter=lambda: 0.0),
            transport=httpx.MockTransport(fake_crm),
        )

    return factory


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps configuration state from leaking between tests."""
    monkeypatch.setattr(settings, "_config", {})
    monkeypatch.setattr(settings, "_loaded", True)
    for name in ("GHL_API_KEY", "GHL_LOCATION_ID", "GHL_BASE_URL", "API_MAX_RETRIES",
                 "GHL_RATE_LIMIT_WINDOW", "PORT", "LOGGING_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
    settings.clear_test_config()
