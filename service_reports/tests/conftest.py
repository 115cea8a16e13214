"""
Shared fixtures for Report Service tests.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from prometheus_client import CollectorRegistry

from shared.config import ServiceConfig
from shared.errors import ArtifactError, UpstreamError
from shared.metrics import MetricsCollector
from service_reports.app.domain.models import Entity, EntitySummary, ReportMetadata

BASE_URL = "http://upstream.test/api/v1"

LOGIN_COOKIES = [
    "accessToken=access-1; Path=/; HttpOnly; SameSite=Strict",
    "refreshToken=refresh-1; Path=/; HttpOnly",
    "csrfToken=csrf-1; Path=/",
]

STUDENT_42 = {
    "id": 42,
    "name": "John Doe",
    "email": "john@example.com",
    "systemAccess": True,
    "phone": "555-0100",
    "gender": "Male",
    "class": "10",
    "section": "A",
    "roll": 7,
    "fatherName": "Richard Doe",
    "currentAddress": "1 Main St",
}


def envelope(data, success: bool = True, message: str = "ok") -> Dict:
    return {"success": success, "data": data, "message": message}


def json_response(status_code: int, payload, headers: Optional[List] = None) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers=[("content-type", "application/json")] + list(headers or []),
    )


def login_response(cookies: Optional[List[str]] = None) -> httpx.Response:
    return json_response(
        200,
        envelope({"id": 1}),
        headers=[("set-cookie", value) for value in (cookies if cookies is not None else LOGIN_COOKIES)],
    )


class RecordingHandler:
    """MockTransport handler that records requests and dispatches by path."""

    def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/api/v1"):] if request.url.path.startswith("/api/v1") else request.url.path
        handler = self.routes.get(path) or self.routes.get("*")
        if handler is None:
            return json_response(404, {"success": False, "message": "not found"})
        return handler(request)

    def count(self, path: str) -> int:
        return sum(1 for request in self.requests if request.url.path.endswith(path))


class FakeUpstream:
    """In-memory UpstreamGateway."""

    def __init__(self, entities: Optional[Dict[int, Entity]] = None, healthy: bool = True):
        self.entities = entities if entities is not None else {42: Entity.model_validate(STUDENT_42)}
        self.healthy = healthy
        self.fetch_calls: List[int] = []
        self.list_calls: List[Dict[str, str]] = []
        self.closed = False
        self.delay = 0.0
        self.list_error: Optional[Exception] = None

    async def fetch_entity(self, entity_id: int) -> Entity:
        self.fetch_calls.append(entity_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if entity_id not in self.entities:
            raise UpstreamError(404, "Student not found")
        return self.entities[entity_id]

    async def list_entities(self, filters=None) -> List[EntitySummary]:
        self.list_calls.append(dict(filters or {}))
        if self.list_error is not None:
            raise self.list_error
        return [EntitySummary.model_validate(entity.model_dump(by_alias=True)) for entity in self.entities.values()]

    async def health_probe(self) -> None:
        if not self.healthy:
            raise UpstreamError(503, "Upstream API is experiencing server errors (status: 503)")

    async def close(self) -> None:
        self.closed = True


class FakeSynthesizer:
    """DocumentSynthesizer that writes a small file into ``directory``."""

    def __init__(self, directory, *, fail_with: Optional[Exception] = None, cleanup_error: Optional[Exception] = None):
        self.directory = directory
        self.fail_with = fail_with
        self.cleanup_error = cleanup_error
        self.synthesized: List[ReportMetadata] = []
        self.cleanup_calls = 0

    async def synthesize(self, entity: Entity, metadata: ReportMetadata) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.synthesized.append(metadata)
        path = self.directory / f"{metadata.report_id}.json"
        path.write_text(json.dumps({"name": entity.name}))
        return str(path)

    async def cleanup(self) -> int:
        self.cleanup_calls += 1
        if self.cleanup_error is not None:
            raise self.cleanup_error
        return 2


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def metrics():
    return MetricsCollector("reports-test", registry=CollectorRegistry())


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def fake_synthesizer(tmp_path):
    return FakeSynthesizer(tmp_path)


@pytest.fixture
def service_config(tmp_path):
    return ServiceConfig(
        upstream_base_url=BASE_URL,
        upstream_identity="svc-reports",
        upstream_secret="s3cret",
        output_dir=str(tmp_path / "reports"),
        cleanup_enabled=False,
        log_format="console",
        retry_delay=0.0,
    )
