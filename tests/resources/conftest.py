from __future__ import annotations

from typing import Any, TypeAlias

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from kcprovider.client import KakaoCloudClient
from kcprovider.config import Timeouts
from kcprovider.infra.http import HttpClient, StaticTokenAuth
from kcprovider.resources import cluster, image, image_member, node_pool, scheduled_scaling

Step: TypeAlias = tuple[int, Any]


class FakeApi:
    """Scripted REST backend.

    Each (method, path) replays its steps in order and keeps answering
    with the last one. Unscripted routes answer 404. String payloads
    are served as HTML.
    """

    def __init__(self) -> None:
        self.script: dict[tuple[str, str], list[Step]] = {}
        self.requests: list[tuple[str, str, Any]] = []

    def on(self, method: str, path: str, *steps: Step) -> None:
        self.script[(method, path)] = list(steps)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.requests if (m, p) == (method, path))

    def bodies(self, method: str, path: str) -> list[Any]:
        return [b for m, p, b in self.requests if (m, p) == (method, path)]

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handle)
        return app

    async def _handle(self, request: web.Request) -> web.Response:
        body = await request.json() if request.can_read_body else None
        self.requests.append((request.method, request.path, body))

        steps = self.script.get((request.method, request.path))
        if not steps:
            return web.json_response({"error": {"message": "resource not found"}}, status=404)
        status, payload = steps.pop(0) if len(steps) > 1 else steps[0]
        if payload is None:
            return web.Response(status=status)
        if isinstance(payload, str):
            return web.Response(status=status, text=payload, content_type="text/html")
        return web.json_response(payload, status=status)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
async def kc(api: FakeApi, fast_retry):
    srv = TestServer(api.app())
    await srv.start_server()
    url = f"http://{srv.host}:{srv.port}"
    auth = StaticTokenAuth("test-token")
    client = KakaoCloudClient(
        auth,
        image=HttpClient(url, auth),
        kubernetes_engine=HttpClient(url, auth),
        timeouts=Timeouts(create=5, read=5, update=5, delete=5),
        retry=fast_retry,
    )
    yield client
    await client.close()
    await srv.close()


@pytest.fixture(autouse=True)
def fast_polling(monkeypatch):
    for module in (cluster, node_pool, scheduled_scaling, image, image_member):
        monkeypatch.setattr(module, "POLL_INTERVAL", 0.001)
        if hasattr(module, "DELETE_POLL_INTERVAL"):
            monkeypatch.setattr(module, "DELETE_POLL_INTERVAL", 0.001)
