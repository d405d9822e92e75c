"""Shared test fixtures for promptsync."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from promptsync.config import Settings
from promptsync.schemas.sync import WebDAVCredentials
from promptsync.services.settings_service import SettingsService
from promptsync.services.sync_service import SyncService
from promptsync.storage import InMemoryStore, StorageScopes
from promptsync.webdav.client import WebDAVClient, basic_auth_header

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

TEST_SERVER_URL = "https://dav.example.com/remote.php/dav/"
TEST_USERNAME = "alice"
TEST_PASSWORD = "correct-horse"
DOCUMENT_PATH = "/remote.php/dav/quick-prompt/prompts.json"
COLLECTION_PATH = "/remote.php/dav/quick-prompt"

_MULTISTATUS = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:multistatus xmlns:d="DAV:"><d:response><d:href>/remote.php/dav/</d:href>'
    "<d:propstat><d:status>HTTP/1.1 200 OK</d:status></d:propstat></d:response>"
    "</d:multistatus>"
)


class FakeWebDAVServer:
    """Minimal in-memory WebDAV server served through ``httpx.MockTransport``.

    ``status_overrides`` forces a status code per HTTP method, ``fail_with``
    raises a transport error for every request, and ``gate`` holds PUT/GET
    requests until the event is set.
    """

    def __init__(self, username: str = TEST_USERNAME, password: str = TEST_PASSWORD) -> None:
        self.expected_auth = basic_auth_header(username, password)
        self.files: dict[str, bytes] = {}
        self.collections: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.status_overrides: dict[str, int] = {}
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def methods(self) -> list[str]:
        return [request.method for request in self.requests]

    def document(self, path: str = DOCUMENT_PATH) -> dict[str, Any]:
        return json.loads(self.files[path])

    def put_document(self, data: Any, path: str = DOCUMENT_PATH) -> None:
        self.files[path] = json.dumps(data).encode("utf-8")

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if self.gate is not None and request.method in {"PUT", "GET"}:
            await self.gate.wait()
        if request.headers.get("Authorization") != self.expected_auth:
            return httpx.Response(401)
        if request.method in self.status_overrides:
            return httpx.Response(self.status_overrides[request.method])

        path = request.url.path
        if request.method == "PROPFIND":
            return httpx.Response(207, text=_MULTISTATUS)
        if request.method == "MKCOL":
            if path in self.collections:
                return httpx.Response(405)
            self.collections.add(path)
            return httpx.Response(201)
        if request.method == "PUT":
            existed = path in self.files
            self.files[path] = request.content
            return httpx.Response(204 if existed else 201)
        if request.method == "GET":
            if path not in self.files:
                return httpx.Response(404)
            return httpx.Response(
                200, content=self.files[path], headers={"Content-Type": "application/json"}
            )
        return httpx.Response(405)


@pytest.fixture
def server() -> FakeWebDAVServer:
    return FakeWebDAVServer()


@pytest.fixture
def credentials() -> WebDAVCredentials:
    return WebDAVCredentials(
        server_url=TEST_SERVER_URL,
        username=TEST_USERNAME,
        password=TEST_PASSWORD,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        poll_interval_seconds=0.01,
        notification_ttl_seconds=0.05,
        reload_delay_seconds=0.01,
    )


@pytest.fixture
def webdav_client(server: FakeWebDAVServer) -> WebDAVClient:
    return WebDAVClient(timeout=5.0, transport=server.transport())


@pytest.fixture
def scopes() -> StorageScopes:
    return StorageScopes(settings=InMemoryStore(), local=InMemoryStore())


@pytest.fixture
async def sync_service(
    scopes: StorageScopes,
    webdav_client: WebDAVClient,
    test_settings: Settings,
    credentials: WebDAVCredentials,
) -> AsyncGenerator[SyncService, None]:
    await SettingsService(scopes.settings).save_credentials(credentials)
    service = SyncService(scopes=scopes, client=webdav_client, settings=test_settings)
    yield service
    await service.aclose()
