"""WebDAV transport: PROPFIND, MKCOL, PUT and GET against a single sync document."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import random
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from promptsync.exceptions import (
    AuthFailedError,
    MalformedRemoteDocumentError,
    RemoteNotFoundError,
    ServerError,
    TransportFailureError,
)
from promptsync.schemas.sync import SyncDocument

if TYPE_CHECKING:
    from promptsync.config import Settings
    from promptsync.schemas.sync import WebDAVCredentials

logger = logging.getLogger(__name__)

_MAX_BACKOFF_SECONDS = 30.0


def basic_auth_header(username: str, password: str) -> str:
    """Build the value of an ``Authorization: Basic`` header."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


def _raise_for_status(response: httpx.Response) -> None:
    """Map a non-success response onto the sync error taxonomy."""
    if response.is_success:
        return
    if response.status_code == 401:
        raise AuthFailedError(f"HTTP {response.status_code}")
    raise ServerError(response.status_code)


def _transport_error_text(exc: httpx.TransportError) -> str:
    text = str(exc)
    return text or type(exc).__name__


class WebDAVClient:
    """Stateless WebDAV client.

    Every call builds its own ``Authorization`` header and opens a fresh
    ``httpx.AsyncClient``; nothing is shared between calls.

    Args:
        timeout: Per-request timeout in seconds, None for no timeout.
        max_retries: Extra attempts after a transport-level failure. HTTP error
            statuses are never retried.
        retry_backoff: Initial backoff in seconds, doubled for each attempt.
        transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout: float | None = 30.0,
        max_retries: int = 0,
        retry_backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_retries < 0:
            msg = f"max_retries must be >= 0, got {max_retries}"
            raise ValueError(msg)
        self._timeout = timeout
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> WebDAVClient:
        return cls(
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            retry_backoff=settings.retry_backoff_seconds,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        url: str,
        credentials: WebDAVCredentials,
        *,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        auth = basic_auth_header(credentials.username, credentials.password)
        request_headers = {"Authorization": auth}
        if headers:
            request_headers.update(headers)

        attempt = 0
        while True:
            try:
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport
                ) as client:
                    response = await client.request(
                        method, url, headers=request_headers, content=content
                    )
            except httpx.TransportError as exc:
                if attempt >= self._max_retries:
                    logger.warning("WebDAV %s %s failed: %s", method, url, exc)
                    raise TransportFailureError(_transport_error_text(exc)) from exc
                delay = min(_MAX_BACKOFF_SECONDS, self._retry_backoff * (2**attempt))
                delay *= 1.0 + random.uniform(-0.25, 0.25)
                logger.info(
                    "WebDAV %s %s failed (%s), retrying in %.2fs (attempt %d/%d)",
                    method,
                    url,
                    exc,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                attempt += 1
                await asyncio.sleep(delay)
                continue

            logger.debug("WebDAV %s %s -> %d", method, url, response.status_code)
            return response

    async def test_connection(self, credentials: WebDAVCredentials) -> None:
        """Check that the server is reachable and accepts the credentials.

        Raises:
            AuthFailedError: The server answered 401.
            ServerError: Any other non-2xx answer (207 Multi-Status is success).
            TransportFailureError: The server could not be reached.
        """
        response = await self._request(
            "PROPFIND",
            credentials.base_url,
            credentials,
            headers={"Depth": "0", "Content-Type": "application/xml"},
        )
        _raise_for_status(response)
        logger.info(
            "WebDAV connection to %s successful (%d)", credentials.base_url, response.status_code
        )

    async def ensure_collection(self, credentials: WebDAVCredentials) -> None:
        """Best-effort MKCOL of the sync document's parent collection. Never raises."""
        collection_url = credentials.collection_url
        if collection_url is None:
            return
        try:
            response = await self._request("MKCOL", collection_url, credentials)
        except TransportFailureError as exc:
            logger.debug("MKCOL %s failed, ignoring: %s", collection_url, exc)
            return
        # 405 Method Not Allowed is the usual answer when the collection exists.
        logger.debug("MKCOL %s -> %d", collection_url, response.status_code)

    async def upload(self, credentials: WebDAVCredentials, document: SyncDocument) -> None:
        """PUT the whole sync document, replacing the remote file.

        Raises:
            AuthFailedError, ServerError, TransportFailureError
        """
        body = json.dumps(document.to_wire(), ensure_ascii=False, indent=2).encode("utf-8")
        response = await self._request(
            "PUT",
            credentials.document_url,
            credentials,
            headers={"Content-Type": "application/json"},
            content=body,
        )
        _raise_for_status(response)
        logger.info(
            "Uploaded %d prompt(s), %d categories to %s",
            len(document.prompts),
            len(document.categories),
            credentials.document_url,
        )

    async def download(self, credentials: WebDAVCredentials) -> SyncDocument:
        """GET and validate the sync document.

        Raises:
            RemoteNotFoundError: The server answered 404.
            MalformedRemoteDocumentError: The body is not a usable sync document.
            AuthFailedError, ServerError, TransportFailureError
        """
        response = await self._request("GET", credentials.document_url, credentials)
        if response.status_code == 404:
            raise RemoteNotFoundError(credentials.sync_path)
        _raise_for_status(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedRemoteDocumentError("response is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedRemoteDocumentError("document is not a JSON object")
        if not isinstance(data.get("prompts"), list):
            raise MalformedRemoteDocumentError("'prompts' is missing or not a list")

        try:
            document = SyncDocument.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise MalformedRemoteDocumentError(f"{location}: {first['msg']}") from exc

        logger.info(
            "Downloaded %d prompt(s), %d categories from %s",
            len(document.prompts),
            len(document.categories),
            credentials.document_url,
        )
        return document
