"""HTTP transport for the fileservice upload route."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional
from urllib.parse import quote

import httpx

from ..errors import ErrorKind, TransportError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
DEFAULT_TIMEOUT = 60.0
AUTH_HEADER = "X-Auth-Token"
FILE_EXISTS_MARKER = "File already exists"


def classify_response(response: httpx.Response) -> Optional[TransportError]:
    """Map an HTTP response to a TransportError, or None on success."""
    status = response.status_code
    if 200 <= status < 300:
        return None

    detail = f"{response.request.method} {response.request.url.path}"
    if status in (401, 403):
        return TransportError(ErrorKind.UNAUTHORIZED, f"not authorized for {detail}", status)
    if status == 404:
        return TransportError(ErrorKind.NOT_FOUND, f"not found: {detail}", status)
    if status == 409:
        return TransportError(ErrorKind.ALREADY_EXISTS, f"already exists: {detail}", status)
    if status == 429:
        return TransportError(ErrorKind.SERVER_ERROR, f"rate limited on {detail}", status)
    if status >= 500:
        # The fileservice reports an existing target as a 500 with this text
        body = _safe_text(response)
        if FILE_EXISTS_MARKER in body:
            return TransportError(ErrorKind.ALREADY_EXISTS, f"already exists: {detail}", status)
        message = f"server error on {detail}"
        if body:
            message = f"{message}: {body[:200]}"
        return TransportError(ErrorKind.SERVER_ERROR, message, status)
    return TransportError(ErrorKind.CLIENT_ERROR, f"request rejected: {detail}", status)


def _safe_text(response: httpx.Response) -> str:
    try:
        return response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return ""


def _open_local(local_path: Path) -> tuple[BinaryIO, int]:
    """Open a local file for streaming, raising LOCAL_IO errors up front."""
    try:
        if not local_path.is_file():
            raise TransportError.local_io(f"not a regular file: {local_path}")
        size = local_path.stat().st_size
        handle = open(local_path, "rb")
    except OSError as exc:
        raise TransportError.local_io(f"cannot read {local_path}: {exc}") from exc
    return handle, size


async def _iter_file(handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    while True:
        chunk = await asyncio.to_thread(handle.read, chunk_size)
        if not chunk:
            break
        yield chunk


class HTTPTransport:
    """
    HTTP transport against the fileservice upload route.

    Implements ITransport protocol. One instance owns one httpx.AsyncClient
    and is scoped to a single upload run.

    Usage:
        async with HTTPTransport(endpoint, token) as transport:
            exists = await transport.check_exists("Storage/me/persistent/a.txt")
            await transport.put_file(Path("a.txt"), "Storage/me/persistent/a.txt")
    """

    def __init__(
        self,
        endpoint: str,
        token: str,
        overwrite: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        auth_header: str = AUTH_HEADER,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._endpoint = endpoint.rstrip("/")
        self._token = token
        self._overwrite = overwrite
        self._timeout = timeout
        self._auth_header = auth_header
        self._client = client
        self._owns_client = client is None

    @property
    def headers(self) -> dict:
        if self._auth_header.lower() == "authorization":
            return {"Authorization": f"Bearer {self._token}"}
        return {self._auth_header: self._token}

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self

    async def __aexit__(self, *args):
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def url_for(self, remote_path: str) -> str:
        return f"{self._endpoint}/{quote(remote_path.lstrip('/'), safe='/')}"

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPTransport not initialized. Use 'async with' context.")
        return self._client

    async def check_exists(self, remote_path: str) -> bool:
        client = self._require_client()
        url = self.url_for(remote_path)
        logger.debug(f"HEAD {url}")
        try:
            response = await client.head(url, headers=self.headers)
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise TransportError.network_error(f"HEAD {remote_path} failed: {exc}") from exc

        if response.status_code == 404:
            return False
        error = classify_response(response)
        if error is not None:
            raise error
        return True

    async def put_file(self, local_path: Path, remote_path: str) -> int:
        client = self._require_client()
        local_path = Path(local_path)
        url = self.url_for(remote_path)
        params = {"quiet": "true"} if self._overwrite else None

        handle, size = _open_local(local_path)
        try:
            logger.debug(f"PUT {url} ({size} bytes)")
            response = await client.put(
                url,
                params=params,
                content=_iter_file(handle),
                headers={**self.headers, "Content-Length": str(size)},
            )
        except OSError as exc:
            raise TransportError.local_io(f"error reading {local_path}: {exc}") from exc
        except (httpx.RequestError, httpx.TimeoutException) as exc:
            raise TransportError.network_error(f"PUT {remote_path} failed: {exc}") from exc
        finally:
            handle.close()

        error = classify_response(response)
        if error is not None:
            raise error
        return size
