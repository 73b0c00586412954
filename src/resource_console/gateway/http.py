"""Async HTTP gateway.

Provides ``AsyncCrudGateway``, an implementation of the ``ResourceClient``
protocol over ``httpx.AsyncClient``, and ``BearerTokenAuth``, which attaches
the externally supplied access token to every request.

Usage:
    from resource_console.gateway.http import AsyncCrudGateway

    gateway = AsyncCrudGateway(
        "http://localhost:5000",
        token_provider=lambda: os.environ.get("CONSOLE_TOKEN"),
    )

    page = await gateway.list("/api/drugs", page=1, page_size=10)
    await gateway.close()
"""

import logging
from collections.abc import AsyncIterator, Callable, Generator
from typing import Any

import httpx

from resource_console.errors import AuthenticationRequired, GatewayError
from resource_console.gateway.base import ProgressCallback
from resource_console.gateway.envelope import (
    ListPage,
    extract_error_message,
    extract_upload_path,
    normalize_list_response,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]

DEFAULT_TIMEOUT = 15.0
UPLOAD_CHUNK_SIZE = 64 * 1024


class BearerTokenAuth(httpx.Auth):
    """Attach ``Authorization: Bearer <token>`` from a token provider.

    The provider is consulted on every request so a refreshed or cleared
    token takes effect immediately. When it returns nothing, the request is
    sent unauthenticated and a warning is logged.
    """

    def __init__(self, token_provider: TokenProvider) -> None:
        self._token_provider = token_provider

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self._token_provider()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(
                f"[Gateway] No access token available, sending {request.method} "
                f"{request.url.path} without credentials"
            )
        yield request


class AsyncCrudGateway:
    """httpx implementation of the ``ResourceClient`` protocol.

    Args:
        base_url: Backend origin (e.g., ``"http://localhost:5000"``).
        token_provider: Callable returning the current access token or ``None``.
        timeout: Transport timeout in seconds.
        on_unauthorized: Called once per HTTP 401, before
            ``AuthenticationRequired`` is raised (e.g. to discard the token).
        transport: Optional custom transport (tests pass ``httpx.MockTransport``).

    Example:
        gateway = AsyncCrudGateway("http://localhost:5000", token_provider=store.get)
        page = await gateway.list("/api/departments", keyword="cardio")
        await gateway.close()
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        on_unauthorized: Callable[[], None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            auth=BearerTokenAuth(token_provider or (lambda: None)),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # CRUD Methods
    # ------------------------------------------------------------------

    async def list(
        self,
        base_path: str,
        page: int = 1,
        page_size: int = 10,
        keyword: str | None = None,
        **extra: Any,
    ) -> ListPage:
        """Fetch one page and normalize its envelope."""
        params: dict[str, Any] = {"page": page, "pageSize": page_size}
        if keyword is not None and keyword.strip():
            params["keyword"] = keyword.strip()
        params.update({k: v for k, v in extra.items() if v is not None})

        body = await self._request("GET", base_path, params=params)
        return normalize_list_response(body)

    async def get(self, base_path: str, id: Any) -> dict:
        """Fetch one record by identifier."""
        body = await self._request("GET", self._item_path(base_path, id))
        return body if isinstance(body, dict) else {}

    async def fetch(self, path: str, **params: Any) -> Any:
        """Plain ``GET`` returning the decoded body."""
        return await self._request("GET", path, params=params or None)

    async def create(self, base_path: str, payload: dict) -> dict:
        """Create a record (``POST {base}``)."""
        body = await self._request("POST", base_path, json=payload)
        return body if isinstance(body, dict) else {}

    async def update(self, base_path: str, id: Any, payload: dict) -> dict:
        """Replace a record (``PUT {base}/{id}``)."""
        body = await self._request("PUT", self._item_path(base_path, id), json=payload)
        return body if isinstance(body, dict) else {}

    async def remove(self, base_path: str, id: Any) -> None:
        """Delete a record (``DELETE {base}/{id}``)."""
        await self._request("DELETE", self._item_path(base_path, id))

    async def invoke(self, base_path: str, id: Any, action: str, method: str = "POST") -> Any:
        """Record action (``{method} {base}/{id}/{action}``) returning the decoded body."""
        path = f"{self._item_path(base_path, id)}/{action.strip('/')}"
        return await self._request(method.upper(), path)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(
        self,
        endpoint: str,
        filename: str,
        content: bytes,
        content_type: str,
        category: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload one file as multipart form data, reporting sent bytes.

        The multipart body is encoded up front so its length is known; it
        is then streamed in chunks and each chunk advances the progress
        percentage.
        """
        params = {"category": category} if category else None
        encoded = self._client.build_request(
            "POST",
            endpoint,
            files={"file": (filename, content, content_type)},
        )
        body = encoded.read()
        headers = {
            "Content-Type": encoded.headers["Content-Type"],
            "Content-Length": str(len(body)),
        }

        result = await self._request(
            "POST",
            endpoint,
            params=params,
            headers=headers,
            content=_progress_stream(body, on_progress),
        )
        path = extract_upload_path(result)
        if path is None:
            raise GatewayError("Upload response did not include a file path", payload=result)
        if on_progress is not None:
            on_progress(100)
        return path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying ``httpx.AsyncClient``."""
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncCrudGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _item_path(base_path: str, id: Any) -> str:
        return f"{base_path.rstrip('/')}/{id}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request; decode the body or raise ``GatewayError``."""
        logger.debug(f"[Gateway] {method} {path}")
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"[Gateway] {method} {path} failed: {e}")
            raise GatewayError(str(e) or type(e).__name__) from e

        body = _decode(response)
        if response.is_success:
            return body

        message = extract_error_message(body)
        logger.warning(f"[Gateway] {method} {path} -> {response.status_code}: {message}")
        if response.status_code == 401:
            if self._on_unauthorized is not None:
                self._on_unauthorized()
            raise AuthenticationRequired(message, status_code=401, payload=body)
        raise GatewayError(message, status_code=response.status_code, payload=body)


def _decode(response: httpx.Response) -> Any:
    """Decode a response body: JSON when possible, else text, else ``None``."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


async def _progress_stream(
    body: bytes, on_progress: ProgressCallback | None
) -> AsyncIterator[bytes]:
    total = len(body) or 1
    sent = 0
    for start in range(0, len(body), UPLOAD_CHUNK_SIZE):
        chunk = body[start:start + UPLOAD_CHUNK_SIZE]
        sent += len(chunk)
        if on_progress is not None:
            # 100 is reported only once the server has answered
            on_progress(min(99, sent * 100 // total))
        yield chunk
