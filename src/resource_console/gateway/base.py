"""Resource client protocol definition.

Defines the ``ResourceClient`` Protocol that every gateway implements.
All methods are ``async def`` -- the engine is async-first.

Usage:
    from resource_console.gateway.base import ResourceClient

    async def do_work(client: ResourceClient) -> None:
        page = await client.list("/api/drugs", page=1, page_size=10)
        created = await client.create("/api/drugs", {"commonName": "Aspirin"})
        await client.update("/api/drugs", created["id"], {"commonName": "Aspirin"})
        await client.remove("/api/drugs", created["id"])
        await client.close()
"""

from collections.abc import Callable
from typing import Any, Protocol

from resource_console.gateway.envelope import ListPage

ProgressCallback = Callable[[int], None]


class ResourceClient(Protocol):
    """REST collection client interface that all gateways must implement.

    Collections live under a base path and follow one convention:
    ``GET {base}`` (paginated list), ``GET {base}/{id}``, ``POST {base}``,
    ``PUT {base}/{id}`` and ``DELETE {base}/{id}``.

    All methods are async -- callers must ``await`` every operation.
    """

    async def list(
        self,
        base_path: str,
        page: int = 1,
        page_size: int = 10,
        keyword: str | None = None,
        **extra: Any,
    ) -> ListPage:
        """Fetch one page of a collection.

        Args:
            base_path: Collection path (e.g., ``"/api/drugs"``).
            page: 1-based page number.
            page_size: Items per page.
            keyword: Optional search keyword; blank keywords are not sent.
            **extra: Additional query parameters (resource default filters).

        Returns:
            ``ListPage`` with the items and total count. An empty backend
            yields ``ListPage(items=[], total=0)``.

        Raises:
            GatewayError: On any non-success response.

        Example:
            page = await client.list("/api/users", page=2, userTypeId=1)
        """
        ...

    async def get(self, base_path: str, id: Any) -> dict:
        """Fetch one record by identifier.

        Raises:
            GatewayError: On any non-success response.
        """
        ...

    async def fetch(self, path: str, **params: Any) -> Any:
        """Issue a plain ``GET`` against *path* and return the decoded body.

        Used for lookups outside the collection convention, such as the
        child-region list ``/api/provinces/{id}/cities``.

        Raises:
            GatewayError: On any non-success response.
        """
        ...

    async def create(self, base_path: str, payload: dict) -> dict:
        """Create a record and return the server's representation.

        Raises:
            GatewayError: On any non-success response (e.g. a duplicate key).
        """
        ...

    async def update(self, base_path: str, id: Any, payload: dict) -> dict:
        """Replace a record by identifier (HTTP ``PUT``).

        Raises:
            GatewayError: On any non-success response.
        """
        ...

    async def remove(self, base_path: str, id: Any) -> None:
        """Delete a record by identifier.

        Raises:
            GatewayError: On any non-success response.
        """
        ...

    async def invoke(self, base_path: str, id: Any, action: str, method: str = "POST") -> Any:
        """Run a record action (``{method} {base}/{id}/{action}``), such as a freeze toggle.

        Raises:
            GatewayError: On any non-success response.
        """
        ...

    async def upload(
        self,
        endpoint: str,
        filename: str,
        content: bytes,
        content_type: str,
        category: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Upload one file as multipart form data.

        Args:
            endpoint: Upload endpoint (e.g., ``"/api/upload/image"``).
            filename: Original file name.
            content: File bytes.
            content_type: MIME type of the file.
            category: Optional storage partition tag (``?category=``).
            on_progress: Called with the sent percentage (0..100).

        Returns:
            The server-relative path of the stored file.

        Raises:
            GatewayError: On any non-success response or a body without a path.
        """
        ...

    async def close(self) -> None:
        """Release the underlying connection pool."""
        ...
