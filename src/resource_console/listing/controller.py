"""Paginated, searchable list view over one resource.

Usage:
    from resource_console.listing.controller import ListController

    listing = ListController(registry.get("drugs"), gateway)
    await listing.load()
    await listing.search("aspirin")
    for row in listing.rows():
        print(row)
"""

import logging
from typing import Any

from pydantic import BaseModel, Field

from resource_console.descriptors.models import ResourceDescriptor
from resource_console.errors import GatewayError
from resource_console.gateway.base import ResourceClient

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class PageState(BaseModel):
    """What the list view shows."""

    items: list[dict[str, Any]] = Field(default_factory=list)
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0
    keyword: str | None = None
    error: str | None = None


class ListController:
    """Owns the ``PageState`` of one resource and keeps it in sync with the backend.

    Failures never raise: the page empties and ``state.error`` carries the
    message to show.

    Args:
        descriptor: The resource to list.
        gateway: Any ``ResourceClient``.
        page_size: Initial page size.
        base_url: Origin used to render image columns.
    """

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        gateway: ResourceClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        base_url: str = "",
    ) -> None:
        self.descriptor = descriptor
        self._gateway = gateway
        self._base_url = base_url
        self.state = PageState(page_size=page_size)

    async def load(
        self,
        page: int | None = None,
        page_size: int | None = None,
        keyword: str | None = None,
    ) -> PageState:
        """Fetch a page (defaults: the current page, size and keyword)."""
        if page is not None:
            self.state.page = max(1, page)
        if page_size is not None:
            self.state.page_size = max(1, page_size)
        if keyword is not None:
            self.state.keyword = keyword.strip() or None

        try:
            listing = await self._gateway.list(
                self.descriptor.base_path,
                page=self.state.page,
                page_size=self.state.page_size,
                keyword=self.state.keyword,
                **self.descriptor.default_params,
            )
        except GatewayError as e:
            logger.warning(f"[Listing] Loading {self.descriptor.key} failed: {e.message}")
            self.state.items = []
            self.state.total = 0
            self.state.page = 1
            self.state.error = e.message
            return self.state

        self.state.items = listing.items
        self.state.total = listing.total
        self.state.error = None
        return self.state

    async def search(self, keyword: str) -> PageState:
        self.state.keyword = keyword.strip() or None
        return await self.load(page=1)

    async def clear_search(self) -> PageState:
        self.state.keyword = None
        return await self.load(page=1)

    async def change_page(self, page: int, page_size: int | None = None) -> PageState:
        return await self.load(page=page, page_size=page_size)

    async def remove(self, record: dict[str, Any]) -> bool:
        """Delete *record* by primary key, then re-fetch the current page.

        Returns:
            True when the delete succeeded.
        """
        record_id = record.get(self.descriptor.primary_key)
        try:
            await self._gateway.remove(self.descriptor.base_path, record_id)
        except GatewayError as e:
            logger.warning(f"[Listing] Deleting {self.descriptor.key} #{record_id} failed: {e.message}")
            self.state.error = e.message
            return False
        await self.load()
        return True

    async def run_action(self, record: dict[str, Any], name: str) -> bool:
        """Run the descriptor's row action *name* on *record*, then re-fetch.

        Returns:
            True when the backend accepted the action.

        Raises:
            KeyError: If the resource declares no action *name*.
        """
        action = self.descriptor.action(name)
        record_id = record.get(self.descriptor.primary_key)
        try:
            await self._gateway.invoke(
                self.descriptor.base_path, record_id, action.path, method=action.method
            )
        except GatewayError as e:
            logger.warning(
                f"[Listing] Action {name} on {self.descriptor.key} #{record_id} failed: {e.message}"
            )
            self.state.error = e.message
            return False
        logger.info(f"[Listing] Action {name} on {self.descriptor.key} #{record_id} done")
        await self.load()
        return True

    async def after_mutation(self) -> PageState:
        """Re-fetch the current page after a create or update."""
        return await self.load()

    def rows(self) -> list[dict[str, str]]:
        """Current items rendered through the descriptor's columns (title -> text)."""
        return [
            {column.title: column.render(item, self._base_url) for column in self.descriptor.columns}
            for item in self.state.items
        ]
