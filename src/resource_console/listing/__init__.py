"""List views: paginated, searchable page state per resource.

Usage:
    >>> from resource_console.listing import ListController, PageState
"""

from resource_console.listing.controller import DEFAULT_PAGE_SIZE, ListController, PageState

__all__ = ["ListController", "PageState", "DEFAULT_PAGE_SIZE"]
