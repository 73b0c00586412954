"""Resource registry: a lookup table of descriptors keyed by resource key.

Loaded once at startup (see ``descriptors.loader.load_registry``); descriptors
are immutable after registration.

Usage:
    from resource_console.descriptors.registry import ResourceRegistry

    registry = ResourceRegistry([drugs, departments])
    descriptor = registry.get("drugs")
"""

from collections.abc import Iterable, Iterator

from resource_console.descriptors.models import ResourceDescriptor
from resource_console.errors import DescriptorError, ResourceNotFoundError


class ResourceRegistry:
    """Ordered, keyed collection of ``ResourceDescriptor`` records."""

    def __init__(self, descriptors: Iterable[ResourceDescriptor] = ()) -> None:
        self._by_key: dict[str, ResourceDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: ResourceDescriptor) -> None:
        """Add *descriptor* to the registry.

        Raises:
            DescriptorError: If the key is already registered.
        """
        if descriptor.key in self._by_key:
            raise DescriptorError(f"Resource '{descriptor.key}' is already registered")
        self._by_key[descriptor.key] = descriptor

    def get(self, key: str) -> ResourceDescriptor:
        """Return the descriptor registered under *key*.

        Raises:
            ResourceNotFoundError: If no such resource exists.
        """
        try:
            return self._by_key[key]
        except KeyError:
            available = ", ".join(self._by_key) or "(none)"
            raise ResourceNotFoundError(
                f"Resource '{key}' not found. Available: {available}"
            ) from None

    def by_base_path(self, base_path: str) -> list[ResourceDescriptor]:
        """All descriptors bound to *base_path* (several views may share one)."""
        return [d for d in self._by_key.values() if d.base_path == base_path]

    def keys(self) -> list[str]:
        return list(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[ResourceDescriptor]:
        return iter(self._by_key.values())

    def __len__(self) -> int:
        return len(self._by_key)
