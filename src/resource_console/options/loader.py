"""Reference option loading.

Provides ``OptionLoader``, which fills selection controls from other
resources' collections and from child-region style dependent paths.

Usage:
    from resource_console.options.loader import OptionLoader

    loader = OptionLoader(gateway)
    options = await loader.load_all(descriptor)
    cities = await loader.load_dependent_options(descriptor, city_field, "11")
"""

import asyncio
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any

from resource_console.config.models import OptionSettings
from resource_console.descriptors.models import (
    FieldDescriptor,
    OptionEntry,
    ResourceDescriptor,
)
from resource_console.errors import GatewayError
from resource_console.gateway.base import ResourceClient
from resource_console.gateway.envelope import unwrap_collection
from resource_console.options.adapters import AdapterRegistry, default_adapters
from resource_console.values import is_blank, values_match

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass
class _DependentState:
    """Per-field cascade bookkeeping."""

    current: Any = _UNSET                 # governing value of the newest request
    loaded_value: Any = _UNSET            # governing value of the cached result
    loaded: list[OptionEntry] = dataclass_field(default_factory=list)


class OptionLoader:
    """Load (label, value) option sets for reference and dependent fields.

    Args:
        gateway: Any ``ResourceClient``.
        settings: Page sizes (default: ``OptionSettings()``).
        adapters: Label adapter registry (default: ``default_adapters()``).
    """

    def __init__(
        self,
        gateway: ResourceClient,
        settings: OptionSettings | None = None,
        adapters: AdapterRegistry | None = None,
    ) -> None:
        self._gateway = gateway
        self._settings = settings or OptionSettings()
        self._adapters = adapters or default_adapters()
        self._dependents: dict[tuple[str, str], _DependentState] = {}

    # ------------------------------------------------------------------
    # Reference options
    # ------------------------------------------------------------------

    def page_size_for(self, source: str) -> int:
        """Default page size for an option source (people lists get the large size)."""
        if any(marker in source for marker in self._settings.large_sources):
            return self._settings.large_page_size
        return self._settings.page_size

    async def load_options(
        self,
        descriptor: ResourceDescriptor,
        field: FieldDescriptor,
        page: int = 1,
        page_size: int | None = None,
        extra: dict[str, Any] | None = None,
    ) -> list[OptionEntry]:
        """Load the option set of a reference field.

        Fields without an option source return their static options.

        Raises:
            GatewayError: If the source request fails.
        """
        source = field.load_options_from
        if source is None:
            return list(field.options)

        params = {**field.load_options_params, **(extra or {})}
        size = page_size or self.page_size_for(source)
        listing = await self._gateway.list(source, page=page, page_size=size, **params)

        adapter = self._adapters.resolve(descriptor.key, field.name, source)
        entries = self._coerce(field, adapter(listing.items))
        logger.debug(
            f"[Options] {descriptor.key}.{field.name}: {len(entries)} option(s) from {source}"
        )
        return entries

    async def load_all(self, descriptor: ResourceDescriptor) -> dict[str, list[OptionEntry]]:
        """Load every reference field of *descriptor* concurrently.

        A failing source is logged and yields an empty list for that field only.
        """
        fields = [f for f in descriptor.form_fields if f.is_reference]
        results = await asyncio.gather(
            *(self.load_options(descriptor, f) for f in fields),
            return_exceptions=True,
        )

        loaded: dict[str, list[OptionEntry]] = {}
        for f, result in zip(fields, results):
            if isinstance(result, GatewayError):
                logger.warning(
                    f"[Options] Failed to load {descriptor.key}.{f.name} "
                    f"from {f.load_options_from}: {result.message}"
                )
                loaded[f.name] = []
            elif isinstance(result, BaseException):
                raise result
            else:
                loaded[f.name] = result
        return loaded

    # ------------------------------------------------------------------
    # Dependent (cascading) options
    # ------------------------------------------------------------------

    async def load_dependent_options(
        self,
        descriptor: ResourceDescriptor,
        field: FieldDescriptor,
        governing_value: Any,
    ) -> list[OptionEntry] | None:
        """Load the option set of *field* for the governing field's new value.

        Call on every change of the governing field. Results are cached for
        the last governing value loaded. A response that arrives after the
        governing value has changed again is discarded.

        Returns:
            The option list, ``[]`` for an empty governing value or a failed
            request, or ``None`` when the result is stale and was discarded.
        """
        if field.dependent_path is None:
            raise ValueError(f"Field '{field.name}' is not a dependent field")

        state = self._dependents.setdefault((descriptor.key, field.name), _DependentState())
        state.current = governing_value

        if is_blank(governing_value):
            return []
        if state.loaded_value is not _UNSET and values_match(state.loaded_value, governing_value):
            return list(state.loaded)

        token = governing_value
        path = field.dependent_path.format(value=governing_value)
        try:
            body = await self._gateway.fetch(path)
        except GatewayError as e:
            if not values_match(state.current, token):
                return None
            logger.warning(f"[Options] Failed to load {field.name} from {path}: {e.message}")
            return []

        if not values_match(state.current, token):
            logger.debug(
                f"[Options] Discarding stale {field.name} options for {token!r} "
                f"(current: {state.current!r})"
            )
            return None

        adapter = self._adapters.resolve(descriptor.key, field.name, path)
        entries = self._coerce(field, adapter(unwrap_collection(body)))
        state.loaded_value = token
        state.loaded = entries
        return list(entries)

    def reset(self, descriptor: ResourceDescriptor | None = None) -> None:
        """Forget cascade state (all of it, or one resource's)."""
        if descriptor is None:
            self._dependents.clear()
            return
        for key in [k for k in self._dependents if k[0] == descriptor.key]:
            del self._dependents[key]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _coerce(field: FieldDescriptor, entries: list[OptionEntry]) -> list[OptionEntry]:
        if not field.string_value:
            return entries
        return [
            e if e.value is None else OptionEntry(label=e.label, value=str(e.value))
            for e in entries
        ]
