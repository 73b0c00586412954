"""Option label adapters.

Turn the records of an option source into ``OptionEntry`` (label, value)
pairs. Adapters are looked up in an ``AdapterRegistry`` by resource key and
field name, with a wildcard tier for fields that mean the same thing across
resources (``parentId``, ``consultationId``, ...) and a generic fallback.

Usage:
    from resource_console.options.adapters import AttributeLabel, default_adapters

    registry = default_adapters()
    registry.register("supplierId", AttributeLabel(("companyName",)))
    adapter = registry.resolve("drugs", "supplierId", "/api/suppliers")
    entries = adapter(records)
"""

from typing import Any

from resource_console.descriptors.models import OptionEntry
from resource_console.values import read_path

WILDCARD = "*"
TOP_LEVEL_LABEL = "Top level"


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


# ============================================================================
# Adapters
# ============================================================================


class OptionAdapter:
    """Base adapter: maps each record through ``entry`` and drops unusable ones."""

    def entry(self, record: dict[str, Any]) -> OptionEntry | None:
        raise NotImplementedError

    def __call__(self, records: list[dict[str, Any]]) -> list[OptionEntry]:
        entries = []
        for record in records:
            if not isinstance(record, dict):
                continue
            entry = self.entry(record)
            if entry is not None:
                entries.append(entry)
        return entries


class AttributeLabel(OptionAdapter):
    """Label from the first present attribute of *label_keys*; value likewise.

    When no label attribute is present the value itself is shown.
    """

    def __init__(
        self,
        label_keys: tuple[str, ...],
        value_keys: tuple[str, ...] = ("id",),
    ) -> None:
        self.label_keys = label_keys
        self.value_keys = value_keys

    def entry(self, record: dict[str, Any]) -> OptionEntry | None:
        value = next((record[k] for k in self.value_keys if _present(record.get(k))), None)
        if value is None:
            return None
        label = next((record[k] for k in self.label_keys if _present(record.get(k))), value)
        return OptionEntry(label=str(label), value=value)


class CompositeLabel(OptionAdapter):
    """Label formatted from several (possibly nested) attributes.

    Args:
        template: ``str.format`` template over the names in *parts*.
        parts: Template name mapped to an attribute path.
        truncate: Template name mapped to a maximum length.
        value_key: Attribute holding the option value.
        missing: Text substituted for an absent part.

    Example:
        CompositeLabel(
            "Consultation {id}... ({patient})",
            parts={"id": ("id",), "patient": ("patient", "realName")},
            truncate={"id": 8},
        )
    """

    def __init__(
        self,
        template: str,
        parts: dict[str, tuple[str, ...]],
        truncate: dict[str, int] | None = None,
        value_key: str = "id",
        missing: str = "-",
    ) -> None:
        self.template = template
        self.parts = parts
        self.truncate = truncate or {}
        self.value_key = value_key
        self.missing = missing

    def entry(self, record: dict[str, Any]) -> OptionEntry | None:
        value = record.get(self.value_key)
        if value is None:
            return None
        rendered: dict[str, str] = {}
        for name, path in self.parts.items():
            part = read_path(record, path)
            text = str(part) if _present(part) else self.missing
            limit = self.truncate.get(name)
            rendered[name] = text[:limit] if limit else text
        return OptionEntry(label=self.template.format(**rendered), value=value)


class PassThrough(OptionAdapter):
    """For sources that already answer with ``{label, value}`` records."""

    def entry(self, record: dict[str, Any]) -> OptionEntry | None:
        if "label" not in record:
            return None
        return OptionEntry(label=str(record["label"]), value=record.get("value"))


class WithNoneOption(OptionAdapter):
    """Prefix another adapter's entries with a sentinel ``value=None`` entry."""

    def __init__(self, inner: OptionAdapter, label: str = TOP_LEVEL_LABEL) -> None:
        self.inner = inner
        self.label = label

    def entry(self, record: dict[str, Any]) -> OptionEntry | None:
        return self.inner.entry(record)

    def __call__(self, records: list[dict[str, Any]]) -> list[OptionEntry]:
        return [OptionEntry(label=self.label, value=None), *self.inner(records)]


def with_none_option(inner: OptionAdapter, label: str = TOP_LEVEL_LABEL) -> OptionAdapter:
    """Decorate *inner* so hierarchical fields can select "no parent"."""
    return WithNoneOption(inner, label)


GENERIC_ADAPTER = AttributeLabel(
    ("name", "title", "username", "categoryName", "label"),
    value_keys=("value", "id"),
)


# ============================================================================
# Registry
# ============================================================================


class AdapterRegistry:
    """Adapters keyed by ``(resource_key, field_name)`` with an optional source filter.

    Resolution order: exact resource with matching source, exact resource,
    wildcard with matching source, wildcard, then the fallback.
    """

    def __init__(self, fallback: OptionAdapter = GENERIC_ADAPTER) -> None:
        self.fallback = fallback
        self._entries: dict[tuple[str, str], list[tuple[str | None, OptionAdapter]]] = {}

    def register(
        self,
        field_name: str,
        adapter: OptionAdapter,
        resource_key: str = WILDCARD,
        source: str | None = None,
    ) -> None:
        """Register *adapter* for *field_name*.

        Args:
            field_name: Form field the adapter serves.
            adapter: The adapter.
            resource_key: Resource key, or ``"*"`` for every resource.
            source: Only apply when the option source path contains this text.
        """
        self._entries.setdefault((resource_key, field_name), []).append((source, adapter))

    def resolve(self, resource_key: str, field_name: str, source: str = "") -> OptionAdapter:
        for key in ((resource_key, field_name), (WILDCARD, field_name)):
            candidates = self._entries.get(key, [])
            for wanted, adapter in candidates:
                if wanted is not None and wanted in source:
                    return adapter
            for wanted, adapter in candidates:
                if wanted is None:
                    return adapter
        return self.fallback


def default_adapters() -> AdapterRegistry:
    """Registry with the console's built-in field adapters."""
    registry = AdapterRegistry()

    registry.register(
        "consultationId",
        CompositeLabel(
            "Consultation {id}... ({patient} - {doctor}, {status})",
            parts={
                "id": ("id",),
                "patient": ("patient", "realName"),
                "doctor": ("doctor", "name"),
                "status": ("status",),
            },
            truncate={"id": 8},
        ),
    )
    registry.register("patientId", AttributeLabel(("username",)), source="/users")
    registry.register("patientId", AttributeLabel(("realName", "RealName", "name")))
    registry.register("parentId", with_none_option(AttributeLabel(("categoryName",))))
    registry.register("categoryId", AttributeLabel(("categoryName", "name")))
    registry.register(
        "role", AttributeLabel(("name",), value_keys=("code",)), source="/roles"
    )
    registry.register("permissionType", AttributeLabel(("name",), value_keys=("code",)))
    registry.register("menuUrl", PassThrough())
    registry.register("author", AttributeLabel(("name",)))
    registry.register("hospitalId", AttributeLabel(("name",)))
    registry.register("provinceId", AttributeLabel(("name", "provinceName")))
    registry.register("cityId", AttributeLabel(("name", "cityName")))
    registry.register("departmentId", AttributeLabel(("name",)))

    return registry
