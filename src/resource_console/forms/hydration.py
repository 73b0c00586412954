"""Edit-form hydration.

Resolve each field's value from a record returned by the backend. Records
are not always shaped like the form: attributes may arrive PascalCase or
snake_case, a reference may only be present as a nested object, and some
references are stored as a denormalized display name.

Resolution order for a field named ``fooId``:
    1. ``record["fooId"]``
    2. declared aliases, then ``FooId`` / ``foo_id`` (legacy casing shim)
    3. the declared ``source_path``, else ``record["foo"]["id"]``
    4. reverse lookup of ``record[resolve_from]`` against option labels
       (performed by the form engine once the options are loaded)
"""

import re
from typing import Any

from resource_console.descriptors.models import FieldDescriptor, OptionEntry
from resource_console.values import parse_date, read_path, values_match

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def casing_variants(name: str) -> list[str]:
    """PascalCase and snake_case spellings of a camelCase attribute name."""
    variants = []
    pascal = name[:1].upper() + name[1:]
    snake = _CAMEL_BOUNDARY.sub("_", name).lower()
    for variant in (pascal, snake):
        if variant != name and variant not in variants:
            variants.append(variant)
    return variants


def lookup_value(
    record: dict[str, Any],
    field: FieldDescriptor,
    legacy_casing: bool = True,
) -> Any:
    """Resolve *field*'s raw value from *record* (steps 1-3); ``None`` if absent."""
    candidates = [field.name, *field.aliases]
    if legacy_casing:
        for name in [field.name, *field.aliases]:
            candidates.extend(casing_variants(name))
    for key in candidates:
        value = record.get(key)
        if value is not None:
            return value

    if field.source_path:
        return read_path(record, field.source_path)

    if field.name.endswith("Id") and len(field.name) > 2:
        ref = field.name[:-2]
        refs = [ref, *casing_variants(ref)] if legacy_casing else [ref]
        for key in refs:
            nested = record.get(key)
            if isinstance(nested, dict):
                value = nested.get("id", nested.get("Id"))
                if value is not None:
                    return value
    return None


def reverse_lookup(label: Any, options: list[OptionEntry]) -> Any:
    """Value of the option whose label equals *label*; ``None`` when no match."""
    if label is None:
        return None
    text = str(label).strip()
    for option in options:
        if option.label == text:
            return option.value
    return None


def coerce_value(field: FieldDescriptor, value: Any, record_id: Any = None) -> Any:
    """Shape a resolved raw value for *field*'s component.

    Upload fields are not handled here; the upload pipeline hydrates them.
    """
    if field.component == "password":
        return ""
    if field.component == "switch":
        if value is None:
            return bool(field.initial_value) if field.initial_value is not None else False
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)
    if field.component == "date":
        return parse_date(value)

    if value is None:
        return None
    if field.self_reference and record_id is not None and values_match(value, record_id):
        return None
    if field.string_value:
        return str(value)
    return value
