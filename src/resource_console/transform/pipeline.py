"""Submission payload building.

``build_payload`` turns the values of an open form into the request body.
It runs six ordered steps and is pure: the input values are not mutated,
and identical inputs (including lookup results) give identical payloads.

    1. computed fields, then the resource hook's ``pre`` step
    2. dates to ISO-8601 UTC (``...T00:00:00.000Z``); blank password on edit dropped
    3. attachment lists to server paths
    4. whitelist: declared fields only, no system fields, no nested objects
    5. empty-like values (``""``, ``"null"``, ``"undefined"``, ``[]``, ``{}``) to ``None``
    6. the resource hook's ``post`` step

Usage:
    from resource_console.transform.pipeline import build_payload

    payload = build_payload(values, descriptor, "create", hooks=default_hooks())
"""

from datetime import date, datetime, time, timezone
from typing import Any

from resource_console.descriptors.models import SYSTEM_FIELDS, ResourceDescriptor
from resource_console.errors import DescriptorError
from resource_console.transform.computed import apply_computed
from resource_console.transform.hooks import FormMode, HookRegistry
from resource_console.uploads.pipeline import extract_attachment_value
from resource_console.values import parse_date

EMPTY_STRINGS = frozenset({"", "null", "undefined"})


def to_iso_utc(value: Any) -> str | None:
    """Format a date/datetime as ISO-8601 UTC with milliseconds and ``Z``.

    Naive datetimes are taken as UTC; dates as midnight UTC. Strings are
    parsed first. Anything unparseable gives ``None``.

    Examples:
        >>> to_iso_utc(date(2024, 3, 1))
        '2024-03-01T00:00:00.000Z'
    """
    parsed = parse_date(value)
    if parsed is None:
        return None
    if not isinstance(parsed, datetime):
        parsed = datetime.combine(parsed, time.min)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.strftime('%Y-%m-%dT%H:%M:%S')}.{parsed.microsecond // 1000:03d}Z"


# ============================================================================
# Steps
# ============================================================================


def normalize_dates(
    descriptor: ResourceDescriptor, values: dict[str, Any], mode: FormMode
) -> dict[str, Any]:
    result = dict(values)
    for field in descriptor.form_fields:
        if field.name not in result:
            continue
        if field.component == "date":
            result[field.name] = to_iso_utc(result[field.name])
        elif field.component == "password" and mode == "edit":
            value = result[field.name]
            if value is None or (isinstance(value, str) and not value.strip()):
                del result[field.name]
    return result


def extract_attachments(descriptor: ResourceDescriptor, values: dict[str, Any]) -> dict[str, Any]:
    """Replace attachment lists with server paths.

    Raises:
        PendingUploadError: If an attachment field has unfinished files.
    """
    result = dict(values)
    for field in descriptor.form_fields:
        if field.component != "upload" or field.name not in result:
            continue
        result[field.name] = extract_attachment_value(
            field.name, result[field.name], field.upload_props.multiple
        )
    return result


def whitelist(
    descriptor: ResourceDescriptor, values: dict[str, Any], mode: FormMode = "edit"
) -> dict[str, Any]:
    """Keep declared fields only, minus system fields and nested objects.

    Resources flagged ``keep_identifier`` send their primary key on edit
    only; a create never carries one.
    """
    declared = set(descriptor.field_names)
    blocked = set(SYSTEM_FIELDS) | {descriptor.primary_key}
    if descriptor.keep_identifier and mode == "edit":
        blocked.discard(descriptor.primary_key)
    return {
        k: v
        for k, v in values.items()
        if k in declared and k not in blocked and not isinstance(v, dict)
    }


def normalize_empty(values: dict[str, Any]) -> dict[str, Any]:
    result = {}
    for key, value in values.items():
        if isinstance(value, str) and value in EMPTY_STRINGS:
            value = None
        elif isinstance(value, (list, tuple, dict)) and not value:
            value = None
        result[key] = value
    return result


# ============================================================================
# Pipeline
# ============================================================================


def build_payload(
    values: dict[str, Any],
    descriptor: ResourceDescriptor,
    mode: FormMode,
    lookups: dict[str, Any] | None = None,
    hooks: HookRegistry | None = None,
) -> dict[str, Any]:
    """Build the request body for *descriptor* from form *values*.

    Args:
        values: Current form values; attachment fields hold file-state lists.
        descriptor: The resource being submitted.
        mode: ``"create"`` or ``"edit"``.
        lookups: Results of the hook's ``prepare`` step.
        hooks: Hook registry; without one no resource hook runs.

    Returns:
        The payload dict.

    Raises:
        PendingUploadError: If an attachment field has unfinished files.
        DescriptorError: If the descriptor names a hook the registry lacks.
    """
    lookups = lookups or {}
    hook = None
    if hooks is not None and descriptor.submit_hook is not None:
        hook = hooks.get(descriptor.submit_hook)
        if hook is None:
            raise DescriptorError(
                f"Resource '{descriptor.key}' names unknown submit hook '{descriptor.submit_hook}'"
            )

    data = apply_computed(descriptor, values)
    if hook is not None:
        data = hook.pre(dict(data), mode, lookups)
    data = normalize_dates(descriptor, data, mode)
    data = extract_attachments(descriptor, data)
    data = whitelist(descriptor, data, mode)
    data = normalize_empty(data)
    if hook is not None:
        data = hook.post(dict(data), mode, lookups)
    return data
