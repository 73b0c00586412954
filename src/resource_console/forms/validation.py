"""Field rule evaluation.

Each field's rules are checked in declaration order and only the first
failing rule's message is kept. Blank values only fail ``required``; the
other rules apply to values that are present.
"""

import re
from typing import Any

from resource_console.descriptors.models import (
    FieldDescriptor,
    LengthRule,
    PatternRule,
    RangeRule,
    RequiredRule,
    ResourceDescriptor,
    ValidationRule,
)
from resource_console.i18n import Translator, translate
from resource_console.values import is_blank, to_number


def _fmt(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def check_rule(rule: ValidationRule, value: Any, label: str) -> str | None:
    """Return the default message of a failing *rule*, or ``None`` when it passes."""
    if isinstance(rule, RequiredRule):
        return f"{label} is required" if is_blank(value) else None

    if is_blank(value):
        return None

    if isinstance(rule, LengthRule):
        if not isinstance(value, (str, list, tuple)):
            value = str(value)
        size = len(value)
        if rule.min is not None and size < rule.min:
            return f"{label} must be at least {rule.min} characters"
        if rule.max is not None and size > rule.max:
            return f"{label} must be at most {rule.max} characters"
        return None

    if isinstance(rule, RangeRule):
        number = to_number(value)
        if number is None:
            return f"{label} must be a number"
        if rule.min is not None and number < rule.min:
            return f"{label} must be at least {_fmt(rule.min)}"
        if rule.max is not None and number > rule.max:
            return f"{label} must be at most {_fmt(rule.max)}"
        return None

    if isinstance(rule, PatternRule):
        if re.search(rule.regex, str(value)) is None:
            return f"{label} is invalid"
        return None

    return None


def first_error(
    field: FieldDescriptor,
    value: Any,
    translator: Translator | None = None,
) -> str | None:
    """Message of the first failing rule of *field*, or ``None``."""
    label = translate(translator, field.label, field.label or field.name)
    for rule in field.rules:
        default = check_rule(rule, value, label)
        if default is None:
            continue
        if rule.message:
            return translate(translator, rule.message, rule.message)
        return default
    return None


def validate_values(
    descriptor: ResourceDescriptor,
    values: dict[str, Any],
    translator: Translator | None = None,
) -> dict[str, str]:
    """Validate every field of *descriptor* (hidden ones included).

    Returns:
        Field name mapped to its first error message; empty when all pass.
    """
    errors: dict[str, str] = {}
    for field in descriptor.form_fields:
        message = first_error(field, values.get(field.name), translator)
        if message is not None:
            errors[field.name] = message
    return errors
