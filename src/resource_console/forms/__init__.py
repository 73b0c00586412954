"""Create/edit forms: engine, hydration and validation.

Usage:
    >>> from resource_console.forms import FormEngine, SubmitResult, FieldPhase
"""

from resource_console.forms.engine import (
    FieldPhase,
    FormEngine,
    FormRecord,
    SubmitResult,
    initial_value,
)
from resource_console.forms.hydration import (
    casing_variants,
    coerce_value,
    lookup_value,
    reverse_lookup,
)
from resource_console.forms.validation import check_rule, first_error, validate_values

__all__ = [
    "FormEngine",
    "FormRecord",
    "FieldPhase",
    "SubmitResult",
    "initial_value",
    "casing_variants",
    "coerce_value",
    "lookup_value",
    "reverse_lookup",
    "check_rule",
    "first_error",
    "validate_values",
]
