"""Resource descriptors: declarative models, registry and catalog loading.

Usage:
    >>> from resource_console.descriptors import load_registry, ResourceDescriptor
"""

from resource_console.descriptors.loader import DEFAULT_CATALOG, load_registry
from resource_console.descriptors.models import (
    SYSTEM_FIELDS,
    ColumnDescriptor,
    ComputedField,
    FieldDescriptor,
    LengthRule,
    OptionEntry,
    PatternRule,
    RangeRule,
    RequiredRule,
    ResourceDescriptor,
    RowAction,
    UploadProps,
    ValidationRule,
)
from resource_console.descriptors.registry import ResourceRegistry

__all__ = [
    "DEFAULT_CATALOG",
    "load_registry",
    "ResourceRegistry",
    "SYSTEM_FIELDS",
    "ColumnDescriptor",
    "ComputedField",
    "FieldDescriptor",
    "OptionEntry",
    "ResourceDescriptor",
    "RowAction",
    "UploadProps",
    "ValidationRule",
    "RequiredRule",
    "LengthRule",
    "RangeRule",
    "PatternRule",
]
