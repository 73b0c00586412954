"""Reference and dependent option loading with pluggable label adapters.

Usage:
    >>> from resource_console.options import OptionLoader, default_adapters
"""

from resource_console.options.adapters import (
    AdapterRegistry,
    AttributeLabel,
    CompositeLabel,
    OptionAdapter,
    PassThrough,
    default_adapters,
    with_none_option,
)
from resource_console.options.loader import OptionLoader

__all__ = [
    "OptionLoader",
    "AdapterRegistry",
    "OptionAdapter",
    "AttributeLabel",
    "CompositeLabel",
    "PassThrough",
    "with_none_option",
    "default_adapters",
]
