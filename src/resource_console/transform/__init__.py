"""Submission transformation: payload pipeline and resource hooks.

Usage:
    >>> from resource_console.transform import build_payload, default_hooks
"""

from resource_console.transform.hooks import (
    DoctorsHook,
    FormMode,
    HookContext,
    HookRegistry,
    PatientInfoHook,
    ResourceHook,
    SystemUsersHook,
    default_hooks,
)
from resource_console.transform.pipeline import build_payload, to_iso_utc

__all__ = [
    "build_payload",
    "to_iso_utc",
    "FormMode",
    "HookContext",
    "HookRegistry",
    "ResourceHook",
    "PatientInfoHook",
    "DoctorsHook",
    "SystemUsersHook",
    "default_hooks",
]
