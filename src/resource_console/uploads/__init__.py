"""Attachment uploads: file state machine, acceptance gate and pipeline.

Usage:
    >>> from resource_console.uploads import UploadPipeline, LocalFile, FileState
"""

from resource_console.uploads.models import (
    AttachmentList,
    Completed,
    DoneFile,
    Failed,
    FailedFile,
    FileState,
    LocalFile,
    Progress,
    Removed,
    SelectedFile,
    Started,
    UploadingFile,
)
from resource_console.uploads.pipeline import (
    CATEGORY_LIMITS,
    UploadPipeline,
    check_acceptance,
    extract_attachment_value,
    parse_stored_paths,
)

__all__ = [
    "UploadPipeline",
    "check_acceptance",
    "extract_attachment_value",
    "parse_stored_paths",
    "CATEGORY_LIMITS",
    "AttachmentList",
    "LocalFile",
    "FileState",
    "SelectedFile",
    "UploadingFile",
    "DoneFile",
    "FailedFile",
    "Started",
    "Progress",
    "Completed",
    "Failed",
    "Removed",
]
