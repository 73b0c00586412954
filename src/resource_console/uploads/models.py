"""Attachment state models.

A file moves forward only: SELECTED -> UPLOADING -> DONE | ERROR. Each state
is its own frozen model; ``FileState`` is the discriminated union over
``status``. Changes to a field's file list are posted as messages and
applied by ``AttachmentList`` as a map over the current list, so concurrent
uploads never overwrite each other's progress.
"""

import mimetypes
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from resource_console.errors import InvalidTransitionError


# ============================================================================
# Selection Input
# ============================================================================


class LocalFile(BaseModel):
    """A file picked by the user, not yet accepted or uploaded."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: bytes = Field(repr=False)
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def resolved_content_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or "application/octet-stream"


# ============================================================================
# File States
# ============================================================================


class _FileBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    size: int = 0
    content_type: str = "application/octet-stream"


class SelectedFile(_FileBase):
    """Accepted by the gate; waiting to be sent."""

    status: Literal["selected"] = "selected"
    content: bytes = Field(default=b"", repr=False, exclude=True)


class UploadingFile(_FileBase):
    """In flight; ``percent`` only grows."""

    status: Literal["uploading"] = "uploading"
    percent: int = 0
    content: bytes = Field(default=b"", repr=False, exclude=True)


class DoneFile(_FileBase):
    """Stored on the server. ``preview_url`` is display-only and never submitted."""

    status: Literal["done"] = "done"
    percent: int = 100
    server_path: str
    preview_url: str | None = None


class FailedFile(_FileBase):
    """Upload failed; only this file is affected."""

    status: Literal["error"] = "error"
    reason: str


FileState = Annotated[
    Union[SelectedFile, UploadingFile, DoneFile, FailedFile],
    Field(discriminator="status"),
]


def new_file_id() -> str:
    return uuid4().hex


def select_file(local: LocalFile) -> SelectedFile:
    """Wrap an accepted ``LocalFile`` as a SELECTED state."""
    return SelectedFile(
        id=new_file_id(),
        name=local.name,
        size=local.size,
        content_type=local.resolved_content_type,
        content=local.content,
    )


def stored_file(server_path: str, preview_url: str | None = None) -> DoneFile:
    """A DONE state for a file already on the server (edit-form hydration)."""
    name = server_path.rstrip("/").rsplit("/", 1)[-1] or server_path
    return DoneFile(id=new_file_id(), name=name, server_path=server_path, preview_url=preview_url)


# ============================================================================
# Transitions
# ============================================================================


def start_upload(state: FileState) -> UploadingFile:
    """SELECTED -> UPLOADING."""
    if not isinstance(state, SelectedFile):
        raise InvalidTransitionError(f"Cannot start upload of '{state.name}' in state {state.status}")
    return UploadingFile(
        id=state.id,
        name=state.name,
        size=state.size,
        content_type=state.content_type,
        content=state.content,
    )


def advance_progress(state: FileState, percent: int) -> UploadingFile:
    """UPLOADING -> UPLOADING with a percentage that never decreases."""
    if not isinstance(state, UploadingFile):
        raise InvalidTransitionError(f"Cannot report progress for '{state.name}' in state {state.status}")
    clamped = max(state.percent, min(100, max(0, percent)))
    return state.model_copy(update={"percent": clamped})


def complete_upload(state: FileState, server_path: str, preview_url: str | None = None) -> DoneFile:
    """UPLOADING -> DONE."""
    if not isinstance(state, UploadingFile):
        raise InvalidTransitionError(f"Cannot complete '{state.name}' in state {state.status}")
    return DoneFile(
        id=state.id,
        name=state.name,
        size=state.size,
        content_type=state.content_type,
        server_path=server_path,
        preview_url=preview_url,
    )


def fail_upload(state: FileState, reason: str) -> FailedFile:
    """UPLOADING -> ERROR."""
    if not isinstance(state, UploadingFile):
        raise InvalidTransitionError(f"Cannot fail '{state.name}' in state {state.status}")
    return FailedFile(
        id=state.id,
        name=state.name,
        size=state.size,
        content_type=state.content_type,
        reason=reason,
    )


# ============================================================================
# Messages
# ============================================================================


class Started(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str


class Progress(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str
    percent: int


class Completed(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str
    server_path: str
    preview_url: str | None = None


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str
    reason: str


class Removed(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_id: str


FileMessage = Started | Progress | Completed | Failed | Removed


class AttachmentList:
    """Ordered file list of one upload field.

    Every change arrives as a message and is applied to the list as it is
    at that moment. Messages for files that were removed in the meantime
    are dropped, as are progress reports for files no longer uploading.
    """

    def __init__(self, files: list[FileState] | None = None) -> None:
        self._files: list[FileState] = list(files or [])

    @property
    def files(self) -> list[FileState]:
        return list(self._files)

    def get(self, file_id: str) -> FileState | None:
        return next((f for f in self._files if f.id == file_id), None)

    def add(self, states: list[FileState]) -> None:
        self._files.extend(states)

    def replace(self, states: list[FileState]) -> None:
        self._files = list(states)

    def apply(self, message: FileMessage) -> None:
        """Apply *message* to the current list.

        Raises:
            InvalidTransitionError: If the message would move a file backwards.
        """
        if isinstance(message, Removed):
            self._files = [f for f in self._files if f.id != message.file_id]
            return
        self._files = [
            self._transition(f, message) if f.id == message.file_id else f
            for f in self._files
        ]

    @staticmethod
    def _transition(state: FileState, message: FileMessage) -> FileState:
        if isinstance(message, Started):
            return start_upload(state)
        if isinstance(message, Progress):
            if not isinstance(state, UploadingFile):
                return state
            return advance_progress(state, message.percent)
        if isinstance(message, Completed):
            return complete_upload(state, message.server_path, message.preview_url)
        if isinstance(message, Failed):
            return fail_upload(state, message.reason)
        return state

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self):
        return iter(list(self._files))
