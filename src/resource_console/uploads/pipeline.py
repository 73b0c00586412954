"""Attachment upload pipeline.

Provides the acceptance gate, ``UploadPipeline`` (per-field file lists,
concurrent uploads, hydration of stored paths) and the extraction of an
attachment field's submission value.

Usage:
    from resource_console.uploads.pipeline import UploadPipeline
    from resource_console.uploads.models import LocalFile

    pipeline = UploadPipeline(gateway, base_url="http://localhost:5000")
    rejected = pipeline.select(cover_field, [LocalFile(name="a.png", content=data)])
    await pipeline.upload_all(cover_field)
    value = pipeline.extract(cover_field)   # "/uploads/images/a.png"
"""

import asyncio
import json
import logging
from pathlib import PurePosixPath
from typing import Any, NamedTuple

from resource_console.config.models import UploadSettings
from resource_console.descriptors.models import FieldDescriptor, UploadProps
from resource_console.errors import (
    GatewayError,
    InvalidTransitionError,
    PendingUploadError,
    UploadRejected,
)
from resource_console.gateway.base import ResourceClient
from resource_console.paths import derive_preview_url, is_local_preview, normalize_server_path
from resource_console.uploads.models import (
    AttachmentList,
    Completed,
    DoneFile,
    Failed,
    FileState,
    LocalFile,
    Progress,
    Removed,
    SelectedFile,
    Started,
    select_file,
    stored_file,
)

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class CategoryLimit(NamedTuple):
    max_bytes: int
    extensions: frozenset[str] | None  # None: any extension


CATEGORY_LIMITS: dict[str, CategoryLimit] = {
    "image": CategoryLimit(5 * MB, frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})),
    "video": CategoryLimit(50 * MB, frozenset({".mp4", ".avi", ".mov", ".wmv", ".flv", ".webm"})),
    "audio": CategoryLimit(10 * MB, frozenset({".mp3", ".wav", ".ogg", ".m4a", ".aac", ".wma"})),
    "file": CategoryLimit(20 * MB, None),
}


# ============================================================================
# Acceptance Gate
# ============================================================================


def matches_accept(name: str, content_type: str, accept: str) -> bool:
    """True when the file matches one token of an ``accept`` list.

    Tokens are MIME types (``application/pdf``), MIME wildcards
    (``image/*``) or extensions (``.pdf``).
    """
    tokens = [t.strip().lower() for t in accept.split(",") if t.strip()]
    if not tokens:
        return True
    suffix = PurePosixPath(name.lower()).suffix
    mime = content_type.lower()
    for token in tokens:
        if token in ("*", "*/*"):
            return True
        if token.startswith("."):
            if suffix == token:
                return True
        elif token.endswith("/*"):
            if mime.startswith(token[:-1]):
                return True
        elif mime == token:
            return True
    return False


def check_acceptance(file: LocalFile, props: UploadProps) -> None:
    """Reject a file before it is uploaded.

    Raises:
        UploadRejected: On a type outside ``accept``, an extension not allowed
            for the accept category, or a size over the category limit.
    """
    content_type = file.resolved_content_type
    if not matches_accept(file.name, content_type, props.accept):
        raise UploadRejected(file.name, f"file type not accepted (allowed: {props.accept})")

    limit = CATEGORY_LIMITS.get(props.accept_category, CATEGORY_LIMITS["file"])
    suffix = PurePosixPath(file.name.lower()).suffix
    if limit.extensions is not None and suffix not in limit.extensions:
        allowed = ", ".join(sorted(limit.extensions))
        raise UploadRejected(
            file.name,
            f"extension '{suffix or '(none)'}' not allowed for {props.accept_category} uploads ({allowed})",
        )
    if file.size > limit.max_bytes:
        raise UploadRejected(
            file.name,
            f"file exceeds the {limit.max_bytes // MB} MB limit for {props.accept_category} uploads",
        )


# ============================================================================
# Stored Values
# ============================================================================


def parse_stored_paths(value: Any) -> list[str]:
    """Read the stored form of an attachment field into a list of paths.

    Accepts a bare path string, a JSON-encoded array of paths, or a list.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if isinstance(v, str) and v.strip()]
    if not isinstance(value, str) or not value.strip():
        return []
    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except ValueError:
            return [text]
        if isinstance(decoded, list):
            return [str(v) for v in decoded if isinstance(v, str) and v.strip()]
    return [text]


def extract_attachment_value(field_name: str, files: Any, multiple: bool) -> str | None:
    """Build the submission value of an attachment field.

    Single-attachment fields give a bare server path, multi-attachment fields
    a JSON-encoded array of paths in list order, and an empty field ``None``.

    Raises:
        PendingUploadError: If any file is not DONE, or a client-local
            preview stands where a server path belongs.
    """
    if files is None or files == "":
        return None
    if isinstance(files, str):
        files = parse_stored_paths(files)
    if not isinstance(files, (list, tuple)):
        raise PendingUploadError(field_name)

    paths: list[str] = []
    for item in files:
        if isinstance(item, DoneFile):
            path = item.server_path
        elif isinstance(item, str):
            path = item
        else:
            raise PendingUploadError(field_name)
        if is_local_preview(path):
            raise PendingUploadError(field_name)
        paths.append(normalize_server_path(path))

    if not paths:
        return None
    if multiple:
        return json.dumps(paths, separators=(",", ":"), ensure_ascii=False)
    return paths[0]


# ============================================================================
# Pipeline
# ============================================================================


class UploadPipeline:
    """Per-field attachment lists and their uploads.

    Args:
        gateway: Any ``ResourceClient``.
        settings: Upload endpoints per accept category.
        base_url: Origin used to derive display URLs of stored files.
    """

    def __init__(
        self,
        gateway: ResourceClient,
        settings: UploadSettings | None = None,
        base_url: str = "",
    ) -> None:
        self._gateway = gateway
        self._settings = settings or UploadSettings()
        self._base_url = base_url
        self._lists: dict[str, AttachmentList] = {}

    def attachments(self, field_name: str) -> AttachmentList:
        return self._lists.setdefault(field_name, AttachmentList())

    def files(self, field_name: str) -> list[FileState]:
        return self.attachments(field_name).files

    def reset(self) -> None:
        self._lists.clear()

    def hydrate(self, field: FieldDescriptor, stored: Any) -> list[FileState]:
        """Load stored paths as DONE files, replacing the field's list."""
        states = [
            stored_file(normalize_server_path(p), derive_preview_url(p, self._base_url))
            for p in parse_stored_paths(stored)
        ]
        self.attachments(field.name).replace(states)
        return self.files(field.name)

    def select(self, field: FieldDescriptor, files: list[LocalFile]) -> list[UploadRejected]:
        """Run *files* through the acceptance gate and add the accepted ones.

        A single-attachment field replaces its current file; a multi-attachment
        field rejects whatever would exceed ``max_count``.

        Returns:
            The rejections, one per refused file.
        """
        props = field.upload_props
        attachments = self.attachments(field.name)
        rejected: list[UploadRejected] = []
        accepted: list[SelectedFile] = []

        capacity = props.max_count if not props.multiple else props.max_count - len(attachments)
        for local in files:
            try:
                check_acceptance(local, props)
            except UploadRejected as e:
                rejected.append(e)
                continue
            if len(accepted) >= capacity:
                rejected.append(
                    UploadRejected(local.name, f"at most {props.max_count} file(s) allowed")
                )
                continue
            accepted.append(select_file(local))

        if props.multiple:
            attachments.add(accepted)
        elif accepted:
            attachments.replace(accepted)
        return rejected

    def remove(self, field_name: str, file_id: str) -> None:
        self.attachments(field_name).apply(Removed(file_id=file_id))

    async def upload(self, field: FieldDescriptor, file_id: str) -> FileState | None:
        """Send one SELECTED file to the endpoint of the field's accept category.

        Failures are recorded on the file (ERROR) and logged; they never raise.

        Returns:
            The file's final state, or ``None`` if it was removed meanwhile.

        Raises:
            InvalidTransitionError: If the file is not SELECTED.
        """
        props = field.upload_props
        attachments = self.attachments(field.name)
        current = attachments.get(file_id)
        if not isinstance(current, SelectedFile):
            state = current.status if current is not None else "missing"
            raise InvalidTransitionError(f"File {file_id} cannot be uploaded (state: {state})")

        attachments.apply(Started(file_id=file_id))
        endpoint = self._settings.endpoint_for(props.accept_category)

        def on_progress(percent: int) -> None:
            attachments.apply(Progress(file_id=file_id, percent=percent))

        try:
            path = await self._gateway.upload(
                endpoint,
                current.name,
                current.content,
                current.content_type,
                category=props.category,
                on_progress=on_progress,
            )
        except GatewayError as e:
            logger.warning(f"[Uploads] {field.name}: upload of {current.name} failed: {e.message}")
            if attachments.get(file_id) is not None:
                attachments.apply(Failed(file_id=file_id, reason=e.message))
        else:
            server_path = normalize_server_path(path)
            if attachments.get(file_id) is not None:
                attachments.apply(
                    Completed(
                        file_id=file_id,
                        server_path=server_path,
                        preview_url=derive_preview_url(server_path, self._base_url),
                    )
                )
        return attachments.get(file_id)

    async def upload_all(self, field: FieldDescriptor) -> list[FileState]:
        """Upload every SELECTED file of the field concurrently."""
        pending = [f.id for f in self.files(field.name) if isinstance(f, SelectedFile)]
        await asyncio.gather(*(self.upload(field, file_id) for file_id in pending))
        return self.files(field.name)

    def extract(self, field: FieldDescriptor) -> str | None:
        """Submission value of the field's current list (see ``extract_attachment_value``)."""
        return extract_attachment_value(
            field.name, self.files(field.name), field.upload_props.multiple
        )
