"""Create/edit form engine.

Provides ``FormEngine``, which interprets a ``ResourceDescriptor`` into one
open form at a time: initial values or hydration from a record, reference
and cascading options, computed fields, validation, attachments and
submission.

Usage:
    from resource_console.forms.engine import FormEngine

    engine = FormEngine(gateway)
    await engine.open_for_create(registry.get("tertiary-hospitals"))
    await engine.set_value("name", "Peking Union Medical College Hospital")
    result = await engine.submit()
    if not result.ok:
        show_message(result.message)
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from resource_console.config.models import ConsoleConfig
from resource_console.descriptors.models import (
    FieldDescriptor,
    OptionEntry,
    ResourceDescriptor,
)
from resource_console.errors import (
    FormStateError,
    GatewayError,
    PendingUploadError,
    SubmissionError,
    UploadRejected,
    ValidationFailed,
)
from resource_console.forms.hydration import coerce_value, lookup_value, reverse_lookup
from resource_console.forms.validation import validate_values
from resource_console.gateway.base import ResourceClient
from resource_console.i18n import Translator, translate
from resource_console.options.loader import OptionLoader
from resource_console.transform.computed import apply_computed
from resource_console.transform.hooks import (
    FormMode,
    HookContext,
    HookRegistry,
    default_hooks,
)
from resource_console.transform.pipeline import build_payload
from resource_console.uploads.models import FileState, LocalFile
from resource_console.uploads.pipeline import UploadPipeline
from resource_console.values import is_blank, values_match

logger = logging.getLogger(__name__)


class FieldPhase(str, Enum):
    """Lifecycle of one field within an open form."""

    UNSET = "unset"
    POPULATED = "populated"
    EDITED = "edited"
    VALIDATED = "validated"


# ============================================================================
# Form State Models
# ============================================================================


class FormRecord(BaseModel):
    """The entity under edit: one value and one phase per field."""

    descriptor: ResourceDescriptor
    mode: FormMode
    record_id: Any = None
    values: dict[str, Any] = Field(default_factory=dict)
    phases: dict[str, FieldPhase] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    options: dict[str, list[OptionEntry]] = Field(default_factory=dict)


class SubmitResult(BaseModel):
    """Outcome of ``FormEngine.submit``."""

    ok: bool
    record: dict[str, Any] | None = None
    payload: dict[str, Any] | None = None
    message: str | None = None
    errors: dict[str, str] = Field(default_factory=dict)


def initial_value(field: FieldDescriptor) -> Any:
    """A field's value on a fresh create form."""
    if field.component == "switch":
        return bool(field.initial_value) if field.initial_value is not None else False
    if field.component == "upload":
        return []
    return field.initial_value


# ============================================================================
# Engine
# ============================================================================


class FormEngine:
    """One create-or-edit form over a gateway.

    Args:
        gateway: Any ``ResourceClient``.
        config: Console configuration (defaults apply when omitted).
        options: Option loader (default: built from *gateway* and *config*).
        uploads: Upload pipeline (default: built from *gateway* and *config*).
        hooks: Resource hook registry (default: ``default_hooks()``).
        translator: Optional translation callable for labels and messages.
    """

    def __init__(
        self,
        gateway: ResourceClient,
        config: ConsoleConfig | None = None,
        options: OptionLoader | None = None,
        uploads: UploadPipeline | None = None,
        hooks: HookRegistry | None = None,
        translator: Translator | None = None,
    ) -> None:
        self._config = config or ConsoleConfig()
        self._gateway = gateway
        self._options = options or OptionLoader(gateway, self._config.options)
        self._uploads = uploads or UploadPipeline(
            gateway, self._config.uploads, base_url=self._config.api.base_url
        )
        self._hooks = hooks or default_hooks()
        self._translator = translator
        self._form: FormRecord | None = None
        self._suppress_clear = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._form is not None

    @property
    def form(self) -> FormRecord:
        """The open form.

        Raises:
            FormStateError: If no form is open.
        """
        if self._form is None:
            raise FormStateError("No form is open")
        return self._form

    @property
    def descriptor(self) -> ResourceDescriptor:
        return self.form.descriptor

    @property
    def mode(self) -> FormMode:
        return self.form.mode

    def values(self) -> dict[str, Any]:
        """Current values; attachment fields hold their file-state lists."""
        form = self.form
        merged = dict(form.values)
        for field in form.descriptor.form_fields:
            if field.component == "upload":
                merged[field.name] = self._uploads.files(field.name)
        return merged

    def value(self, name: str) -> Any:
        return self.values().get(name)

    def phase(self, name: str) -> FieldPhase:
        return self.form.phases.get(name, FieldPhase.UNSET)

    def options_for(self, name: str) -> list[OptionEntry]:
        return list(self.form.options.get(name, []))

    @property
    def errors(self) -> dict[str, str]:
        return dict(self.form.errors)

    # ------------------------------------------------------------------
    # Opening and closing
    # ------------------------------------------------------------------

    async def open_for_create(self, descriptor: ResourceDescriptor) -> FormRecord:
        """Open a blank form with declared initial values and default cascades.

        A failure while loading options closes the form again.

        Raises:
            FormStateError: If a form is already open or the resource cannot
                be created from the console.
        """
        self._ensure_closed()
        if not descriptor.can_create:
            raise FormStateError(f"Resource '{descriptor.key}' does not allow create")

        form = self._begin(descriptor, "create")
        try:
            await self._fill_create(form)
        except BaseException:
            self._abandon(form)
            raise
        logger.debug(f"[Forms] Opened create form for {descriptor.key}")
        return form

    async def open_for_edit(
        self, descriptor: ResourceDescriptor, record: dict[str, Any]
    ) -> FormRecord:
        """Open a form hydrated from *record*.

        Fields resolved by reverse lookup wait for their options to load
        before they are marked populated. Dependent fields load their options
        for the record's governing value without clearing the hydrated value.
        A failure during hydration closes the form again.

        Raises:
            FormStateError: If a form is already open or the resource is read-only.
        """
        self._ensure_closed()
        if descriptor.is_read_only:
            raise FormStateError(f"Resource '{descriptor.key}' is read-only")

        form = self._begin(descriptor, "edit")
        try:
            await self._fill_edit(form, record)
        except BaseException:
            self._abandon(form)
            raise
        logger.debug(f"[Forms] Opened edit form for {descriptor.key} #{form.record_id}")
        return form

    def close(self) -> None:
        """Discard the open form (no-op when none is open)."""
        self._form = None
        self._uploads.reset()

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    async def set_value(self, name: str, value: Any) -> None:
        """Record a user change, then refresh computed and dependent fields.

        Raises:
            FormStateError: If no form is open, the field is unknown, or it is
                an attachment field (use ``select_files``/``remove_file``).
        """
        form = self.form
        field = self._field(name)
        if field.component == "upload":
            raise FormStateError(f"Field '{name}' holds attachments; use select_files/remove_file")

        form.values[name] = value
        form.phases[name] = FieldPhase.EDITED
        form.errors.pop(name, None)
        form.values = apply_computed(form.descriptor, form.values, changed=name)
        await self._cascade(name)

    async def _cascade(self, name: str, auto_select: bool = False) -> None:
        form = self.form
        for dependent in form.descriptor.dependents_of(name):
            await self._reload_dependent(dependent, form.values.get(name), auto_select)

    async def _reload_dependent(
        self, field: FieldDescriptor, governing_value: Any, auto_select: bool = False
    ) -> None:
        form = self.form
        options = await self._options.load_dependent_options(form.descriptor, field, governing_value)
        if options is None or self._form is not form:
            return

        form.options[field.name] = options
        current = form.values.get(field.name)
        changed = False
        if not self._suppress_clear and current is not None:
            if not any(values_match(o.value, current) for o in options):
                form.values[field.name] = None
                form.phases[field.name] = FieldPhase.EDITED
                changed = True
        if auto_select and field.auto_select_first and form.values.get(field.name) is None and options:
            form.values[field.name] = options[0].value
            form.phases[field.name] = FieldPhase.POPULATED
            changed = True

        if changed:
            await self._cascade(field.name, auto_select)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def select_files(self, name: str, files: list[LocalFile]) -> list[UploadRejected]:
        """Add files to an attachment field; returns the rejected ones."""
        field = self._upload_field(name)
        rejected = self._uploads.select(field, files)
        self.form.phases[name] = FieldPhase.EDITED
        return rejected

    async def upload_pending(self, name: str) -> list[FileState]:
        """Upload every selected file of an attachment field concurrently."""
        field = self._upload_field(name)
        return await self._uploads.upload_all(field)

    def remove_file(self, name: str, file_id: str) -> None:
        self._upload_field(name)
        self._uploads.remove(name, file_id)
        self.form.phases[name] = FieldPhase.EDITED

    # ------------------------------------------------------------------
    # Validation and submission
    # ------------------------------------------------------------------

    def validate(self) -> dict[str, str]:
        """Check every field's rules; only the first failing rule per field counts.

        Returns:
            Field name mapped to its error message; empty when the form is valid.
        """
        form = self.form
        form.errors = validate_values(form.descriptor, self.values(), self._translator)
        for field in form.descriptor.form_fields:
            form.phases[field.name] = FieldPhase.VALIDATED
        return dict(form.errors)

    def require_valid(self) -> None:
        """Validate and raise when any field is invalid.

        Raises:
            ValidationFailed: With the per-field messages.
        """
        errors = self.validate()
        if errors:
            raise ValidationFailed(errors)

    async def submit(self) -> SubmitResult:
        """Validate, build the payload and persist it; close the form on success.

        Failures leave the form open for correction and come back as a
        ``SubmitResult`` with a user-visible message.
        """
        form = self.form
        descriptor = form.descriptor

        try:
            self.require_valid()
        except ValidationFailed as e:
            return SubmitResult(ok=False, errors=e.errors, message=next(iter(e.errors.values())))

        values = self.values()
        hook = self._hooks.get(descriptor.submit_hook)
        try:
            lookups: dict[str, Any] = {}
            if hook is not None:
                ctx = HookContext(
                    descriptor=descriptor,
                    mode=form.mode,
                    values=values,
                    gateway=self._gateway,
                    options=form.options,
                    translator=self._translator,
                )
                lookups = await hook.prepare(ctx)
            payload = build_payload(values, descriptor, form.mode, lookups, self._hooks)
        except PendingUploadError as e:
            message = translate(self._translator, "resource.uploadWait", "Please wait for uploads to finish")
            return SubmitResult(ok=False, message=message, errors={e.field: message})
        except SubmissionError as e:
            return SubmitResult(ok=False, message=e.message)

        try:
            if form.mode == "create":
                saved = await self._gateway.create(descriptor.base_path, payload)
            else:
                saved = await self._gateway.update(descriptor.base_path, form.record_id, payload)
        except GatewayError as e:
            logger.warning(f"[Forms] Saving {descriptor.key} failed: {e.message}")
            return SubmitResult(ok=False, payload=payload, message=e.message)

        if self._form is form:
            self.close()
        return SubmitResult(ok=True, record=saved, payload=payload)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_closed(self) -> None:
        if self._form is not None:
            raise FormStateError(
                f"A {self._form.mode} form for '{self._form.descriptor.key}' is already open"
            )

    def _begin(self, descriptor: ResourceDescriptor, mode: FormMode) -> FormRecord:
        self._uploads.reset()
        self._options.reset(descriptor)
        form = FormRecord(descriptor=descriptor, mode=mode)
        for field in descriptor.form_fields:
            form.options[field.name] = list(field.options)
        self._form = form
        return form

    async def _fill_create(self, form: FormRecord) -> None:
        descriptor = form.descriptor
        for field in descriptor.form_fields:
            if field.component == "upload":
                continue
            value = initial_value(field)
            form.values[field.name] = value
            form.phases[field.name] = FieldPhase.UNSET if value is None else FieldPhase.POPULATED

        form.options.update(await self._options.load_all(descriptor))
        if self._form is not form:
            return
        form.values = apply_computed(descriptor, form.values)

        for field in descriptor.form_fields:
            if not field.default_option_label or not is_blank(form.values.get(field.name)):
                continue
            match = next(
                (o for o in form.options.get(field.name, []) if o.label in field.default_option_label),
                None,
            )
            if match is None:
                continue
            form.values[field.name] = match.value
            form.phases[field.name] = FieldPhase.POPULATED
            await self._cascade(field.name, auto_select=True)

    async def _fill_edit(self, form: FormRecord, record: dict[str, Any]) -> None:
        descriptor = form.descriptor
        form.record_id = record.get(descriptor.primary_key)
        legacy = self._config.forms.legacy_casing

        deferred: list[FieldDescriptor] = []
        for field in descriptor.form_fields:
            raw = lookup_value(record, field, legacy)
            if field.component == "upload":
                self._uploads.hydrate(field, raw)
                form.phases[field.name] = FieldPhase.POPULATED
                continue
            if raw is None and field.resolve_from and not is_blank(record.get(field.resolve_from)):
                deferred.append(field)
                form.phases[field.name] = FieldPhase.UNSET
                continue
            form.values[field.name] = coerce_value(field, raw, form.record_id)
            form.phases[field.name] = FieldPhase.POPULATED

        form.options.update(await self._options.load_all(descriptor))
        if self._form is not form:
            return

        for field in deferred:
            label = record.get(field.resolve_from)
            resolved = reverse_lookup(label, form.options.get(field.name, []))
            if resolved is None:
                logger.debug(f"[Forms] {descriptor.key}.{field.name}: no option labelled {label!r}")
            form.values[field.name] = coerce_value(field, resolved, form.record_id)
            form.phases[field.name] = FieldPhase.POPULATED

        self._suppress_clear = True
        try:
            for field in descriptor.form_fields:
                if field.is_dependent:
                    await self._reload_dependent(field, form.values.get(field.depends_on))
        finally:
            self._suppress_clear = False

    def _abandon(self, form: FormRecord) -> None:
        if self._form is form:
            logger.warning(f"[Forms] Opening {form.mode} form for {form.descriptor.key} failed")
            self.close()

    def _field(self, name: str) -> FieldDescriptor:
        try:
            return self.form.descriptor.field(name)
        except KeyError:
            raise FormStateError(
                f"Resource '{self.form.descriptor.key}' has no field '{name}'"
            ) from None

    def _upload_field(self, name: str) -> FieldDescriptor:
        field = self._field(name)
        if field.component != "upload":
            raise FormStateError(f"Field '{name}' is not an attachment field")
        return field
