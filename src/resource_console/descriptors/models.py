"""Declarative resource descriptor models.

A resource is described once -- endpoint, list columns, form fields -- and
the generic engine interprets it into a list view and a create/edit form.
Descriptors are frozen after construction.

Usage:
    from resource_console.descriptors.models import (
        FieldDescriptor, ResourceDescriptor, RequiredRule,
    )

    drugs = ResourceDescriptor(
        key="drugs",
        title="Drugs",
        base_path="/api/drugs",
        form_fields=[
            FieldDescriptor(name="commonName", label="Common name",
                            rules=[RequiredRule()]),
            FieldDescriptor(name="categoryId", label="Category",
                            component="select",
                            load_options_from="/api/drugcategories"),
        ],
    )
"""

from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from resource_console.paths import derive_preview_url

ComponentKind = Literal[
    "text", "password", "textarea", "number", "switch", "date", "select", "upload"
]
AcceptCategory = Literal["image", "video", "audio", "file"]
ColumnValueType = Literal["text", "boolean", "datetime", "image"]

# Attributes the backend owns; never sent from a form.
SYSTEM_FIELDS: frozenset[str] = frozenset({"id", "createdAt", "updatedAt"})


# ============================================================================
# Validation Rules (tagged variants, interpreted by forms.validation)
# ============================================================================


class RequiredRule(BaseModel):
    """Value must be present and non-blank."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["required"] = "required"
    message: str | None = None


class LengthRule(BaseModel):
    """String (or list) length bounds, inclusive."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["length"] = "length"
    min: int | None = None
    max: int | None = None
    message: str | None = None


class RangeRule(BaseModel):
    """Numeric bounds, inclusive."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["range"] = "range"
    min: float | None = None
    max: float | None = None
    message: str | None = None


class PatternRule(BaseModel):
    """Regular expression that must match somewhere in the value (unanchored search)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pattern"] = "pattern"
    regex: str
    message: str | None = None


ValidationRule = Annotated[
    Union[RequiredRule, LengthRule, RangeRule, PatternRule],
    Field(discriminator="kind"),
]


# ============================================================================
# Field, Column and Resource Descriptors
# ============================================================================


class OptionEntry(BaseModel):
    """A (label, value) pair populating a selection control."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: Any = None


class UploadProps(BaseModel):
    """Kind-specific properties of an ``upload`` field."""

    model_config = ConfigDict(frozen=True)

    accept: str = "image/*"                  # MIME wildcards and/or extensions
    max_count: int = 1
    accept_category: AcceptCategory = "image"  # selects the upload endpoint
    category: str | None = None               # storage partition tag

    @property
    def multiple(self) -> bool:
        return self.max_count > 1


class FieldDescriptor(BaseModel):
    """Declarative definition of one form field."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str = ""
    component: ComponentKind = "text"
    rules: list[ValidationRule] = Field(default_factory=list)
    initial_value: Any = None
    placeholder: str | None = None
    span: int = 24                            # layout weight (24-column grid)
    hidden: bool = False

    # Select sources
    options: list[OptionEntry] = Field(default_factory=list)
    load_options_from: str | None = None
    load_options_params: dict[str, Any] = Field(default_factory=dict)

    # Cascading
    depends_on: str | None = None             # governing field name
    dependent_path: str | None = None         # e.g. "/api/provinces/{value}/cities"
    auto_select_first: bool = False
    default_option_label: list[str] = Field(default_factory=list)

    # Edit-form hydration
    aliases: list[str] = Field(default_factory=list)
    source_path: list[str] = Field(default_factory=list)
    resolve_from: str | None = None           # denormalized attribute matched against labels
    self_reference: bool = False
    string_value: bool = False

    upload: UploadProps | None = None

    @property
    def is_reference(self) -> bool:
        """True when options come from another resource (not a cascade)."""
        return self.load_options_from is not None

    @property
    def is_dependent(self) -> bool:
        return self.depends_on is not None and self.dependent_path is not None

    @property
    def upload_props(self) -> UploadProps:
        return self.upload or UploadProps()

    @model_validator(mode="after")
    def _check_cascade(self) -> "FieldDescriptor":
        if (self.depends_on is None) != (self.dependent_path is None):
            raise ValueError(
                f"Field '{self.name}': depends_on and dependent_path must be set together"
            )
        if self.component == "upload" and self.upload_props.max_count < 1:
            raise ValueError(f"Field '{self.name}': max_count must be >= 1")
        return self


class ColumnDescriptor(BaseModel):
    """Declarative definition of one list column."""

    model_config = ConfigDict(frozen=True)

    title: str
    data_index: str | list[str]
    value_type: ColumnValueType = "text"
    fallback: str = "-"

    @property
    def path(self) -> list[str]:
        if isinstance(self.data_index, str):
            return [self.data_index]
        return list(self.data_index)

    def render(self, record: dict[str, Any], base_url: str = "") -> str:
        """Render the column's cell for *record* as display text."""
        value: Any = record
        for part in self.path:
            value = value.get(part) if isinstance(value, dict) else None
        if value is None or (isinstance(value, str) and not value.strip()):
            return self.fallback
        if self.value_type == "boolean":
            return "Yes" if value else "No"
        if self.value_type == "datetime":
            if isinstance(value, date) and not isinstance(value, datetime):
                return value.isoformat()
            if not isinstance(value, datetime):
                try:
                    value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
                except ValueError:
                    return str(value)
            return value.strftime("%Y-%m-%d %H:%M:%S")
        if self.value_type == "image":
            return derive_preview_url(str(value), base_url)
        return str(value)


class ComputedField(BaseModel):
    """A field derived from other fields by a registered formula."""

    model_config = ConfigDict(frozen=True)

    name: str
    formula: str
    inputs: list[str]
    precision: int = 2


class RowAction(BaseModel):
    """A per-record command beyond CRUD, sent as ``{method} {base}/{id}/{path}``."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str = ""
    path: str
    method: Literal["POST", "PUT", "PATCH", "DELETE"] = "POST"


class ResourceDescriptor(BaseModel):
    """Declarative definition of one manageable entity type."""

    model_config = ConfigDict(frozen=True)

    key: str
    title: str
    base_path: str
    primary_key: str = "id"
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    form_fields: list[FieldDescriptor] = Field(default_factory=list)
    default_params: dict[str, Any] = Field(default_factory=dict)
    read_only: bool = False
    disable_create: bool = False
    keep_identifier: bool = False              # update-by-id resources send "id"
    submit_hook: str | None = None
    computed: list[ComputedField] = Field(default_factory=list)
    actions: list[RowAction] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_fields(self) -> "ResourceDescriptor":
        seen: set[str] = set()
        for field in self.form_fields:
            if field.name in seen:
                raise ValueError(
                    f"Resource '{self.key}': duplicate field name '{field.name}'"
                )
            seen.add(field.name)
        for field in self.form_fields:
            if field.depends_on is not None and field.depends_on not in seen:
                raise ValueError(
                    f"Resource '{self.key}': field '{field.name}' depends on "
                    f"unknown field '{field.depends_on}'"
                )
        for rule in self.computed:
            missing = [n for n in [rule.name, *rule.inputs] if n not in seen]
            if missing:
                raise ValueError(
                    f"Resource '{self.key}': computed field '{rule.name}' "
                    f"references unknown field(s): {', '.join(missing)}"
                )
        action_names = [a.name for a in self.actions]
        if len(set(action_names)) != len(action_names):
            raise ValueError(f"Resource '{self.key}': duplicate action name")
        return self

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.form_fields]

    @property
    def is_read_only(self) -> bool:
        """Read-only when flagged or when there is nothing to edit."""
        return self.read_only or not self.form_fields

    @property
    def can_create(self) -> bool:
        return not self.is_read_only and not self.disable_create

    def field(self, name: str) -> FieldDescriptor:
        """Return the field named *name*.

        Raises:
            KeyError: If the descriptor declares no such field.
        """
        for f in self.form_fields:
            if f.name == name:
                return f
        raise KeyError(f"Resource '{self.key}' has no field '{name}'")

    def action(self, name: str) -> RowAction:
        """Return the row action named *name*.

        Raises:
            KeyError: If the descriptor declares no such action.
        """
        for a in self.actions:
            if a.name == name:
                return a
        raise KeyError(f"Resource '{self.key}' has no action '{name}'")

    def dependents_of(self, name: str) -> list[FieldDescriptor]:
        """Fields whose option set is governed by field *name*."""
        return [f for f in self.form_fields if f.depends_on == name]
