"""Tests for computed fields, the payload pipeline and resource hooks."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from resource_console.descriptors import load_registry
from resource_console.descriptors.models import (
    ComputedField,
    FieldDescriptor,
    OptionEntry,
    ResourceDescriptor,
    UploadProps,
)
from resource_console.errors import DescriptorError, GatewayError, PendingUploadError, SubmissionError
from resource_console.transform import (
    HookContext,
    HookRegistry,
    build_payload,
    default_hooks,
    to_iso_utc,
)
from resource_console.transform.computed import apply_computed, bmi, compute, register_formula
from resource_console.uploads.models import DoneFile, SelectedFile

REGISTRY = load_registry()


def _staff() -> ResourceDescriptor:
    return ResourceDescriptor(
        key="staff",
        title="Staff",
        base_path="/api/staff",
        form_fields=[
            FieldDescriptor(name="name", rules=[{"kind": "required"}]),
            FieldDescriptor(name="hiredOn", component="date"),
            FieldDescriptor(name="password", component="password"),
            FieldDescriptor(
                name="attachment",
                component="upload",
                upload=UploadProps(accept=".pdf", max_count=1, accept_category="file"),
            ),
            FieldDescriptor(
                name="gallery",
                component="upload",
                upload=UploadProps(max_count=5),
            ),
        ],
    )


# ============================================================================
# Test: Computed Fields
# ============================================================================


class TestComputed:
    """Test the BMI formula and computed field application."""

    def test_bmi_example(self) -> None:
        """170 cm and 70 kg give 24.22."""
        rule = ComputedField(name="bmi", formula="bmi", inputs=["height", "weight"], precision=2)
        assert compute(rule, {"height": 170, "weight": 70}) == 24.22

    def test_bmi_string_inputs(self) -> None:
        assert round(bmi("170", "70"), 2) == 24.22

    def test_bmi_missing_or_invalid_height(self) -> None:
        assert bmi(None, 70) is None
        assert bmi(0, 70) is None
        assert bmi(-5, 70) is None
        assert bmi("", 70) is None

    def test_apply_computed_only_for_changed_input(self) -> None:
        descriptor = REGISTRY.get("patient-info")
        values = {"height": 170, "weight": 70, "bmi": 1.0}

        assert apply_computed(descriptor, values, changed="realName")["bmi"] == 1.0
        assert apply_computed(descriptor, values, changed="weight")["bmi"] == 24.22
        assert values["bmi"] == 1.0

    def test_registered_formula(self) -> None:
        register_formula("sum_pair", lambda a, b: (a or 0) + (b or 0))
        rule = ComputedField(name="total", formula="sum_pair", inputs=["a", "b"], precision=0)
        assert compute(rule, {"a": 2, "b": 3}) == 5


# ============================================================================
# Test: Dates
# ============================================================================


class TestToIsoUtc:
    """Test to_iso_utc() formatting."""

    def test_date_is_midnight_utc(self) -> None:
        assert to_iso_utc(date(2024, 3, 1)) == "2024-03-01T00:00:00.000Z"

    def test_date_string(self) -> None:
        assert to_iso_utc("1990-05-17") == "1990-05-17T00:00:00.000Z"

    def test_aware_datetime_converted(self) -> None:
        beijing = timezone(timedelta(hours=8))
        value = datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=beijing)
        assert to_iso_utc(value) == "2024-03-01T01:30:15.123Z"

    def test_naive_datetime_taken_as_utc(self) -> None:
        assert to_iso_utc(datetime(2024, 3, 1, 9, 30)) == "2024-03-01T09:30:00.000Z"

    def test_invalid(self) -> None:
        assert to_iso_utc("not a date") is None
        assert to_iso_utc(None) is None


# ============================================================================
# Test: Payload Pipeline
# ============================================================================


class TestBuildPayload:
    """Test build_payload() steps."""

    def test_minimal_create(self) -> None:
        """A named record with an untouched attachment sends the attachment as null."""
        values = {"name": "Dr. Lee", "hiredOn": None, "password": "", "attachment": [], "gallery": []}
        payload = build_payload(values, _staff(), "create")
        assert payload == {
            "name": "Dr. Lee",
            "hiredOn": None,
            "password": None,
            "attachment": None,
            "gallery": None,
        }

    def test_system_nested_and_undeclared_removed(self) -> None:
        values = {
            "id": 3,
            "createdAt": "2024-01-01",
            "updatedAt": "2024-01-02",
            "name": "Dr. Lee",
            "department": {"id": 4},
            "unknown": "x",
        }
        payload = build_payload(values, _staff(), "edit")
        assert payload == {"name": "Dr. Lee"}

    def test_keep_identifier(self) -> None:
        """Update-by-id resources keep the primary key."""
        descriptor = ResourceDescriptor(
            key="tags", title="Tags", base_path="/api/tags", keep_identifier=True,
            form_fields=[FieldDescriptor(name="id", hidden=True), FieldDescriptor(name="label")],
        )
        assert build_payload({"id": 9, "label": "vip"}, descriptor, "edit") == {"id": 9, "label": "vip"}

    def test_identifier_never_sent_on_create(self) -> None:
        """Even update-by-id resources omit the primary key when creating."""
        descriptor = ResourceDescriptor(
            key="tags", title="Tags", base_path="/api/tags", keep_identifier=True,
            form_fields=[FieldDescriptor(name="id", hidden=True), FieldDescriptor(name="label")],
        )
        for record_id in (None, "", 9):
            payload = build_payload({"id": record_id, "label": "vip"}, descriptor, "create")
            assert payload == {"label": "vip"}

    def test_empty_like_values(self) -> None:
        descriptor = ResourceDescriptor(
            key="notes", title="Notes", base_path="/api/notes",
            form_fields=[FieldDescriptor(name=n) for n in ("a", "b", "c", "d", "e", "f")],
        )
        values = {"a": "", "b": "null", "c": "undefined", "d": [], "e": 0, "f": False}
        assert build_payload(values, descriptor, "create") == {
            "a": None, "b": None, "c": None, "d": None, "e": 0, "f": False,
        }

    def test_dates_and_password_on_edit(self) -> None:
        """Dates become ISO UTC; a blank password is not sent on edit."""
        values = {"name": "Dr. Lee", "hiredOn": date(2020, 9, 1), "password": "  "}
        payload = build_payload(values, _staff(), "edit")
        assert payload == {"name": "Dr. Lee", "hiredOn": "2020-09-01T00:00:00.000Z"}

        payload = build_payload({**values, "password": "s3cret"}, _staff(), "edit")
        assert payload["password"] == "s3cret"

    def test_attachments_to_paths(self) -> None:
        values = {
            "name": "Dr. Lee",
            "attachment": [DoneFile(id="1", name="cv.pdf", server_path="/uploads/files/cv.pdf",
                                    preview_url="http://localhost:5000/uploads/files/cv.pdf")],
            "gallery": [
                DoneFile(id="2", name="a.png", server_path="/uploads/a.png"),
                DoneFile(id="3", name="b.png", server_path="/uploads/b.png"),
            ],
        }
        payload = build_payload(values, _staff(), "create")
        assert payload["attachment"] == "/uploads/files/cv.pdf"
        assert payload["gallery"] == '["/uploads/a.png","/uploads/b.png"]'

    def test_pending_attachment_blocks(self) -> None:
        values = {"name": "Dr. Lee", "attachment": [SelectedFile(id="1", name="cv.pdf")]}
        with pytest.raises(PendingUploadError):
            build_payload(values, _staff(), "create")

    def test_idempotent_and_pure(self) -> None:
        """Same input gives the same payload; the input is not mutated."""
        values = {"name": "Dr. Lee", "hiredOn": "2020-09-01", "id": 1, "attachment": []}
        snapshot = dict(values)

        first = build_payload(values, _staff(), "edit")
        second = build_payload(values, _staff(), "edit")

        assert first == second
        assert values == snapshot

    def test_computed_refreshed(self) -> None:
        descriptor = REGISTRY.get("patient-info")
        values = {"id": 5, "realName": "Li Lei", "height": 170, "weight": 70, "bmi": None}
        payload = build_payload(values, descriptor, "edit", hooks=default_hooks())
        assert payload["bmi"] == 24.22
        assert payload["id"] == 5

    def test_unknown_hook(self) -> None:
        descriptor = ResourceDescriptor(
            key="x", title="X", base_path="/api/x", submit_hook="nope",
            form_fields=[FieldDescriptor(name="a")],
        )
        with pytest.raises(DescriptorError, match="unknown submit hook"):
            build_payload({"a": 1}, descriptor, "create", hooks=HookRegistry())

    def test_hook_ignored_without_registry(self) -> None:
        descriptor = REGISTRY.get("system-users")
        assert "role" not in build_payload({"username": "ops"}, descriptor, "create")


# ============================================================================
# Test: Resource Hooks
# ============================================================================


class TestPatientInfoHook:
    """Test username resolution for patient records."""

    def _ctx(self, gateway, mode="create", username="alice") -> HookContext:
        return HookContext(
            descriptor=REGISTRY.get("patient-info"),
            mode=mode,
            values={"username": username},
            gateway=gateway,
        )

    @pytest.mark.asyncio
    async def test_create_resolves_user_id(self) -> None:
        gateway = AsyncMock()
        gateway.fetch = AsyncMock(return_value={"items": [{"id": 42, "username": "alice"}], "total": 1})
        hook = default_hooks().get("patient-info")

        lookups = await hook.prepare(self._ctx(gateway))

        assert lookups == {"patientId": 42}
        gateway.fetch.assert_awaited_once_with("/api/users", keyword="alice", pageSize=1)

    @pytest.mark.asyncio
    async def test_create_requires_exact_match(self) -> None:
        """A keyword hit with a different username is not accepted."""
        gateway = AsyncMock()
        gateway.fetch = AsyncMock(return_value=[{"id": 43, "username": "alice2"}])
        hook = default_hooks().get("patient-info")

        with pytest.raises(SubmissionError, match="User 'alice' not found"):
            await hook.prepare(self._ctx(gateway))

    @pytest.mark.asyncio
    async def test_lookup_failure(self) -> None:
        gateway = AsyncMock()
        gateway.fetch = AsyncMock(side_effect=GatewayError("Timeout"))
        hook = default_hooks().get("patient-info")

        with pytest.raises(SubmissionError, match="Could not look up user 'alice'"):
            await hook.prepare(self._ctx(gateway))

    @pytest.mark.asyncio
    async def test_edit_skips_lookup(self) -> None:
        gateway = AsyncMock()
        hook = default_hooks().get("patient-info")

        assert await hook.prepare(self._ctx(gateway, mode="edit")) == {}
        gateway.fetch.assert_not_called()

    def test_payload_on_create_and_edit(self) -> None:
        descriptor = REGISTRY.get("patient-info")
        hooks = default_hooks()
        values = {"id": None, "username": "alice", "realName": "Alice"}

        created = build_payload(values, descriptor, "create", {"patientId": 42}, hooks)
        assert created["patientId"] == 42
        assert "id" not in created
        assert created["username"] == "alice"

        edited = build_payload({**values, "id": 5, "patientId": 42}, descriptor, "edit", {}, hooks)
        assert "username" not in edited
        assert edited["id"] == 5


class TestDoctorsHook:
    """Test hospital name resolution for doctors."""

    def _ctx(self, gateway, options=None) -> HookContext:
        return HookContext(
            descriptor=REGISTRY.get("doctors"),
            mode="create",
            values={"hospitalId": "7"},
            gateway=gateway,
            options=options or {},
        )

    @pytest.mark.asyncio
    async def test_name_from_options(self) -> None:
        gateway = AsyncMock()
        hook = default_hooks().get("doctors")
        ctx = self._ctx(gateway, {"hospitalId": [OptionEntry(label="Union Hospital", value=7)]})

        assert await hook.prepare(ctx) == {"hospital": "Union Hospital"}
        gateway.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_name_fetched_when_not_loaded(self) -> None:
        gateway = AsyncMock()
        gateway.get = AsyncMock(return_value={"id": 7, "name": "West China"})
        hook = default_hooks().get("doctors")

        assert await hook.prepare(self._ctx(gateway)) == {"hospital": "West China"}
        gateway.get.assert_awaited_once_with("/api/tertiaryhospitals", "7")

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_id(self) -> None:
        gateway = AsyncMock()
        gateway.get = AsyncMock(side_effect=GatewayError("Not found", status_code=404))
        hook = default_hooks().get("doctors")

        lookups = await hook.prepare(self._ctx(gateway))
        payload = build_payload(
            {"name": "Dr. Lee", "hospitalId": "7"}, REGISTRY.get("doctors"), "create", lookups, default_hooks()
        )

        assert lookups == {}
        assert payload["hospitalId"] == "7"

    def test_payload_sends_name_not_id(self) -> None:
        payload = build_payload(
            {"name": "Dr. Lee", "hospitalId": 7, "patientId": 3},
            REGISTRY.get("doctors"),
            "create",
            {"hospital": "Union Hospital"},
            default_hooks(),
        )
        assert payload["hospital"] == "Union Hospital"
        assert "hospitalId" not in payload
        assert "patientId" not in payload


class TestSystemUsersHook:
    """Test the default role of new console accounts."""

    def test_default_role_on_create(self) -> None:
        descriptor = REGISTRY.get("system-users")
        payload = build_payload({"username": "ops", "role": ""}, descriptor, "create", hooks=default_hooks())
        assert payload["role"] == "Admin"

    def test_chosen_role_kept(self) -> None:
        descriptor = REGISTRY.get("system-users")
        payload = build_payload({"username": "ops", "role": "Doctor"}, descriptor, "create", hooks=default_hooks())
        assert payload["role"] == "Doctor"

    def test_edit_untouched(self) -> None:
        descriptor = REGISTRY.get("system-users")
        payload = build_payload({"username": "ops", "role": None}, descriptor, "edit", hooks=default_hooks())
        assert payload["role"] is None
