"""Tests for the create/edit form engine.

Drives ``FormEngine`` against an in-memory gateway: opening forms, field
phases, cascading selects, reverse-lookup hydration, computed fields,
attachments and submission outcomes.
"""

from unittest.mock import AsyncMock

import pytest

from resource_console.descriptors import load_registry
from resource_console.descriptors.models import (
    FieldDescriptor,
    OptionEntry,
    RequiredRule,
    ResourceDescriptor,
    UploadProps,
)
from resource_console.errors import FormStateError, GatewayError, ValidationFailed
from resource_console.forms import FieldPhase, FormEngine
from resource_console.gateway.envelope import ListPage
from resource_console.uploads.models import DoneFile, LocalFile

REGISTRY = load_registry()

PROVINCES = [{"id": 31, "name": "上海"}, {"id": 11, "name": "北京"}]
CITIES = {
    "/api/provinces/11/cities": [{"id": 1101, "name": "东城区"}, {"id": 1102, "name": "西城区"}],
    "/api/provinces/31/cities": [{"id": 3101, "name": "黄浦区"}],
}


def _make_gateway(
    lists: dict[str, list[dict]] | None = None,
    fetches: dict[str, object] | None = None,
) -> AsyncMock:
    """Create an AsyncMock gateway answering from fixed collections.

    Args:
        lists: option source path -> records returned by ``list``.
        fetches: path -> body returned by ``fetch``.
    """
    lists = lists or {}
    fetches = fetches or {}

    async def _list(path, page=1, page_size=10, keyword=None, **extra):
        items = lists.get(path, [])
        return ListPage(items=items, total=len(items))

    async def _fetch(path, **params):
        return fetches.get(path, [])

    async def _create(base_path, payload):
        return {"id": 100, **payload}

    async def _update(base_path, id, payload):
        return {"id": id, **payload}

    async def _upload(endpoint, filename, content, content_type, category=None, on_progress=None):
        if on_progress is not None:
            on_progress(100)
        return f"/uploads/files/{filename}"

    gateway = AsyncMock()
    gateway.list = AsyncMock(side_effect=_list)
    gateway.fetch = AsyncMock(side_effect=_fetch)
    gateway.create = AsyncMock(side_effect=_create)
    gateway.update = AsyncMock(side_effect=_update)
    gateway.upload = AsyncMock(side_effect=_upload)
    return gateway


def _staff() -> ResourceDescriptor:
    return ResourceDescriptor(
        key="staff",
        title="Staff",
        base_path="/api/staff",
        form_fields=[
            FieldDescriptor(name="name", label="Name", rules=[RequiredRule()]),
            FieldDescriptor(
                name="attachment",
                label="Attachment",
                component="upload",
                upload=UploadProps(accept=".pdf", max_count=1, accept_category="file"),
            ),
        ],
    )


# ============================================================================
# Test: Opening and Closing
# ============================================================================


class TestOpenForm:
    """Test open_for_create/open_for_edit preconditions and initial state."""

    @pytest.mark.asyncio
    async def test_initial_values_and_phases(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(REGISTRY.get("departments"))

        assert engine.mode == "create"
        assert engine.value("name") is None
        assert engine.value("sortOrder") == 0
        assert engine.value("isHot") is False
        assert engine.phase("name") == FieldPhase.UNSET
        assert engine.phase("sortOrder") == FieldPhase.POPULATED

    @pytest.mark.asyncio
    async def test_only_one_form_at_a_time(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(REGISTRY.get("departments"))

        with pytest.raises(FormStateError, match="already open"):
            await engine.open_for_create(REGISTRY.get("drugs"))

        engine.close()
        await engine.open_for_create(REGISTRY.get("drugs"))
        assert engine.descriptor.key == "drugs"

    @pytest.mark.asyncio
    async def test_failed_open_closes_form(self) -> None:
        """An unexpected error while loading options leaves no form open."""
        gateway = _make_gateway()
        gateway.list = AsyncMock(side_effect=RuntimeError("malformed option source"))
        engine = FormEngine(gateway)

        with pytest.raises(RuntimeError):
            await engine.open_for_create(REGISTRY.get("doctors"))
        assert engine.is_open is False

        with pytest.raises(RuntimeError):
            await engine.open_for_edit(REGISTRY.get("doctors"), {"id": 4, "name": "Dr. Lee"})
        assert engine.is_open is False

        gateway.list = AsyncMock(return_value=ListPage())
        await engine.open_for_create(REGISTRY.get("doctors"))
        assert engine.mode == "create"

    @pytest.mark.asyncio
    async def test_read_only_cannot_open(self) -> None:
        engine = FormEngine(_make_gateway())
        with pytest.raises(FormStateError, match="read-only"):
            await engine.open_for_edit(REGISTRY.get("carts"), {"id": 1})
        with pytest.raises(FormStateError):
            await engine.open_for_create(REGISTRY.get("carts"))

    @pytest.mark.asyncio
    async def test_create_disabled(self) -> None:
        engine = FormEngine(_make_gateway())
        with pytest.raises(FormStateError, match="does not allow create"):
            await engine.open_for_create(REGISTRY.get("patient-support-groups"))
        await engine.open_for_edit(REGISTRY.get("patient-support-groups"), {"id": 2, "name": "Diabetes"})
        assert engine.mode == "edit"

    def test_no_form_open(self) -> None:
        with pytest.raises(FormStateError, match="No form is open"):
            FormEngine(_make_gateway()).values()

    @pytest.mark.asyncio
    async def test_set_value_guards(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(_staff())

        with pytest.raises(FormStateError, match="holds attachments"):
            await engine.set_value("attachment", "/uploads/x.pdf")
        with pytest.raises(FormStateError, match="no field 'email'"):
            await engine.set_value("email", "a@b.c")


# ============================================================================
# Test: Cascading Selects
# ============================================================================


class TestCascade:
    """Test dependent option reloads driven by the governing field."""

    @pytest.mark.asyncio
    async def test_create_defaults_and_auto_select(self) -> None:
        """The default province is chosen and its first city auto-selected."""
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)

        await engine.open_for_create(REGISTRY.get("tertiary-hospitals"))

        assert engine.value("provinceId") == 11
        assert engine.value("cityId") == "1101"
        assert [o.label for o in engine.options_for("cityId")] == ["东城区", "西城区"]

    @pytest.mark.asyncio
    async def test_change_clears_missing_value(self) -> None:
        """A selected city absent from the new province's cities is cleared."""
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("tertiary-hospitals"))

        await engine.set_value("provinceId", 31)

        assert engine.value("cityId") is None
        assert engine.options_for("cityId") == [OptionEntry(label="黄浦区", value="3101")]
        assert engine.phase("provinceId") == FieldPhase.EDITED

    @pytest.mark.asyncio
    async def test_value_kept_when_still_offered(self) -> None:
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("tertiary-hospitals"))
        await engine.set_value("cityId", "1102")

        await engine.set_value("provinceId", 11)

        assert engine.value("cityId") == "1102"

    @pytest.mark.asyncio
    async def test_back_and_forth_restores_options(self) -> None:
        """A -> B -> A restores A's cities and clears the city picked under B."""
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("tertiary-hospitals"))

        await engine.set_value("provinceId", 31)
        await engine.set_value("cityId", "3101")
        await engine.set_value("provinceId", 11)

        assert [o.value for o in engine.options_for("cityId")] == ["1101", "1102"]
        assert engine.value("cityId") is None

    @pytest.mark.asyncio
    async def test_clearing_governing_value(self) -> None:
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("tertiary-hospitals"))

        await engine.set_value("provinceId", None)

        assert engine.value("cityId") is None
        assert engine.options_for("cityId") == []

    @pytest.mark.asyncio
    async def test_edit_hydration_not_cleared(self) -> None:
        """On edit the stored city survives the initial option load."""
        gateway = _make_gateway({"/api/provinces": PROVINCES}, CITIES)
        engine = FormEngine(gateway)

        await engine.open_for_edit(
            REGISTRY.get("tertiary-hospitals"),
            {"id": 5, "name": "Union Hospital", "provinceId": 11, "cityId": 1199},
        )

        assert engine.value("cityId") == "1199"
        assert len(engine.options_for("cityId")) == 2
        gateway.fetch.assert_awaited_once_with("/api/provinces/11/cities")


# ============================================================================
# Test: Hydration
# ============================================================================


class TestEditHydration:
    """Test edit forms built from backend records."""

    RECORD = {
        "id": 3,
        "name": "Dr. Lee",
        "title": "Chief physician",
        "hospital": "Union Hospital",
        "DepartmentId": 2,
        "avatar": "uploads\\doctors\\lee.png",
        "isRecommended": 1,
        "createdAt": "2024-01-01T00:00:00Z",
    }
    LISTS = {
        "/api/tertiaryhospitals": [{"id": 7, "name": "Union Hospital"}, {"id": 8, "name": "West China"}],
        "/api/departments": [{"id": 2, "name": "Cardiology"}],
    }

    @pytest.mark.asyncio
    async def test_values_resolved(self) -> None:
        engine = FormEngine(_make_gateway(self.LISTS))
        await engine.open_for_edit(REGISTRY.get("doctors"), self.RECORD)

        assert engine.form.record_id == 3
        assert engine.value("hospitalId") == 7
        assert engine.value("departmentId") == "2"
        assert engine.value("isRecommended") is True
        avatar = engine.value("avatarUrl")
        assert isinstance(avatar[0], DoneFile)
        assert avatar[0].server_path == "/uploads/doctors/lee.png"
        assert engine.phase("hospitalId") == FieldPhase.POPULATED

    @pytest.mark.asyncio
    async def test_unmatched_label_leaves_empty(self) -> None:
        engine = FormEngine(_make_gateway(self.LISTS))
        await engine.open_for_edit(REGISTRY.get("doctors"), {**self.RECORD, "hospital": "Elsewhere"})
        assert engine.value("hospitalId") is None

    @pytest.mark.asyncio
    async def test_submit_edit(self) -> None:
        """The doctor is saved by id with the hospital sent by name."""
        gateway = _make_gateway(self.LISTS)
        engine = FormEngine(gateway)
        await engine.open_for_edit(REGISTRY.get("doctors"), self.RECORD)
        await engine.set_value("hospitalId", 8)

        result = await engine.submit()

        assert result.ok, result.message
        payload = result.payload
        assert payload["hospital"] == "West China"
        assert "hospitalId" not in payload
        assert payload["avatarUrl"] == "/uploads/doctors/lee.png"
        assert payload["departmentId"] == "2"
        assert "id" not in payload
        assert "createdAt" not in payload
        gateway.update.assert_awaited_once_with("/api/doctors", 3, payload)
        assert not engine.is_open


# ============================================================================
# Test: Computed Fields
# ============================================================================


class TestComputedInForm:
    """Test that computed fields follow their inputs."""

    @pytest.mark.asyncio
    async def test_bmi_updates(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(REGISTRY.get("patient-info"))

        await engine.set_value("height", 170)
        assert engine.value("bmi") is None
        await engine.set_value("weight", 70)
        assert engine.value("bmi") == 24.22
        await engine.set_value("height", 0)
        assert engine.value("bmi") is None


# ============================================================================
# Test: Submission
# ============================================================================


class TestSubmit:
    """Test submit() outcomes."""

    @pytest.mark.asyncio
    async def test_minimal_create(self) -> None:
        """name='Dr. Lee' with an untouched attachment sends {name, attachment: null}."""
        gateway = _make_gateway()
        engine = FormEngine(gateway)
        await engine.open_for_create(_staff())
        await engine.set_value("name", "Dr. Lee")

        result = await engine.submit()

        assert result.ok
        assert result.payload == {"name": "Dr. Lee", "attachment": None}
        assert result.record["id"] == 100
        gateway.create.assert_awaited_once_with("/api/staff", {"name": "Dr. Lee", "attachment": None})
        assert not engine.is_open

    @pytest.mark.asyncio
    async def test_validation_blocks_submit(self) -> None:
        gateway = _make_gateway()
        engine = FormEngine(gateway)
        await engine.open_for_create(_staff())

        result = await engine.submit()

        assert not result.ok
        assert result.errors == {"name": "Name is required"}
        assert result.message == "Name is required"
        gateway.create.assert_not_called()
        assert engine.is_open
        assert engine.phase("name") == FieldPhase.VALIDATED
        assert engine.errors == {"name": "Name is required"}

    @pytest.mark.asyncio
    async def test_require_valid(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(_staff())

        with pytest.raises(ValidationFailed) as exc_info:
            engine.require_valid()
        assert exc_info.value.errors == {"name": "Name is required"}

        await engine.set_value("name", "Dr. Lee")
        engine.require_valid()
        assert engine.errors == {}

    @pytest.mark.asyncio
    async def test_pending_upload_blocks_submit(self) -> None:
        """Selected but unsent files block submission until uploaded."""
        gateway = _make_gateway()
        engine = FormEngine(gateway)
        await engine.open_for_create(_staff())
        await engine.set_value("name", "Dr. Lee")
        rejected = engine.select_files("attachment", [LocalFile(name="cv.pdf", content=b"%PDF-1.4")])
        assert rejected == []

        blocked = await engine.submit()
        assert not blocked.ok
        assert blocked.message == "Please wait for uploads to finish"
        assert "attachment" in blocked.errors
        gateway.create.assert_not_called()

        await engine.upload_pending("attachment")
        result = await engine.submit()
        assert result.ok
        assert result.payload["attachment"] == "/uploads/files/cv.pdf"

    @pytest.mark.asyncio
    async def test_translated_upload_wait(self) -> None:
        def translator(key, params):
            return {"resource.uploadWait": "请等待上传完成"}.get(key)

        engine = FormEngine(_make_gateway(), translator=translator)
        await engine.open_for_create(_staff())
        await engine.set_value("name", "Dr. Lee")
        engine.select_files("attachment", [LocalFile(name="cv.pdf", content=b"%PDF-1.4")])

        result = await engine.submit()

        assert result.message == "请等待上传完成"

    @pytest.mark.asyncio
    async def test_removed_file_not_submitted(self) -> None:
        engine = FormEngine(_make_gateway())
        await engine.open_for_create(_staff())
        await engine.set_value("name", "Dr. Lee")
        engine.select_files("attachment", [LocalFile(name="cv.pdf", content=b"%PDF-1.4")])
        file_id = engine.value("attachment")[0].id
        engine.remove_file("attachment", file_id)

        result = await engine.submit()

        assert result.ok
        assert result.payload["attachment"] is None

    @pytest.mark.asyncio
    async def test_server_error_keeps_form_open(self) -> None:
        gateway = _make_gateway()
        gateway.create = AsyncMock(side_effect=GatewayError("Name already exists", status_code=400))
        engine = FormEngine(gateway)
        await engine.open_for_create(_staff())
        await engine.set_value("name", "Dr. Lee")

        result = await engine.submit()

        assert not result.ok
        assert result.message == "Name already exists"
        assert result.payload == {"name": "Dr. Lee", "attachment": None}
        assert engine.is_open

    @pytest.mark.asyncio
    async def test_hook_failure_reported(self) -> None:
        """An unknown username blocks a patient create with a message."""
        gateway = _make_gateway(fetches={"/api/users": []})
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("patient-info"))
        await engine.set_value("username", "ghost")
        await engine.set_value("realName", "Ghost")

        result = await engine.submit()

        assert not result.ok
        assert result.message == "User 'ghost' not found"
        gateway.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_patient_create(self) -> None:
        gateway = _make_gateway(fetches={"/api/users": [{"id": 42, "username": "alice"}]})
        engine = FormEngine(gateway)
        await engine.open_for_create(REGISTRY.get("patient-info"))
        await engine.set_value("username", "alice")
        await engine.set_value("realName", "Alice")
        await engine.set_value("dateOfBirth", "1990-05-17")

        result = await engine.submit()

        assert result.ok, result.message
        assert result.payload["patientId"] == 42
        assert "id" not in result.payload
        assert result.payload["dateOfBirth"] == "1990-05-17T00:00:00.000Z"
        assert result.payload["gender"] is None
