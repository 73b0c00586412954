"""Resource submit hooks.

A descriptor may name a hook (``submit_hook``) that adapts its payload to
what the backend endpoint expects. A hook has three parts:

- ``prepare``: async side lookups, run by the form engine before the payload
  is built (e.g. resolve a username to a user id).
- ``pre``: pure adjustment of the form values, given the lookup results.
- ``post``: pure adjustment of the finished payload, right before sending.

Usage:
    from resource_console.transform.hooks import default_hooks

    hooks = default_hooks()
    hook = hooks.get("doctors")
"""

import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Literal

from resource_console.descriptors.models import OptionEntry, ResourceDescriptor
from resource_console.errors import GatewayError, SubmissionError
from resource_console.gateway.base import ResourceClient
from resource_console.gateway.envelope import unwrap_collection
from resource_console.i18n import Translator, translate
from resource_console.values import is_blank, values_match

logger = logging.getLogger(__name__)

FormMode = Literal["create", "edit"]


@dataclass
class HookContext:
    """What a hook's ``prepare`` step may consult."""

    descriptor: ResourceDescriptor
    mode: FormMode
    values: dict[str, Any]
    gateway: ResourceClient
    options: dict[str, list[OptionEntry]] = dataclass_field(default_factory=dict)
    translator: Translator | None = None


class ResourceHook:
    """Base hook: every step is a no-op."""

    name: str = ""

    async def prepare(self, ctx: HookContext) -> dict[str, Any]:
        return {}

    def pre(self, values: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        return values

    def post(self, payload: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        return payload


# ============================================================================
# Built-in Hooks
# ============================================================================


class PatientInfoHook(ResourceHook):
    """Patient records link to a user account chosen by username.

    On create the username is resolved to the user's id (``patientId``); an
    unknown username blocks submission. On edit the username is not sent.
    """

    name = "patient-info"
    users_path = "/api/users"

    async def prepare(self, ctx: HookContext) -> dict[str, Any]:
        username = ctx.values.get("username")
        if ctx.mode != "create" or is_blank(username):
            return {}
        username = str(username).strip()

        try:
            body = await ctx.gateway.fetch(self.users_path, keyword=username, pageSize=1)
        except GatewayError as e:
            raise SubmissionError(
                translate(
                    ctx.translator,
                    "resource.patient-info.field.username.lookupFailed",
                    f"Could not look up user '{username}': {e.message}",
                )
            ) from e

        user = next(
            (u for u in unwrap_collection(body) if u.get("username") == username),
            None,
        )
        if user is None:
            raise SubmissionError(
                translate(
                    ctx.translator,
                    "resource.patient-info.field.username.notFound",
                    f"User '{username}' not found",
                )
            )
        return {"patientId": user.get("id")}

    def pre(self, values: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        if "patientId" in lookups:
            values = {**values, "patientId": lookups["patientId"]}
        if mode == "edit":
            values = {k: v for k, v in values.items() if k != "username"}
        return values


class DoctorsHook(ResourceHook):
    """Doctors store their hospital by name, not by id.

    ``hospitalId`` is rewritten to the hospital's name: first from the loaded
    options, else by fetching the hospital. When neither works the id is
    left for the backend to handle.
    """

    name = "doctors"
    hospitals_path = "/api/tertiaryhospitals"

    async def prepare(self, ctx: HookContext) -> dict[str, Any]:
        hospital_id = ctx.values.get("hospitalId")
        if is_blank(hospital_id):
            return {}

        for option in ctx.options.get("hospitalId", []):
            if values_match(option.value, hospital_id):
                return {"hospital": option.label}

        try:
            hospital = await ctx.gateway.get(self.hospitals_path, hospital_id)
        except GatewayError as e:
            logger.warning(f"[Hooks] Could not resolve hospital {hospital_id!r}: {e.message}")
            return {}
        name = hospital.get("name") or hospital.get("Name")
        return {"hospital": name} if name else {}

    def pre(self, values: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        if "hospital" in lookups:
            values = {**values, "hospital": lookups["hospital"]}
        return values

    def post(self, payload: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        if "hospital" in lookups:
            return {k: v for k, v in payload.items() if k != "hospitalId"}
        return payload


class SystemUsersHook(ResourceHook):
    """Console accounts created here are administrators unless a role is chosen."""

    name = "system-users"
    default_role = "Admin"

    def post(self, payload: dict[str, Any], mode: FormMode, lookups: dict[str, Any]) -> dict[str, Any]:
        if mode == "create" and is_blank(payload.get("role")):
            return {**payload, "role": self.default_role}
        return payload


# ============================================================================
# Registry
# ============================================================================


class HookRegistry:
    """Hooks keyed by name."""

    def __init__(self, hooks: list[ResourceHook] | None = None) -> None:
        self._hooks: dict[str, ResourceHook] = {}
        for hook in hooks or []:
            self.register(hook)

    def register(self, hook: ResourceHook) -> None:
        self._hooks[hook.name] = hook

    def get(self, name: str | None) -> ResourceHook | None:
        if name is None:
            return None
        return self._hooks.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._hooks


def default_hooks() -> HookRegistry:
    return HookRegistry([PatientInfoHook(), DoctorsHook(), SystemUsersHook()])
