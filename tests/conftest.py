"""Shared fakes for the query collaborators (no network)."""

from __future__ import annotations

from collections import Counter
from typing import Any

import pytest

from core.models import RunContext

USER = "#microsoft.graph.user"
SP = "#microsoft.graph.servicePrincipal"
GROUP = "#microsoft.graph.group"

ENTRA_CATALOG = [
    {"id": "role-ga", "displayName": "Global Administrator"},
    {"id": "role-pra", "displayName": "Privileged Role Administrator"},
    {"id": "role-reader", "displayName": "Directory Readers"},
]

AZURE_OWNER_ID = "/providers/Microsoft.Authorization/roleDefinitions/8e3af657-a8ff-443c-a75c-2fe8c4bcb635"
AZURE_READER_ID = "/providers/Microsoft.Authorization/roleDefinitions/acdd72a7-3385-48ef-bd42-f606fba81ae7"

AZURE_CATALOG = [
    {"id": AZURE_OWNER_ID, "displayName": "Owner"},
    {"id": AZURE_READER_ID, "displayName": "Reader"},
]


class FakeDirectory:
    """Stand-in for DirectoryQueries with call counting."""

    def __init__(self) -> None:
        self.catalog: list[dict[str, Any]] = list(ENTRA_CATALOG)
        self.assignments: list[dict[str, Any]] = []
        self.eligibility: list[dict[str, Any]] | Exception = []
        self.active: list[dict[str, Any]] | Exception = []
        self.users: dict[str, dict[str, Any]] = {}
        self.groups: dict[str, dict[str, Any]] = {}
        self.members: dict[str, list[dict[str, Any]] | Exception] = {}
        self.user_errors: set[str] = set()
        self.calls: Counter[str] = Counter()

    def add_user(self, uid: str, upn: str | None = None, name: str | None = None) -> dict[str, Any]:
        user = {"@odata.type": USER, "id": uid, "userPrincipalName": upn or f"{uid.lower()}@contoso.com",
                "displayName": name or f"User {uid}"}
        self.users[uid] = user
        return user

    def add_group(self, gid: str, name: str, members: list[dict[str, Any]] | Exception,
                  assignable: bool = False) -> None:
        self.groups[gid] = {"id": gid, "displayName": name, "isAssignableToRole": assignable}
        self.members[gid] = members

    def role_definitions(self) -> list[dict[str, Any]]:
        return self.catalog

    def role_assignments(self) -> list[dict[str, Any]]:
        self.calls["role_assignments"] += 1
        if isinstance(self.assignments, Exception):
            raise self.assignments
        return self.assignments

    def role_eligibility_schedules(self) -> list[dict[str, Any]]:
        if isinstance(self.eligibility, Exception):
            raise self.eligibility
        return self.eligibility

    def role_assignment_schedule_instances(self) -> list[dict[str, Any]]:
        if isinstance(self.active, Exception):
            raise self.active
        return self.active

    def get_user(self, object_id: str) -> dict[str, Any] | None:
        self.calls[f"user:{object_id}"] += 1
        if object_id in self.user_errors:
            raise RuntimeError("graph exploded")
        return self.users.get(object_id)

    def get_group(self, object_id: str) -> dict[str, Any] | None:
        self.calls[f"group:{object_id}"] += 1
        return self.groups.get(object_id)

    def list_transitive_members(self, group_id: str) -> list[dict[str, Any]]:
        self.calls[f"members:{group_id}"] += 1
        found = self.members.get(group_id, [])
        if isinstance(found, Exception):
            raise found
        return found


def _or_raise(found: Any) -> Any:
    if isinstance(found, Exception):
        raise found
    return found


class FakeResources:
    """Stand-in for ResourceAuthorizationQueries."""

    def __init__(self) -> None:
        self.scopes: list[str] = ["/subscriptions/S1"]
        self.scope_warnings: list[str] = []
        self.catalog: list[dict[str, Any]] = list(AZURE_CATALOG)
        self.assignments: dict[str, list[dict[str, Any]]] = {}
        self.eligibility: dict[str, Any] | Exception = {}
        self.active: dict[str, Any] | Exception = {}

    def list_scopes(self) -> tuple[list[str], list[str]]:
        return list(self.scopes), list(self.scope_warnings)

    def role_definitions(self, scopes: list[str]) -> tuple[list[dict[str, Any]], list[str]]:
        return self.catalog, []

    def role_assignments(self, scope: str) -> list[dict[str, Any]]:
        return self.assignments.get(scope, [])

    def role_eligibility_schedule_instances(self, scope: str) -> list[dict[str, Any]]:
        if isinstance(self.eligibility, Exception):
            raise self.eligibility
        return _or_raise(self.eligibility.get(scope, []))

    def role_assignment_schedule_instances(self, scope: str) -> list[dict[str, Any]]:
        if isinstance(self.active, Exception):
            raise self.active
        return _or_raise(self.active.get(scope, []))


def arm_row(assignment_id: str, principal_id: str, scope: str, role: str = "Owner",
            principal_type: str = "User", assignment_type: str | None = None) -> dict[str, Any]:
    """Flattened ARM row as produced by ResourceAuthorizationQueries."""
    return {
        "id": assignment_id,
        "principalId": principal_id,
        "principalType": principal_type,
        "roleDefinitionId": f"{scope}{AZURE_OWNER_ID}" if role == "Owner" else f"{scope}{AZURE_READER_ID}",
        "roleDefinitionName": role,
        "scope": scope,
        "assignmentType": assignment_type,
    }


class LogRecorder:
    """Collects (message, level) pairs passed to a progress/log callback."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, str]] = []

    def __call__(self, message: str, level: str = "info") -> None:
        self.entries.append((message, level))

    def at(self, level: str) -> list[str]:
        return [m for m, lvl in self.entries if lvl == level]


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def resources() -> FakeResources:
    return FakeResources()


@pytest.fixture
def log() -> LogRecorder:
    return LogRecorder()


@pytest.fixture
def context() -> RunContext:
    return RunContext(generated_at_utc="2026-10-19T00:00:00Z", tenant_id="tenant-1")
