# ================================================================
# File     : collectors.py
# Purpose  : The five assignment-source collectors + role allow-lists
# Notes    : Each collector queries one source, keeps only allow-listed
#            roles and returns a CollectorResult. Mandatory collectors
#            (direct assignments) let errors propagate; optional ones
#            (PIM schedules) never raise and report what they skipped.
#
#            directory -> DirectoryQueries-like object (handlers/graph)
#            resources -> ResourceAuthorizationQueries-like object
#                         (handlers/arm)
# ================================================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Tuple

from core.models import (
    AssignmentCategory,
    AssignmentSourceRecord,
    AssignmentState,
    ControlPlane,
)
from core.utils import fncPrintMessage

ACTIVATED = "activated"


class SectionStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"


@dataclass
class CollectorResult:
    name: str
    control_plane: ControlPlane
    records: List[AssignmentSourceRecord] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    completed_parts: int = 0
    duplicates_dropped: int = 0

    @property
    def status(self) -> SectionStatus:
        if not self.skipped:
            return SectionStatus.COMPLETE
        if self.completed_parts:
            return SectionStatus.PARTIAL
        return SectionStatus.UNAVAILABLE


def skipped_result(name: str, control_plane: ControlPlane, reason: str) -> CollectorResult:
    return CollectorResult(name=name, control_plane=control_plane, skipped=[reason])


# ================================================================
# Function: build_role_allow_list
# Purpose : Match configured role names against a role catalog
# Notes   : Case-insensitive. Returns {canonical name: role id}.
#           Unknown names are dropped with a warning, never fatal.
# ================================================================
def build_role_allow_list(
    configured: Iterable[str],
    catalog: Iterable[Dict[str, Any]],
    plane_label: str,
    log: Callable[[str, str], None] = fncPrintMessage,
) -> Dict[str, str]:
    by_name: Dict[str, Dict[str, Any]] = {}
    for rd in catalog or []:
        name = (rd.get("displayName") or "").strip()
        if name and rd.get("id"):
            by_name.setdefault(name.lower(), rd)

    allow: Dict[str, str] = {}
    for wanted in configured or []:
        wanted = (wanted or "").strip()
        if not wanted:
            continue
        hit = by_name.get(wanted.lower())
        if not hit:
            log(f"[{plane_label}] Role '{wanted}' not found in role catalog; it will not be reported.", "warn")
            continue
        allow[hit["displayName"].strip()] = hit["id"]
    log(f"[{plane_label}] {len(allow)} privileged role(s) in allow-list", "debug")
    return allow


# ---------------------- directory roles (Entra) ----------------------

def _directory_records(rows, allow: Dict[str, str], category, state) -> List[AssignmentSourceRecord]:
    names_by_id = {rid: name for name, rid in allow.items()}
    out: List[AssignmentSourceRecord] = []
    for r in rows or []:
        rid = r.get("roleDefinitionId")
        if rid not in names_by_id:
            continue
        out.append(AssignmentSourceRecord(
            principal_id=r.get("principalId"),
            role_name=names_by_id[rid],
            role_definition_id=rid,
            scope=r.get("directoryScopeId") or "/",
            category=category,
            state=state,
            assignment_id=r.get("id"),
        ))
    return out


def collect_directory_role_assignments(directory, allow: Dict[str, str]) -> CollectorResult:
    """Entra direct (persistent) role assignments. Mandatory."""
    rows = directory.role_assignments()
    records = _directory_records(rows, allow, AssignmentCategory.DIRECT_ASSIGNMENT, AssignmentState.ACTIVE)
    return CollectorResult("entra_direct_assignments", ControlPlane.ENTRA_DIRECTORY_ROLE,
                           records=records, completed_parts=1)


def collect_directory_role_eligibility(directory, allow: Dict[str, str]) -> CollectorResult:
    """Entra PIM eligibility schedules. Optional."""
    name = "entra_eligibility_schedules"
    try:
        rows = directory.role_eligibility_schedules()
    except Exception as ex:
        return skipped_result(name, ControlPlane.ENTRA_DIRECTORY_ROLE, f"eligibility schedules unavailable: {ex}")
    records = _directory_records(rows, allow, AssignmentCategory.PIM_ELIGIBLE, AssignmentState.ELIGIBLE)
    return CollectorResult(name, ControlPlane.ENTRA_DIRECTORY_ROLE, records=records, completed_parts=1)


def collect_directory_role_active_schedules(directory, allow: Dict[str, str]) -> CollectorResult:
    """Entra assignment schedule instances that came from an activated eligibility. Optional."""
    name = "entra_active_schedules"
    try:
        rows = directory.role_assignment_schedule_instances()
    except Exception as ex:
        return skipped_result(name, ControlPlane.ENTRA_DIRECTORY_ROLE, f"active schedule instances unavailable: {ex}")
    rows = [r for r in rows or [] if (r.get("assignmentType") or "").lower() == ACTIVATED]
    records = _directory_records(rows, allow, AssignmentCategory.PIM_ACTIVE_SCHEDULE, AssignmentState.SCHEDULED_ACTIVE)
    return CollectorResult(name, ControlPlane.ENTRA_DIRECTORY_ROLE, records=records, completed_parts=1)


# ----------------------- resource RBAC (Azure) -----------------------

def _names_lookup(allow: Dict[str, str]) -> Dict[str, str]:
    return {name.lower(): name for name in allow}


def _dedupe_by_id(rows: Iterable[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int]:
    seen = set()
    kept: List[Dict[str, Any]] = []
    dropped = 0
    for r in rows:
        key = (r.get("id") or "").lower()
        if key and key in seen:
            dropped += 1
            continue
        if key:
            seen.add(key)
        kept.append(r)
    return kept, dropped


def _resource_records(rows, allow: Dict[str, str], category, state) -> List[AssignmentSourceRecord]:
    wanted = _names_lookup(allow)
    out: List[AssignmentSourceRecord] = []
    for r in rows:
        role_name = (r.get("roleDefinitionName") or "").strip()
        if role_name.lower() not in wanted:
            continue
        out.append(AssignmentSourceRecord(
            principal_id=r.get("principalId"),
            role_name=role_name,
            role_definition_id=r.get("roleDefinitionId") or "",
            scope=r.get("scope") or "",
            category=category,
            state=state,
            assignment_id=r.get("id"),
            source_principal_type=r.get("principalType"),
        ))
    return out


def collect_resource_role_assignments(resources, scopes: List[str], allow: Dict[str, str]) -> CollectorResult:
    """
    Azure RBAC direct role assignments over every reachable scope. Mandatory.
    An assignment visible at more than one scope is kept once (by ARM id).
    """
    raw: List[Dict[str, Any]] = []
    for scope in scopes:
        raw.extend(resources.role_assignments(scope))
    rows, dropped = _dedupe_by_id(raw)
    records = _resource_records(rows, allow, AssignmentCategory.DIRECT_ASSIGNMENT, AssignmentState.ACTIVE)
    return CollectorResult("azure_direct_assignments", ControlPlane.AZURE_RBAC,
                           records=records, completed_parts=1, duplicates_dropped=dropped)


def _collect_schedule_half(fetch, scopes: List[str], label: str,
                           skipped: List[str]) -> Tuple[List[Dict[str, Any]], int, bool]:
    """Query every scope; a failing scope is noted in skipped and the rest still count."""
    raw: List[Dict[str, Any]] = []
    reached = not scopes
    for scope in scopes:
        try:
            raw.extend(fetch(scope))
        except Exception as ex:
            skipped.append(f"{label} unavailable at {scope}: {ex}")
            continue
        reached = True
    rows, dropped = _dedupe_by_id(raw)
    return rows, dropped, reached


def collect_resource_role_schedules(resources, scopes: List[str], allow: Dict[str, str],
                                    include_eligible: bool = True,
                                    include_active: bool = True) -> CollectorResult:
    """
    Azure PIM eligibility + activated assignment schedule instances. Optional.
    The eligible and active halves fail independently of each other, and
    within a half each scope fails on its own.
    """
    result = CollectorResult("azure_pim_schedules", ControlPlane.AZURE_RBAC)

    if include_eligible:
        rows, dropped, reached = _collect_schedule_half(
            resources.role_eligibility_schedule_instances, scopes,
            "eligibility schedule instances", result.skipped,
        )
        result.records.extend(_resource_records(rows, allow, AssignmentCategory.PIM_ELIGIBLE,
                                                AssignmentState.ELIGIBLE))
        result.duplicates_dropped += dropped
        result.completed_parts += int(reached)
    else:
        result.skipped.append("eligibility schedule instances disabled in config")

    if include_active:
        rows, dropped, reached = _collect_schedule_half(
            resources.role_assignment_schedule_instances, scopes,
            "active schedule instances", result.skipped,
        )
        rows = [r for r in rows if (r.get("assignmentType") or "").lower() == ACTIVATED]
        result.records.extend(_resource_records(rows, allow, AssignmentCategory.PIM_ACTIVE_SCHEDULE,
                                                AssignmentState.SCHEDULED_ACTIVE))
        result.duplicates_dropped += dropped
        result.completed_parts += int(reached)
    else:
        result.skipped.append("active schedule instances disabled in config")

    return result
