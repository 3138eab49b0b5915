# ================================================================
# File     : models.py
# Purpose  : Shared record types for the privileged-access rollup
# Notes    : Closed enums for every tag that ends up in a report row.
#            Principals are a small closed union: Individual, Group,
#            Unresolved. Everything here lives for one run only.
# ================================================================

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional, Union


class ControlPlane(str, Enum):
    ENTRA_DIRECTORY_ROLE = "EntraDirectoryRole"
    AZURE_RBAC = "AzureRBAC"


class AssignmentCategory(str, Enum):
    DIRECT_ASSIGNMENT = "DirectAssignment"
    PIM_ELIGIBLE = "PIMEligible"
    PIM_ACTIVE_SCHEDULE = "PIMActiveSchedule"
    # Only ever produced by normalisation, never by a collector
    GROUP_ASSIGNMENT_EXPANDED = "GroupAssignmentExpanded"


class AssignmentState(str, Enum):
    ACTIVE = "Active"
    ELIGIBLE = "Eligible"
    SCHEDULED_ACTIVE = "ScheduledActive"


class PrincipalType(str, Enum):
    INDIVIDUAL = "Individual"
    GROUP_EMPTY = "Group-empty"
    SERVICE_PRINCIPAL = "ServicePrincipal"
    UNKNOWN = "Unknown"


# ---------------------------- principals ----------------------------

@dataclass(frozen=True)
class Individual:
    id: str
    login_name: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Group:
    id: str
    display_name: Optional[str] = None
    is_privilege_eligible: bool = False


@dataclass(frozen=True)
class Unresolved:
    """Neither a user nor a group lookup found this id."""
    id: str


Principal = Union[Individual, Group, Unresolved]


# ----------------------------- records ------------------------------

@dataclass(frozen=True)
class AssignmentSourceRecord:
    principal_id: Optional[str]
    role_name: str
    role_definition_id: str
    scope: str
    category: AssignmentCategory
    state: AssignmentState
    assignment_id: Optional[str] = None
    source_principal_type: Optional[str] = None


@dataclass(frozen=True)
class RunContext:
    generated_at_utc: str
    tenant_id: str


# Export column order for ReportRow.to_dict()
REPORT_COLUMNS = [
    "generatedAtUtc",
    "tenantId",
    "controlPlane",
    "roleName",
    "roleDefinitionId",
    "scope",
    "assignmentCategory",
    "assignmentState",
    "principalType",
    "effectiveIndividualId",
    "effectiveIndividualLoginName",
    "effectiveIndividualDisplayName",
    "sourceGroupId",
    "sourceGroupDisplayName",
    "isPrivilegeEligibleContainer",
    "notes",
]


@dataclass(frozen=True)
class ReportRow:
    generated_at_utc: str
    tenant_id: str
    control_plane: ControlPlane
    role_name: str
    role_definition_id: str
    scope: str
    assignment_category: AssignmentCategory
    assignment_state: AssignmentState
    principal_type: PrincipalType
    effective_individual_id: Optional[str] = None
    effective_individual_login_name: Optional[str] = None
    effective_individual_display_name: Optional[str] = None
    source_group_id: Optional[str] = None
    source_group_display_name: Optional[str] = None
    is_privilege_eligible_container: Optional[bool] = None
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the export shape (camelCase keys, enum values as strings)."""
        raw = asdict(self)
        values = [
            raw["generated_at_utc"],
            raw["tenant_id"],
            self.control_plane.value,
            raw["role_name"],
            raw["role_definition_id"],
            raw["scope"],
            self.assignment_category.value,
            self.assignment_state.value,
            self.principal_type.value,
            raw["effective_individual_id"],
            raw["effective_individual_login_name"],
            raw["effective_individual_display_name"],
            raw["source_group_id"],
            raw["source_group_display_name"],
            raw["is_privilege_eligible_container"],
            raw["notes"],
        ]
        return dict(zip(REPORT_COLUMNS, values))
