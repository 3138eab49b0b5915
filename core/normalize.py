# ================================================================
# File     : normalize.py
# Purpose  : Turn one source record + resolved principal into rows
# Notes    : Single path for all five sources. Only control plane,
#            category, state and scope differ upstream.
# ================================================================

from typing import List, Optional, Sequence

from core.models import (
    AssignmentCategory,
    AssignmentSourceRecord,
    ControlPlane,
    Group,
    Individual,
    Principal,
    PrincipalType,
    ReportRow,
    RunContext,
    Unresolved,
)


def _base(record: AssignmentSourceRecord, control_plane: ControlPlane,
          category: AssignmentCategory, context: RunContext, **fields) -> ReportRow:
    return ReportRow(
        generated_at_utc=context.generated_at_utc,
        tenant_id=context.tenant_id,
        control_plane=control_plane,
        role_name=record.role_name,
        role_definition_id=record.role_definition_id,
        scope=record.scope,
        assignment_category=category,
        assignment_state=record.state,
        **fields,
    )


def _group_rows(record, group: Group, control_plane, context,
                members: Sequence[Individual], membership_error: Optional[str]) -> List[ReportRow]:
    category = AssignmentCategory.GROUP_ASSIGNMENT_EXPANDED
    group_label = group.display_name or group.id
    shared = dict(
        source_group_id=group.id,
        source_group_display_name=group.display_name,
        is_privilege_eligible_container=group.is_privilege_eligible,
    )

    if not members:
        note = f"Group '{group_label}' has zero transitive user members"
        if membership_error:
            note += f"; membership lookup failed: {membership_error}"
        return [_base(record, control_plane, category, context,
                      principal_type=PrincipalType.GROUP_EMPTY, notes=note, **shared)]

    note = f"Inherited via group '{group_label}'"
    if not group.is_privilege_eligible and control_plane is ControlPlane.ENTRA_DIRECTORY_ROLE:
        note += " (group is not role-assignable)"
    return [
        _base(record, control_plane, category, context,
              principal_type=PrincipalType.INDIVIDUAL,
              effective_individual_id=m.id,
              effective_individual_login_name=m.login_name,
              effective_individual_display_name=m.display_name,
              notes=note,
              **shared)
        for m in members
    ]


def _unresolved_note(record: AssignmentSourceRecord) -> str:
    note = ("Principal could not be resolved as a user or group; "
            "labelled ServicePrincipal on a best-effort basis")
    if record.source_principal_type:
        note += f" (source reports '{record.source_principal_type}')"
    return note


# ================================================================
# Function: normalize
# Purpose : Map a record and its principal to one or more ReportRows
# Notes   : Group assignments always come out as GroupAssignmentExpanded,
#           whatever category the source supplied.
# ================================================================
def normalize(
    record: AssignmentSourceRecord,
    principal: Optional[Principal],
    control_plane: ControlPlane,
    category: AssignmentCategory,
    context: RunContext,
    members: Sequence[Individual] = (),
    membership_error: Optional[str] = None,
) -> List[ReportRow]:
    if principal is None:
        return [_base(record, control_plane, category, context,
                      principal_type=PrincipalType.UNKNOWN,
                      notes="Assignment carries no principal identifier")]

    if isinstance(principal, Individual):
        return [_base(record, control_plane, category, context,
                      principal_type=PrincipalType.INDIVIDUAL,
                      effective_individual_id=principal.id,
                      effective_individual_login_name=principal.login_name,
                      effective_individual_display_name=principal.display_name)]

    if isinstance(principal, Group):
        return _group_rows(record, principal, control_plane, context, members, membership_error)

    if isinstance(principal, Unresolved):
        return [_base(record, control_plane, category, context,
                      principal_type=PrincipalType.SERVICE_PRINCIPAL,
                      effective_individual_id=principal.id,
                      notes=_unresolved_note(record))]

    raise TypeError(f"Unhandled principal variant: {type(principal).__name__}")
