# ================================================================
# File     : modules/azure/privileged_access.py
# Purpose  : Privileged-access rollup across Entra directory roles and
#            Azure RBAC (direct + PIM eligible + PIM activated)
# Output   : data["rows"]      -> one row per (plane, role, scope,
#                                 category, state, individual, group)
#            data["sections"]  -> per-collector status
#            data["warnings"]  -> run-level warnings
# Notes    : Read-only. Sequential. Follows the run(client, args)
#            signature; client is a TenantSession.
# ================================================================

from collections import Counter
from typing import Any, Callable, Dict, List

from core.aggregate import AggregationResult, CollectorTask, PrivilegedAccessAggregator
from core.collectors import (
    build_role_allow_list,
    collect_directory_role_active_schedules,
    collect_directory_role_assignments,
    collect_directory_role_eligibility,
    collect_resource_role_assignments,
    collect_resource_role_schedules,
    skipped_result,
)
from core.config import fncGetPrivilegedRoles, fncSectionsEnabled
from core.models import REPORT_COLUMNS, ControlPlane, RunContext
from core.principals import GroupMembershipExpander, PrincipalCache
from core.utils import fncNewRunId, fncPrintMessage, fncToTable, fncUtcNow
from handlers.arm.authorization import ResourceAuthorizationQueries
from handlers.graph.directory import DirectoryQueries

REQUIRED_PERMS = [
    "RoleManagement.Read.Directory",
    "User.Read.All",
    "GroupMember.Read.All",
    "Azure RBAC: Reader (or Microsoft.Authorization/*/read) on each scope",
]

PREVIEW_COLUMNS = [
    "controlPlane",
    "roleName",
    "scope",
    "assignmentCategory",
    "principalType",
    "effectiveIndividualLoginName",
    "sourceGroupDisplayName",
]


def _build_tasks(directory, resources, cfg: dict,
                 warnings: List[str], progress: Callable[[str, str], None]) -> List[CollectorTask]:
    enabled = fncSectionsEnabled(cfg)
    entra = ControlPlane.ENTRA_DIRECTORY_ROLE
    azure = ControlPlane.AZURE_RBAC

    def warn(msg: str, level: str = "warn") -> None:
        if level == "warn":
            warnings.append(msg)
        progress(msg, level)

    # Entra catalog -> allow-list (catalog read failure aborts the run)
    progress("Loading Entra role definitions...", "info")
    entra_allow = build_role_allow_list(
        fncGetPrivilegedRoles(cfg, "entra"), directory.role_definitions(), "Entra", log=warn
    )

    # Azure scopes + catalog -> allow-list
    progress("Discovering Azure management groups and subscriptions...", "info")
    scopes, scope_warnings = resources.list_scopes()
    for w in scope_warnings:
        warn(w)
    progress(f"{len(scopes)} Azure scope(s) reachable", "info")
    catalog, catalog_warnings = resources.role_definitions(scopes)
    for w in catalog_warnings:
        warn(w)
    azure_allow = build_role_allow_list(fncGetPrivilegedRoles(cfg, "azure"), catalog, "Azure RBAC", log=warn)

    def entra_eligibility():
        if not enabled["entra_eligibility"]:
            return skipped_result("entra_eligibility_schedules", entra, "disabled in config")
        return collect_directory_role_eligibility(directory, entra_allow)

    def entra_active():
        if not enabled["entra_active_schedules"]:
            return skipped_result("entra_active_schedules", entra, "disabled in config")
        return collect_directory_role_active_schedules(directory, entra_allow)

    def azure_schedules():
        if not enabled["azure_schedules"]:
            return skipped_result("azure_pim_schedules", azure, "disabled in config")
        return collect_resource_role_schedules(resources, scopes, azure_allow)

    return [
        CollectorTask("entra_direct_assignments", entra,
                      lambda: collect_directory_role_assignments(directory, entra_allow)),
        CollectorTask("entra_eligibility_schedules", entra, entra_eligibility),
        CollectorTask("entra_active_schedules", entra, entra_active),
        CollectorTask("azure_direct_assignments", azure,
                      lambda: collect_resource_role_assignments(resources, scopes, azure_allow)),
        CollectorTask("azure_pim_schedules", azure, azure_schedules),
    ]


# ================================================================
# Function: collect_privileged_access
# Purpose : Wire queries, caches and collectors for one run
# Notes   : directory/resources are the query collaborators; the
#           Graph-backed DirectoryQueries also does principal lookups.
# ================================================================
def collect_privileged_access(
    directory,
    resources,
    cfg: dict,
    context: RunContext,
    progress: Callable[[str, str], None] = fncPrintMessage,
) -> AggregationResult:
    setup_warnings: List[str] = []
    tasks = _build_tasks(directory, resources, cfg, setup_warnings, progress)

    principals = PrincipalCache(directory.get_user, directory.get_group, log=progress)
    members = GroupMembershipExpander(directory.list_transitive_members, log=progress)

    result = PrivilegedAccessAggregator(tasks, principals, members, context, progress=progress).run()
    result.warnings[:0] = setup_warnings
    return result


def _summary(result: AggregationResult) -> Dict[str, Any]:
    by_plane = Counter(r.control_plane.value for r in result.rows)
    by_type = Counter(r.principal_type.value for r in result.rows)
    by_category = Counter(r.assignment_category.value for r in result.rows)
    summary: Dict[str, Any] = {
        "Rows": len(result.rows),
        "Rows before dedup": result.rows_before_dedup,
        "Warnings": len(result.warnings),
    }
    for label, counts in (("Plane", by_plane), ("Principal", by_type), ("Category", by_category)):
        for key, n in sorted(counts.items()):
            summary[f"{label}: {key}"] = n
    return summary


# ----------------------- Main -----------------------

def run(client, args):
    run_id = fncNewRunId("rollup")
    context = RunContext(generated_at_utc=fncUtcNow(), tenant_id=client.tenant_id)
    fncPrintMessage(f"Running Privileged Access Rollup (run={run_id})", "info")

    result = collect_privileged_access(
        DirectoryQueries(client.graph),
        ResourceAuthorizationQueries(client.arm),
        client.settings,
        context,
    )

    rows = [r.to_dict() for r in result.rows]
    sections = [s.to_dict() for s in result.sections]

    fncPrintMessage("Collector sections", "info")
    print(fncToTable(sections, headers=["section", "controlPlane", "status", "records", "rows", "duplicatesDropped"]))

    if rows:
        fncPrintMessage("Privileged access (first 25 rows)", "info")
        print(fncToTable(rows, headers=PREVIEW_COLUMNS, max_rows=25))
    else:
        fncPrintMessage("No privileged assignments matched the configured roles.", "warn")

    if result.warnings:
        fncPrintMessage(f"{len(result.warnings)} warning(s) recorded; see data['warnings'] / JSON export.", "warn")

    data = {
        "provider": "azure",
        "run_id": run_id,
        "timestamp": context.generated_at_utc,
        "tenant_id": context.tenant_id,
        "summary": _summary(result),
        "columns": list(REPORT_COLUMNS),
        "rows": rows,
        "sections": sections,
        "warnings": list(result.warnings),
    }

    fncPrintMessage(f"Privileged Access Rollup complete — {len(rows)} row(s)", "success")
    return data
