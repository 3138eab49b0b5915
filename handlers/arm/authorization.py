# ================================================================
# File     : authorization.py
# Purpose  : Azure RBAC queries (scopes, role catalog, assignments,
#            PIM schedule instances) over ArmClient
# Notes    : ARM role assignments carry only a roleDefinitionId, so
#            records are enriched with the role name from the catalog
#            loaded by role_definitions(). Everything is flattened to
#            the camelCase shape the collectors expect.
# ================================================================

from typing import Any, Dict, List, Tuple

from core.utils import fncPrintMessage
from handlers.arm.client import (
    AUTHZ_API_VERSION,
    MGMT_API_VERSION,
    PIM_API_VERSION,
    SUBSCRIPTIONS_API_VERSION,
)

AUTHZ = "providers/Microsoft.Authorization"
MG_PREFIX = "/providers/Microsoft.Management/managementGroups/"
INACTIVE_SUBSCRIPTION_STATES = {"disabled", "deleted"}


def _guid(resource_id: str) -> str:
    return (resource_id or "").rstrip("/").rsplit("/", 1)[-1].lower()


def _is_management_group(scope: str) -> bool:
    return (scope or "").lower().startswith(MG_PREFIX.lower())


class ResourceAuthorizationQueries:
    def __init__(self, client):
        self.client = client
        self._role_names: Dict[str, str] = {}

    # ---- scopes ----

    def management_group_scopes(self) -> List[str]:
        rows = self.client.get_all("providers/Microsoft.Management/managementGroups", api_version=MGMT_API_VERSION)
        return [r["id"] for r in rows or [] if r.get("id")]

    def subscription_scopes(self) -> List[str]:
        rows = self.client.get_all("subscriptions", api_version=SUBSCRIPTIONS_API_VERSION)
        out = []
        for r in rows or []:
            if (r.get("state") or "").lower() in INACTIVE_SUBSCRIPTION_STATES:
                fncPrintMessage(f"Skipping subscription {r.get('subscriptionId')} (state={r.get('state')})", "debug")
                continue
            if r.get("id"):
                out.append(r["id"])
        return out

    def list_scopes(self) -> Tuple[List[str], List[str]]:
        """
        Management groups first, then subscriptions.
        Returns (scopes, warnings). Management groups are often not
        readable by an app registration, so that listing is best-effort;
        a failure to list subscriptions propagates.
        """
        warnings: List[str] = []
        try:
            mgs = self.management_group_scopes()
        except Exception as ex:
            mgs = []
            warnings.append(f"Management groups not reachable, scanning subscriptions only: {ex}")
        return mgs + self.subscription_scopes(), warnings

    # ---- role catalog ----

    def _role_definitions_at(self, scope: str, role_type: str) -> List[Dict[str, Any]]:
        rows = self.client.get_all(f"{scope.rstrip('/')}/{AUTHZ}/roleDefinitions",
                                   params={"$filter": f"type eq '{role_type}'"})
        out = []
        for r in rows or []:
            props = r.get("properties") or {}
            out.append({"id": r.get("id"), "displayName": props.get("roleName"), "roleType": props.get("type")})
        return out

    def role_definitions(self, scopes: List[str]) -> Tuple[List[Dict[str, Any]], List[str]]:
        """Tenant built-ins plus custom roles at each subscription. Returns (catalog, warnings)."""
        warnings: List[str] = []
        catalog = self._role_definitions_at("", "BuiltInRole")
        for scope in scopes:
            if _is_management_group(scope):
                continue
            try:
                catalog.extend(self._role_definitions_at(scope, "CustomRole"))
            except Exception as ex:
                warnings.append(f"Custom role definitions not readable at {scope}: {ex}")
        for rd in catalog:
            if rd.get("id") and rd.get("displayName"):
                self._role_names.setdefault(_guid(rd["id"]), rd["displayName"])
        return catalog, warnings

    def role_name_for(self, role_definition_id: str) -> str:
        return self._role_names.get(_guid(role_definition_id), "")

    # ---- assignments + schedules ----

    def _list_at(self, scope: str, resource: str, api_version: str) -> List[Dict[str, Any]]:
        params = {"$filter": "atScope()"} if _is_management_group(scope) else None
        return self.client.get_all(f"{scope.rstrip('/')}/{AUTHZ}/{resource}", params=params, api_version=api_version)

    def _flatten(self, row: Dict[str, Any]) -> Dict[str, Any]:
        props = row.get("properties") or {}
        expanded = props.get("expandedProperties") or {}
        rdid = props.get("roleDefinitionId") or ""
        role_name = (expanded.get("roleDefinition") or {}).get("displayName") or self.role_name_for(rdid)
        return {
            "id": row.get("id"),
            "principalId": props.get("principalId"),
            "principalType": props.get("principalType"),
            "roleDefinitionId": rdid,
            "roleDefinitionName": role_name,
            "scope": props.get("scope"),
            "assignmentType": props.get("assignmentType"),
            "memberType": props.get("memberType"),
        }

    def role_assignments(self, scope: str) -> List[Dict[str, Any]]:
        return [self._flatten(r) for r in self._list_at(scope, "roleAssignments", AUTHZ_API_VERSION)]

    def role_eligibility_schedule_instances(self, scope: str) -> List[Dict[str, Any]]:
        return [self._flatten(r) for r in self._list_at(scope, "roleEligibilityScheduleInstances", PIM_API_VERSION)]

    def role_assignment_schedule_instances(self, scope: str) -> List[Dict[str, Any]]:
        return [self._flatten(r) for r in self._list_at(scope, "roleAssignmentScheduleInstances", PIM_API_VERSION)]

    # ---- connection check ----

    def subscription_count(self) -> int:
        return len(self.subscription_scopes())
