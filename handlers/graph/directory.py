# ================================================================
# File     : directory.py
# Purpose  : Entra directory-role queries used by the collectors and
#            the principal resolver
# Notes    : Thin wrappers over GraphClient. All v1.0 endpoints.
#            Single-object lookups return None on 404.
# ================================================================

from typing import Any, Dict, List, Optional

from handlers.graph.client import GraphApiError

ROLE_SELECT = "id,principalId,roleDefinitionId,directoryScopeId"
USER_SELECT = "id,displayName,userPrincipalName"
GROUP_SELECT = "id,displayName,isAssignableToRole"
MEMBER_SELECT = "id,displayName,userPrincipalName"


class DirectoryQueries:
    def __init__(self, client):
        self.client = client

    # ---- role catalog + assignments ----

    def role_definitions(self) -> List[Dict[str, Any]]:
        return self.client.get_all("roleManagement/directory/roleDefinitions?$select=id,displayName,isBuiltIn")

    def role_assignments(self) -> List[Dict[str, Any]]:
        return self.client.get_all(f"roleManagement/directory/roleAssignments?$select={ROLE_SELECT}")

    def role_eligibility_schedules(self) -> List[Dict[str, Any]]:
        return self.client.get_all(
            f"roleManagement/directory/roleEligibilitySchedules?$select={ROLE_SELECT},memberType,status"
        )

    def role_assignment_schedule_instances(self) -> List[Dict[str, Any]]:
        return self.client.get_all(
            "roleManagement/directory/roleAssignmentScheduleInstances"
            f"?$select={ROLE_SELECT},assignmentType,memberType,startDateTime,endDateTime"
        )

    # ---- principals ----

    def _get_or_none(self, endpoint: str, select: str) -> Optional[Dict[str, Any]]:
        try:
            return self.client.get(endpoint, params={"$select": select})
        except GraphApiError as ex:
            if ex.not_found:
                return None
            raise

    def get_user(self, object_id: str) -> Optional[Dict[str, Any]]:
        return self._get_or_none(f"users/{object_id}", USER_SELECT)

    def get_group(self, object_id: str) -> Optional[Dict[str, Any]]:
        return self._get_or_none(f"groups/{object_id}", GROUP_SELECT)

    def list_transitive_members(self, group_id: str) -> List[Dict[str, Any]]:
        """Every nested member; each item carries @odata.type."""
        return self.client.get_all(f"groups/{group_id}/transitiveMembers?$select={MEMBER_SELECT}")

    # ---- connection check ----

    def organization(self) -> Dict[str, Any]:
        rows = self.client.get_all("organization?$select=id,displayName")
        return (rows or [{}])[0]
