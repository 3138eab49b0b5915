# ================================================================
# File     : client.py
# Purpose  : Azure Resource Manager read-only client
# Notes    : Same MSAL client-credentials flow as GraphClient, pointed
#            at the management endpoint. ARM wants an api-version on
#            every call and pages with "nextLink".
# ================================================================

from typing import Any, Dict, List, Optional

from handlers.graph.client import GraphClient

ARM_ROOT = "https://management.azure.com"
AUTHZ_API_VERSION = "2022-04-01"
PIM_API_VERSION = "2020-10-01"
MGMT_API_VERSION = "2020-05-01"
SUBSCRIPTIONS_API_VERSION = "2022-12-01"


class ArmClient(GraphClient):
    API_ROOT = ARM_ROOT
    SCOPE = "https://management.azure.com/.default"
    LABEL = "Azure Resource Manager"
    NEXT_LINK = "nextLink"

    @staticmethod
    def _with_version(params: Optional[Dict[str, Any]], api_version: str) -> Dict[str, Any]:
        merged = dict(params or {})
        merged.setdefault("api-version", api_version)
        return merged

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
            api_version: str = AUTHZ_API_VERSION) -> Dict[str, Any]:
        return super().get(endpoint, params=self._with_version(params, api_version))

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                api_version: str = AUTHZ_API_VERSION) -> List[Dict[str, Any]]:
        return super().get_all(endpoint, params=self._with_version(params, api_version))
