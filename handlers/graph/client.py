# ================================================================
# File     : client.py
# Purpose  : Read-only REST client for Microsoft Graph (and, through
#            ArmClient, Azure Resource Manager)
# Notes    : App-only MSAL client-credentials flow. GET + paging only.
#            Token is renewed when within 5 minutes of expiry.
#            No retries and no throttling sleeps: a non-2xx response
#            is raised at once as GraphApiError.
# ================================================================

import time
import getpass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import msal
import requests

from core.utils import fncLoadEnv, fncMask, fncPrintMessage

GRAPH_ROOT = "https://graph.microsoft.com/v1.0"
DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
REQUEST_TIMEOUT = 60
REFRESH_MARGIN_SECONDS = 300


class GraphApiError(Exception):
    """Non-success response from Graph/ARM, or a failed token request (401)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"[{status_code}] {message}")
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


# ================================================================
# Function: fncResolveCredentials
# Purpose : Fill missing app credentials from env, then from a prompt
# Notes   : Env names ROLEROLLUP_TENANT_ID / _CLIENT_ID / _CLIENT_SECRET
# ================================================================
def fncResolveCredentials(
    tenant_id: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> Tuple[str, str, str]:
    tenant_id = tenant_id or fncLoadEnv("ROLEROLLUP_TENANT_ID")
    client_id = client_id or fncLoadEnv("ROLEROLLUP_CLIENT_ID")
    client_secret = client_secret or fncLoadEnv("ROLEROLLUP_CLIENT_SECRET")

    if not tenant_id:
        tenant_id = input("Tenant ID: ").strip()
    if not client_id:
        client_id = input("Application (client) ID: ").strip()
    if not client_secret:
        fncPrintMessage("Client secret not set in config or environment; it is only held in memory.", "warn")
        client_secret = getpass.getpass("Client secret (hidden): ").strip()

    fncPrintMessage(f"Using app {client_id} in tenant {tenant_id} (secret {fncMask(client_secret)})", "debug")
    return tenant_id, client_id, client_secret


class GraphClient:
    API_ROOT = GRAPH_ROOT
    SCOPE = "https://graph.microsoft.com/.default"
    LABEL = "Microsoft Graph"
    NEXT_LINK = "@odata.nextLink"

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        authority: Optional[str] = None,
    ):
        self.tenant_id, self.client_id, self.client_secret = fncResolveCredentials(
            tenant_id, client_id, client_secret
        )
        self.authority = f"{(authority or DEFAULT_AUTHORITY).rstrip('/')}/{self.tenant_id}"
        self.scopes = [self.SCOPE]

        fncPrintMessage(f"Connecting to {self.LABEL}...", "info")
        self.app = msal.ConfidentialClientApplication(
            client_id=self.client_id,
            client_credential=self.client_secret,
            authority=self.authority,
        )
        self._access_token = ""
        self._expires_at = 0
        self._refresh_token()
        fncPrintMessage(f"{self.LABEL} token acquired.", "success")

    # ---------- token ----------

    def _refresh_token(self) -> None:
        fncPrintMessage(f"Requesting {self.LABEL} token", "debug")
        result = self.app.acquire_token_silent(self.scopes, account=None) \
            or self.app.acquire_token_for_client(scopes=self.scopes)
        if "access_token" not in result:
            reason = result.get("error_description") or result.get("error") or "no reason given"
            raise GraphApiError(401, f"{self.LABEL} token request failed: {reason}")

        self._access_token = result["access_token"]
        try:
            expires_on = int(result.get("expires_on") or 0)
        except (TypeError, ValueError):
            expires_on = 0
        self._expires_at = expires_on or int(time.time()) + int(result.get("expires_in", 3600))

    def _headers(self) -> Dict[str, str]:
        if time.time() >= self._expires_at - REFRESH_MARGIN_SECONDS:
            fncPrintMessage(f"{self.LABEL} token close to expiry, renewing", "debug")
            self._refresh_token()
        return {"Authorization": f"Bearer {self._access_token}", "Accept": "application/json"}

    # ---------- transport ----------

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:300]
        err = body.get("error") if isinstance(body, dict) else None
        if isinstance(err, dict) and err.get("message"):
            return f"{err.get('code', '')}: {err['message']}".lstrip(": ")
        return response.text[:300]

    def _fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = requests.get(url, headers=self._headers(), params=params, timeout=REQUEST_TIMEOUT)
        if not response.ok:
            message = self._error_message(response)
            fncPrintMessage(f"{self.LABEL} {response.status_code} on {url}: {message}", "debug")
            raise GraphApiError(response.status_code, message)
        if not response.content:
            return {}
        return response.json()

    def _url(self, endpoint: str) -> str:
        return f"{self.API_ROOT}/{endpoint.strip().lstrip('/')}"

    def _pages(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        page = self._fetch(self._url(endpoint), params)
        yield page
        # nextLink already carries the query string
        next_link = page.get(self.NEXT_LINK)
        while next_link:
            fncPrintMessage(f"Next page: {next_link}", "debug")
            page = self._fetch(next_link)
            yield page
            next_link = page.get(self.NEXT_LINK)

    # ---------- public ----------

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Single object or single page."""
        fncPrintMessage(f"GET {endpoint}", "debug")
        return self._fetch(self._url(endpoint), params)

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Every item of a collection endpoint, following nextLink.
        A non-collection response comes back as a one-item list.
        """
        fncPrintMessage(f"GET (paged) {endpoint}", "debug")
        items: List[Dict[str, Any]] = []
        for page in self._pages(endpoint, params):
            if "value" not in page:
                return [page] if page else items
            items.extend(page.get("value") or [])
        return items
