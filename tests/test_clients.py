"""Tests for the Graph/ARM REST clients and the entry script exit code."""

from __future__ import annotations

import json
from typing import Any

import pytest

import RoleRollup
import handlers.session
from handlers.arm.client import ArmClient
from handlers.graph import client as graph_client
from handlers.graph.client import GraphApiError, GraphClient

TOKEN = {"access_token": "tok", "expires_in": 3600}


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body) if body is not None else ""
        self.content = self.text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeMsalApp:
    token_result: dict[str, Any] = TOKEN

    def __init__(self, client_id: str, client_credential: str, authority: str) -> None:
        self.authority = authority

    def acquire_token_silent(self, scopes, account=None):
        return None

    def acquire_token_for_client(self, scopes):
        return dict(self.token_result)


class FakeHttp:
    """Replays queued responses for requests.get and records each call."""

    def __init__(self, *responses: FakeResponse) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, Any]] = []

    def __call__(self, url, headers=None, params=None, timeout=None):
        self.calls.append((url, params))
        return self.responses.pop(0)


@pytest.fixture
def msal_app(monkeypatch):
    FakeMsalApp.token_result = TOKEN
    monkeypatch.setattr(graph_client.msal, "ConfidentialClientApplication", FakeMsalApp)
    return FakeMsalApp


def _install(monkeypatch, *responses: FakeResponse) -> FakeHttp:
    http = FakeHttp(*responses)
    monkeypatch.setattr(graph_client.requests, "get", http)
    return http


def _graph() -> GraphClient:
    return GraphClient(tenant_id="tenant-1", client_id="app-1", client_secret="s3cret-value")


def test_not_found_raises_graph_error(monkeypatch, msal_app) -> None:
    """A 404 surfaces as GraphApiError flagged not_found."""
    _install(monkeypatch, FakeResponse(404, {"error": {"code": "Request_ResourceNotFound",
                                                       "message": "Resource 'U9' does not exist"}}))

    with pytest.raises(GraphApiError) as err:
        _graph().get("users/U9")

    assert err.value.status_code == 404
    assert err.value.not_found is True
    assert "does not exist" in str(err.value)


def test_server_error_is_not_retried(monkeypatch, msal_app) -> None:
    """Any status >= 400 raises straight away, after a single request."""
    http = _install(monkeypatch, FakeResponse(503))

    with pytest.raises(GraphApiError) as err:
        _graph().get_all("users")

    assert err.value.status_code == 503
    assert not err.value.not_found
    assert len(http.calls) == 1


def test_token_failure_is_401(monkeypatch, msal_app) -> None:
    """A failed client-credentials token request raises GraphApiError(401)."""
    msal_app.token_result = {"error": "invalid_client", "error_description": "AADSTS7000215: Invalid client secret"}

    with pytest.raises(GraphApiError) as err:
        _graph()

    assert err.value.status_code == 401
    assert "Invalid client secret" in str(err.value)


def test_get_all_follows_odata_next_link(monkeypatch, msal_app) -> None:
    """Pages linked by @odata.nextLink are concatenated in order."""
    next_url = "https://graph.microsoft.com/v1.0/users?$skiptoken=abc"
    http = _install(
        monkeypatch,
        FakeResponse(200, {"value": [{"id": "U1"}], "@odata.nextLink": next_url}),
        FakeResponse(200, {"value": [{"id": "U2"}]}),
    )

    items = _graph().get_all("users", params={"$select": "id"})

    assert [i["id"] for i in items] == ["U1", "U2"]
    assert http.calls == [
        ("https://graph.microsoft.com/v1.0/users", {"$select": "id"}),
        (next_url, None),
    ]


def test_single_object_response_is_one_item(monkeypatch, msal_app) -> None:
    """A non-collection body comes back as a one-item list."""
    _install(monkeypatch, FakeResponse(200, {"id": "org-1"}))

    assert _graph().get_all("organization/org-1") == [{"id": "org-1"}]


def test_arm_sends_api_version_and_follows_next_link(monkeypatch, msal_app) -> None:
    """ARM calls carry the requested api-version; nextLink is followed as-is."""
    next_url = "https://management.azure.com/subscriptions?api-version=2022-12-01&$skiptoken=x"
    http = _install(
        monkeypatch,
        FakeResponse(200, {"value": [{"id": "/subscriptions/S1"}], "nextLink": next_url}),
        FakeResponse(200, {"value": [{"id": "/subscriptions/S2"}]}),
    )
    arm = ArmClient(tenant_id="tenant-1", client_id="app-1", client_secret="s3cret-value")

    items = arm.get_all("subscriptions", api_version="2022-12-01")

    assert [i["id"] for i in items] == ["/subscriptions/S1", "/subscriptions/S2"]
    assert http.calls[0] == ("https://management.azure.com/subscriptions", {"api-version": "2022-12-01"})
    assert http.calls[1] == (next_url, None)


def test_arm_default_api_version(monkeypatch, msal_app) -> None:
    """Without an explicit version ARM uses the authorization api-version."""
    http = _install(monkeypatch, FakeResponse(200, {"value": []}))
    arm = ArmClient(tenant_id="tenant-1", client_id="app-1", client_secret="s3cret-value")

    arm.get_all("subscriptions/S1/providers/Microsoft.Authorization/roleAssignments", params={"$filter": "atScope()"})

    assert http.calls[0][1] == {"$filter": "atScope()", "api-version": "2022-04-01"}


# ----------------------------- entry script -----------------------------

@pytest.fixture
def cli(monkeypatch, tmp_path):
    monkeypatch.setattr(handlers.session, "fncOpenSession", lambda cfg: object())
    return ["--config", str(tmp_path / "config.json")]


def test_main_fails_when_module_errors(monkeypatch, cli) -> None:
    """A module that raised makes the run exit non-zero."""
    monkeypatch.setattr(RoleRollup, "fncRunModule", lambda *a, **kw: {"error": "Graph down"})

    assert RoleRollup.main(["--scan", "privileged_access", *cli]) == 1


def test_main_fails_when_module_missing(monkeypatch, cli) -> None:
    """An unknown module name is a failure too."""
    monkeypatch.setattr(RoleRollup, "fncRunModule", lambda *a, **kw: None)

    assert RoleRollup.main(["--scan", "no_such_module", *cli]) == 1


def test_main_succeeds_with_payload(monkeypatch, cli) -> None:
    """A module payload without an error exits 0."""
    monkeypatch.setattr(RoleRollup, "fncRunModule", lambda *a, **kw: {"rows": []})

    assert RoleRollup.main(["--scan", "privileged_access", *cli]) == 0


def test_main_fails_without_credentials(monkeypatch, tmp_path) -> None:
    """A session that cannot authenticate stops the run with exit code 1."""
    def refuse(cfg):
        raise GraphApiError(401, "token request failed")

    monkeypatch.setattr(handlers.session, "fncOpenSession", refuse)

    assert RoleRollup.main(["--scan", "privileged_access", "--config", str(tmp_path / "c.json")]) == 1
