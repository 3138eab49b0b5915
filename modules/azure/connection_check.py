# ================================================================
# File     : modules/azure/connection_check.py
# Purpose  : Confirm the app registration can read both control planes
# Output   : data["checks"] -> one row per probe (ok / failed + detail)
# Notes    : Read-only. Nothing here is fatal; a failed probe is a row.
# ================================================================

from core.utils import fncMask, fncNewRunId, fncPrintMessage, fncToTable, fncUtcNow
from handlers.arm.authorization import ResourceAuthorizationQueries
from handlers.graph.directory import DirectoryQueries


def _probe(name: str, fn):
    try:
        detail = fn()
        return {"check": name, "status": "ok", "detail": detail}
    except Exception as ex:
        fncPrintMessage(f"{name} failed: {ex}", "warn")
        return {"check": name, "status": "failed", "detail": str(ex)}


def run(client, args):
    run_id = fncNewRunId("conncheck")
    fncPrintMessage(f"Running Connection Check (run={run_id})", "info")

    directory = DirectoryQueries(client.graph)
    resources = ResourceAuthorizationQueries(client.arm)

    def _org():
        org = directory.organization()
        return f"{org.get('displayName') or '(unnamed tenant)'} ({org.get('id') or client.tenant_id})"

    def _role_catalog():
        return f"{len(directory.role_definitions())} directory role definition(s)"

    def _subs():
        return f"{resources.subscription_count()} active subscription(s) visible"

    checks = [
        _probe("Graph: organization", _org),
        _probe("Graph: directory role catalog", _role_catalog),
        _probe("ARM: subscriptions", _subs),
    ]

    print(fncToTable(checks, headers=["check", "status", "detail"]))

    ok = all(c["status"] == "ok" for c in checks)
    fncPrintMessage(
        f"Connection check {'passed' if ok else 'found problems'} "
        f"(client id {fncMask(getattr(client.graph, 'client_id', ''))})",
        "success" if ok else "warn",
    )
    return {
        "provider": "azure",
        "run_id": run_id,
        "timestamp": fncUtcNow(),
        "summary": {"Checks": len(checks), "Passed": sum(1 for c in checks if c["status"] == "ok")},
        "checks": checks,
    }
