# ================================================================
# File     : session.py
# Purpose  : Bundle the Graph + ARM clients handed to every module
# Notes    : Credentials are resolved once (GraphClient may prompt);
#            ArmClient reuses them so the user is never asked twice.
# ================================================================

from dataclasses import dataclass, field

from handlers.arm.client import ArmClient
from handlers.graph.client import GraphClient


@dataclass
class TenantSession:
    tenant_id: str
    graph: GraphClient
    arm: ArmClient
    settings: dict = field(default_factory=dict)


def fncOpenSession(cfg: dict) -> TenantSession:
    graph = GraphClient(
        tenant_id=cfg.get("tenant_id") or None,
        client_id=cfg.get("client_id") or None,
        client_secret=cfg.get("client_secret") or None,
        authority=cfg.get("authority") or None,
    )
    arm = ArmClient(
        tenant_id=graph.tenant_id,
        client_id=graph.client_id,
        client_secret=graph.client_secret,
        authority=cfg.get("authority") or None,
    )
    return TenantSession(tenant_id=graph.tenant_id, graph=graph, arm=arm, settings=cfg)
