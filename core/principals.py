# ================================================================
# File     : principals.py
# Purpose  : Run-scoped principal resolution + group expansion
# Notes    : Two memo tables owned by one run. Lookups are injected
#            callables so the engine never talks HTTP itself:
#              lookup_user(id)   -> dict | None
#              lookup_group(id)  -> dict | None
#              list_members(gid) -> list[dict] (transitive, typed)
# ================================================================

from typing import Any, Callable, Dict, List, Optional

from core.models import Group, Individual, Principal, Unresolved
from core.utils import fncPrintMessage

USER_ODATA_TYPE = "#microsoft.graph.user"

LogFn = Callable[[str, str], None]


def _individual_from(obj: Dict[str, Any], fallback_id: str) -> Individual:
    return Individual(
        id=obj.get("id") or fallback_id,
        login_name=obj.get("userPrincipalName"),
        display_name=obj.get("displayName"),
    )


# ================================================================
# Class   : PrincipalCache
# Purpose : Resolve a principal id to Individual / Group / Unresolved
# Notes   : User lookup first, then group. Misses and errors are
#           negative results; "neither" is cached like anything else.
# ================================================================
class PrincipalCache:
    def __init__(
        self,
        lookup_user: Callable[[str], Optional[Dict[str, Any]]],
        lookup_group: Callable[[str], Optional[Dict[str, Any]]],
        log: LogFn = fncPrintMessage,
    ):
        self._lookup_user = lookup_user
        self._lookup_group = lookup_group
        self._log = log
        self._cache: Dict[str, Principal] = {}

    def __contains__(self, principal_id: str) -> bool:
        return principal_id in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def _try(self, kind: str, fn, principal_id: str) -> Optional[Dict[str, Any]]:
        try:
            found = fn(principal_id)
        except Exception as ex:
            self._log(f"{kind} lookup for {principal_id} failed: {ex}", "debug")
            return None
        return found or None

    def resolve(self, principal_id: str) -> Principal:
        if not principal_id:
            raise ValueError("principal_id is required")

        cached = self._cache.get(principal_id)
        if cached is not None:
            return cached

        user = self._try("User", self._lookup_user, principal_id)
        if user:
            principal: Principal = _individual_from(user, principal_id)
        else:
            group = self._try("Group", self._lookup_group, principal_id)
            if group:
                principal = Group(
                    id=group.get("id") or principal_id,
                    display_name=group.get("displayName"),
                    is_privilege_eligible=bool(group.get("isAssignableToRole")),
                )
            else:
                principal = Unresolved(id=principal_id)

        self._cache[principal_id] = principal
        return principal


# ================================================================
# Class   : GroupMembershipExpander
# Purpose : Memoised transitive expansion of a group to its users
# Notes   : Non-user members are dropped. A failed query is cached as
#           an empty membership and its reason kept for row notes.
# ================================================================
class GroupMembershipExpander:
    def __init__(
        self,
        list_members: Callable[[str], List[Dict[str, Any]]],
        log: LogFn = fncPrintMessage,
    ):
        self._list_members = list_members
        self._log = log
        self._members: Dict[str, List[Individual]] = {}
        self._failures: Dict[str, str] = {}

    def __contains__(self, group_id: str) -> bool:
        return group_id in self._members

    def failure_for(self, group_id: str) -> Optional[str]:
        return self._failures.get(group_id)

    @property
    def failures(self) -> Dict[str, str]:
        return dict(self._failures)

    def expand_members(self, group_id: str) -> List[Individual]:
        if group_id in self._members:
            return list(self._members[group_id])

        try:
            raw = self._list_members(group_id) or []
        except Exception as ex:
            self._failures[group_id] = str(ex)
            self._log(f"Transitive membership lookup failed for group {group_id}: {ex}", "warn")
            raw = []

        seen = set()
        members: List[Individual] = []
        for m in raw:
            if not isinstance(m, dict) or m.get("@odata.type") != USER_ODATA_TYPE:
                continue
            mid = m.get("id")
            if not mid or mid in seen:
                continue
            seen.add(mid)
            members.append(_individual_from(m, mid))

        self._members[group_id] = members
        self._log(f"Group {group_id}: {len(members)} transitive user member(s)", "debug")
        return list(members)
