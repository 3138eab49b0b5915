# ================================================================
# File     : aggregate.py
# Purpose  : Fold the collector tasks into one deduplicated row set
# Notes    : Strictly sequential. Tasks run in list order; every record
#            goes through PrincipalCache -> GroupMembershipExpander ->
#            normalize(). Rows from different sources are never dropped
#            until the explicit deduplicate() pass at the end.
# ================================================================

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from core.collectors import CollectorResult, SectionStatus
from core.models import ControlPlane, Group, ReportRow, RunContext
from core.normalize import normalize
from core.principals import GroupMembershipExpander, PrincipalCache
from core.utils import fncPrintMessage

ProgressFn = Callable[[str, str], None]


@dataclass(frozen=True)
class CollectorTask:
    name: str
    control_plane: ControlPlane
    collect: Callable[[], CollectorResult]


@dataclass
class SectionSummary:
    name: str
    control_plane: ControlPlane
    status: SectionStatus
    records: int
    rows: int
    duplicates_dropped: int = 0
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "section": self.name,
            "controlPlane": self.control_plane.value,
            "status": self.status.value,
            "records": self.records,
            "rows": self.rows,
            "duplicatesDropped": self.duplicates_dropped,
            "skipped": "; ".join(self.skipped),
        }


@dataclass
class AggregationResult:
    rows: List[ReportRow]
    warnings: List[str]
    sections: List[SectionSummary]
    rows_before_dedup: int = 0


# ================================================================
# Function: dedup_key
# Purpose : Identity of a report row for deduplication + ordering
# Notes   : Display names are not part of the key.
# ================================================================
def dedup_key(row: ReportRow) -> Tuple[str, ...]:
    return (
        row.control_plane.value,
        row.role_name or "",
        row.scope or "",
        row.assignment_category.value,
        row.assignment_state.value,
        row.effective_individual_id or "",
        row.source_group_id or "",
    )


# ================================================================
# Function: deduplicate
# Purpose : Stable-sort rows by key and keep the first row per key
# Notes   : Idempotent; the output is already in report order.
# ================================================================
def deduplicate(rows: List[ReportRow]) -> List[ReportRow]:
    out: List[ReportRow] = []
    last: Optional[Tuple[str, ...]] = None
    for row in sorted(rows, key=dedup_key):
        key = dedup_key(row)
        if key == last:
            continue
        out.append(row)
        last = key
    return out


# ================================================================
# Class   : PrivilegedAccessAggregator
# Purpose : Run collector tasks in order and build the final rows
# Notes   : Caches are passed in so they are scoped to this run.
#           Mandatory collectors raise straight through run().
# ================================================================
class PrivilegedAccessAggregator:
    def __init__(
        self,
        tasks: List[CollectorTask],
        principals: PrincipalCache,
        members: GroupMembershipExpander,
        context: RunContext,
        progress: Optional[ProgressFn] = None,
    ):
        self.tasks = list(tasks)
        self.principals = principals
        self.members = members
        self.context = context
        self.progress = progress or fncPrintMessage

    def _rows_for(self, result: CollectorResult) -> List[ReportRow]:
        rows: List[ReportRow] = []
        for record in result.records:
            if not record.principal_id:
                rows.extend(normalize(record, None, result.control_plane, record.category, self.context))
                continue

            principal = self.principals.resolve(record.principal_id)
            members = ()
            membership_error = None
            if isinstance(principal, Group):
                members = self.members.expand_members(principal.id)
                membership_error = self.members.failure_for(principal.id)

            rows.extend(normalize(
                record,
                principal,
                result.control_plane,
                record.category,
                self.context,
                members=members,
                membership_error=membership_error,
            ))
        return rows

    def run(self) -> AggregationResult:
        warnings: List[str] = []
        sections: List[SectionSummary] = []
        collected: List[ReportRow] = []

        for idx, task in enumerate(self.tasks, start=1):
            self.progress(f"[{idx}/{len(self.tasks)}] Collecting {task.name}...", "info")
            result = task.collect()

            if result.status is not SectionStatus.COMPLETE:
                for reason in result.skipped:
                    msg = f"Section '{task.name}' skipped: {reason}"
                    warnings.append(msg)
                    self.progress(msg, "warn")

            rows = self._rows_for(result)
            collected.extend(rows)
            sections.append(SectionSummary(
                name=task.name,
                control_plane=task.control_plane,
                status=result.status,
                records=len(result.records),
                rows=len(rows),
                duplicates_dropped=result.duplicates_dropped,
                skipped=list(result.skipped),
            ))
            self.progress(f"{task.name}: {len(result.records)} record(s) -> {len(rows)} row(s)", "debug")

        for gid, reason in self.members.failures.items():
            warnings.append(f"Membership of group {gid} could not be expanded: {reason}")

        final = deduplicate(collected)
        self.progress(
            f"Deduplicated {len(collected)} row(s) -> {len(final)} "
            f"({len(self.principals)} principal(s) resolved)",
            "info",
        )
        return AggregationResult(rows=final, warnings=warnings, sections=sections,
                                 rows_before_dedup=len(collected))
