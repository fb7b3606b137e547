from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Iterable, Optional, Sequence

from service_scheduler.core.model import ComputedNode, NodeKind


UNKNOWN = "TBD"


@dataclass(frozen=True)
class PreviewRow:
    name: str
    kind: NodeKind
    computed_start: str
    computed_due: str
    duration_days: int
    milestone: Optional[str] = None  # owning milestone for task rows


def format_preview(computed: Sequence[ComputedNode]) -> list[PreviewRow]:
    """Flatten computed milestones (each followed by its tasks) into display rows.

    Pure projection: dates become ISO strings, absent ones the UNKNOWN marker.
    """
    rows: list[PreviewRow] = []
    for milestone in computed:
        rows.append(_row(milestone, parent=None))
        for task in milestone.tasks:
            rows.append(_row(task, parent=milestone.name))
    return rows


def preview_to_dicts(rows: Iterable[PreviewRow]) -> list[dict[str, Any]]:
    return [asdict(r) for r in rows]


def summarize_preview(rows: Sequence[PreviewRow]) -> str:
    milestones = [r for r in rows if r.kind == "milestone"]
    tasks = [r for r in rows if r.kind == "task"]
    tbd = sum(1 for r in rows if r.computed_due == UNKNOWN)

    lines = [f"OK: {len(milestones)} milestones, {len(tasks)} tasks ({tbd} TBD)"]
    for r in rows:
        indent = "  " if r.kind == "milestone" else "    - "
        if r.kind == "milestone":
            lines.append(
                f"{indent}{r.name}: {r.computed_start} -> {r.computed_due} ({r.duration_days}d)"
            )
        else:
            lines.append(f"{indent}{r.name}: due {r.computed_due}")
    return "\n".join(lines)


def _row(node: ComputedNode, *, parent: Optional[str]) -> PreviewRow:
    return PreviewRow(
        name=node.name,
        kind=node.kind,
        computed_start=_iso(node.computed_start),
        computed_due=_iso(node.computed_due),
        duration_days=node.duration_days,
        milestone=parent,
    )


def _iso(day: Optional[date]) -> str:
    return day.isoformat() if day is not None else UNKNOWN
