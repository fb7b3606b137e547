from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence, Union

from service_scheduler.core.model import (
    ComputedNode,
    Duration,
    TemplateMilestoneSpec,
    TemplateTaskSpec,
)
from service_scheduler.core.parse.relative_date import parse_relative_date


logger = logging.getLogger(__name__)

AnchorLike = Union[date, datetime]


@dataclass(frozen=True)
class ResolvedMilestone:
    """A milestone with its offsets parsed once, at the edge."""

    spec: TemplateMilestoneSpec
    start_offset: Optional[Duration]
    due_offset: Optional[Duration]
    tasks: list[tuple[TemplateTaskSpec, Optional[Duration]]]


# (anchor, milestone index, this milestone, previous computed node) -> start day
StartPolicy = Callable[[date, int, ResolvedMilestone, Optional[ComputedNode]], date]


def normalize_anchor(anchor: AnchorLike) -> date:
    """Reduce an anchor to its calendar day at 00:00 UTC.

    Aware datetimes are converted to UTC first; naive ones are taken as UTC.
    """
    if isinstance(anchor, datetime):
        if anchor.tzinfo is not None:
            anchor = anchor.astimezone(timezone.utc)
        return anchor.date()
    return anchor


def add_days(day: date, days: int) -> Optional[date]:
    """day + days, or None when the result leaves the supported calendar."""
    try:
        return day + timedelta(days=days)
    except OverflowError:
        logger.debug("date overflow adding %d days to %s", days, day.isoformat())
        return None


def days_between(start: date, due: date) -> int:
    return (due - start).days


def anchored_start(
    anchor: date,
    index: int,
    milestone: ResolvedMilestone,
    previous: Optional[ComputedNode],
) -> date:
    """Every milestone is offset from the anchor by its own start offset."""
    if milestone.start_offset is None:
        return anchor
    shifted = add_days(anchor, milestone.start_offset.total_days)
    return shifted if shifted is not None else anchor


def chained_start(
    anchor: date,
    index: int,
    milestone: ResolvedMilestone,
    previous: Optional[ComputedNode],
) -> date:
    """Milestones form one timeline: each starts where its predecessor is due.

    The first milestone is offset from the anchor. A TBD predecessor due is
    treated as a zero offset, so the milestone starts with its predecessor.
    """
    if previous is None:
        return anchored_start(anchor, index, milestone, previous)
    if previous.computed_due is None:
        return previous.computed_start
    return previous.computed_due


def resolve_milestones(milestones: Sequence[TemplateMilestoneSpec]) -> list[ResolvedMilestone]:
    """Sort by position (stable) and parse every offset expression once."""
    out: list[ResolvedMilestone] = []
    for spec in sorted(milestones, key=lambda m: m.position):
        tasks = [
            (task, parse_relative_date(task.due_offset_expr))
            for task in sorted(spec.tasks, key=lambda t: t.position)
        ]
        out.append(
            ResolvedMilestone(
                spec=spec,
                start_offset=parse_relative_date(spec.start_offset_expr),
                due_offset=parse_relative_date(spec.due_offset_expr),
                tasks=tasks,
            )
        )
    return out


def compute_schedule(
    anchor: AnchorLike,
    milestones: Sequence[TemplateMilestoneSpec],
    *,
    start_policy: StartPolicy = chained_start,
) -> list[ComputedNode]:
    """Compute absolute start/due days for every milestone and task.

    Single forward pass over milestones in position order. Malformed
    expressions degrade only their own node (due=None, duration 0);
    nothing here raises for bad template content.
    """

    anchor_day = normalize_anchor(anchor)
    computed: list[ComputedNode] = []
    previous: Optional[ComputedNode] = None

    for index, milestone in enumerate(resolve_milestones(milestones)):
        start = start_policy(anchor_day, index, milestone, previous)
        due = _offset_due(start, milestone.due_offset)
        if due is None:
            logger.debug(
                "milestone %r due is TBD (expression %r)",
                milestone.spec.name,
                milestone.spec.due_offset_expr,
            )

        task_nodes = tuple(
            _compute_task(start, task, offset) for task, offset in milestone.tasks
        )

        node = ComputedNode(
            name=milestone.spec.name,
            kind="milestone",
            position=milestone.spec.position,
            computed_start=start,
            computed_due=due,
            duration_days=days_between(start, due) if due is not None else 0,
            tasks=task_nodes,
            spec=milestone.spec,
        )
        computed.append(node)
        previous = node

    return computed


def _compute_task(
    milestone_start: date, task: TemplateTaskSpec, offset: Optional[Duration]
) -> ComputedNode:
    # Tasks are siblings: each is offset from the milestone start, never from another task.
    due = _offset_due(milestone_start, offset)
    if due is None:
        logger.debug("task %r due is TBD (expression %r)", task.title, task.due_offset_expr)
    return ComputedNode(
        name=task.title,
        kind="task",
        position=task.position,
        computed_start=milestone_start,
        computed_due=due,
        duration_days=days_between(milestone_start, due) if due is not None else 0,
        spec=task,
    )


def _offset_due(start: date, offset: Optional[Duration]) -> Optional[date]:
    if offset is None:
        return None
    return add_days(start, offset.total_days)


START_POLICIES: Mapping[str, StartPolicy] = MappingProxyType(
    {
        "chained": chained_start,
        "anchored": anchored_start,
    }
)
