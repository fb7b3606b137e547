from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Optional


DurationUnit = Literal["day", "week", "month", "year"]
SpecialDay = Literal["same day", "next day"]
NodeKind = Literal["milestone", "task"]
TaskPriority = Literal["low", "medium", "high", "urgent"]
TaskVisibility = Literal["internal", "client"]


@dataclass(frozen=True)
class Duration:
    """A resolved relative-time amount, in whole days.

    amount/unit (or special) keep enough provenance to re-render the
    expression the user typed.
    """

    total_days: int
    amount: int
    unit: DurationUnit = "day"
    special: Optional[SpecialDay] = None

    def __post_init__(self) -> None:
        if isinstance(self.total_days, bool) or not isinstance(self.total_days, int):
            raise ValueError(f"total_days must be an integer, got {self.total_days!r}")
        if self.total_days < 0:
            raise ValueError(f"total_days must be >= 0, got {self.total_days}")

    def canonical(self) -> str:
        if self.special is not None:
            return self.special
        suffix = "" if self.amount == 1 else "s"
        return f"{self.amount} {self.unit}{suffix}"


@dataclass(frozen=True)
class TemplateTaskSpec:
    title: str
    position: int
    due_offset_expr: str
    priority: TaskPriority = "medium"
    description: Optional[str] = None
    estimated_hours: Optional[float] = None
    visibility: TaskVisibility = "internal"


@dataclass(frozen=True)
class TemplateMilestoneSpec:
    name: str
    position: int
    start_offset_expr: str
    due_offset_expr: str
    tasks: list[TemplateTaskSpec] = field(default_factory=list)
    description: Optional[str] = None


@dataclass(frozen=True)
class ServiceTemplate:
    name: str
    milestones: list[TemplateMilestoneSpec]
    description: Optional[str] = None
    color: str = "blue"


@dataclass(frozen=True)
class ComputedNode:
    name: str
    kind: NodeKind
    position: int
    computed_start: date
    computed_due: Optional[date]  # None == TBD
    duration_days: int
    tasks: tuple["ComputedNode", ...] = ()
    spec: Any = field(default=None, compare=False, repr=False)
