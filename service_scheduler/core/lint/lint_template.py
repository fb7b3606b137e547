from __future__ import annotations

from collections import Counter
from typing import Optional

from service_scheduler.core.errors import TemplateValidationError
from service_scheduler.core.model import ServiceTemplate, TemplateMilestoneSpec
from service_scheduler.core.parse.relative_date import parse_relative_date


# Template lint rules:
# - L_INVALID_OFFSET: offset expression does not parse (field renders as TBD)
# - L_DUPLICATE_POSITION: sibling milestones/tasks share a position
# - L_TASK_DUE_AFTER_MILESTONE: task due offset lands after its milestone's due
# - L_NO_MILESTONES: template has nothing to schedule


def lint_template(
    template: ServiceTemplate, *, file: Optional[str] = None
) -> list[TemplateValidationError]:
    """Lint a validated template.

    Lint findings never block a preview; they mark fields the author
    should fix before the schedule is relied on.
    """

    errors: list[TemplateValidationError] = []

    if not template.milestones:
        errors.append(
            TemplateValidationError(
                code="L_NO_MILESTONES",
                message="template has no milestones",
                file=file,
                path="milestones",
            )
        )
        return errors

    errors.extend(
        _duplicate_positions(
            [m.position for m in template.milestones], "milestones", file
        )
    )

    for i, milestone in enumerate(template.milestones):
        node_path = f"milestones[{i}]"
        errors.extend(_milestone_offsets(milestone, node_path, file))
        errors.extend(
            _duplicate_positions(
                [t.position for t in milestone.tasks], f"{node_path}.tasks", file
            )
        )

    return _sorted(errors)


def _milestone_offsets(
    milestone: TemplateMilestoneSpec, node_path: str, file: Optional[str]
) -> list[TemplateValidationError]:
    errors: list[TemplateValidationError] = []

    for key, expr in (
        ("start_offset", milestone.start_offset_expr),
        ("due_offset", milestone.due_offset_expr),
    ):
        if parse_relative_date(expr) is None:
            errors.append(_invalid_offset(expr, f"{node_path}.{key}", file))

    milestone_due = parse_relative_date(milestone.due_offset_expr)
    for ti, task in enumerate(milestone.tasks):
        task_path = f"{node_path}.tasks[{ti}].due_offset"
        task_due = parse_relative_date(task.due_offset_expr)
        if task_due is None:
            errors.append(_invalid_offset(task.due_offset_expr, task_path, file))
            continue
        if milestone_due is not None and task_due.total_days > milestone_due.total_days:
            errors.append(
                TemplateValidationError(
                    code="L_TASK_DUE_AFTER_MILESTONE",
                    message=(
                        f"task due offset {task_due.total_days}d is after milestone "
                        f"due offset {milestone_due.total_days}d"
                    ),
                    file=file,
                    path=task_path,
                )
            )

    return errors


def _invalid_offset(expr: str, path: str, file: Optional[str]) -> TemplateValidationError:
    shown = expr if expr.strip() else "<empty>"
    return TemplateValidationError(
        code="L_INVALID_OFFSET",
        message=f"invalid relative date: {shown} (e.g. 'same day', '3 days', '2 weeks')",
        file=file,
        path=path,
    )


def _duplicate_positions(
    positions: list[int], path: str, file: Optional[str]
) -> list[TemplateValidationError]:
    counts = Counter(positions)
    errors: list[TemplateValidationError] = []
    seen: set[int] = set()
    for i, pos in enumerate(positions):
        if counts[pos] < 2:
            continue
        if pos not in seen:
            seen.add(pos)
            continue
        errors.append(
            TemplateValidationError(
                code="L_DUPLICATE_POSITION",
                message=f"duplicate position: {pos} (count={counts[pos]}); declaration order breaks the tie",
                file=file,
                path=f"{path}[{i}].position",
            )
        )
    return errors


def _sorted(errors: list[TemplateValidationError]) -> list[TemplateValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
