from __future__ import annotations

from typing import Any, Iterable, Optional, cast

from service_scheduler.core.errors import TemplateValidationError
from service_scheduler.core.model import (
    ServiceTemplate,
    TaskPriority,
    TaskVisibility,
    TemplateMilestoneSpec,
    TemplateTaskSpec,
)


ALLOWED_PRIORITIES: set[str] = {"low", "medium", "high", "urgent"}
ALLOWED_VISIBILITIES: set[str] = {"internal", "client"}

DEFAULT_START_OFFSET = "same day"


def validate_template(
    template: dict[str, Any],
) -> tuple[Optional[ServiceTemplate], list[TemplateValidationError]]:
    """Validate template record shape.

    Returns (template, errors). Template is None when errors exist.
    Offset expressions are only type-checked here: an unparseable offset
    is a lint finding and a TBD in the schedule, not a shape error.
    """

    file = cast(Optional[str], template.get("__file__"))
    errors: list[TemplateValidationError] = []

    name = template.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(
            TemplateValidationError(
                code="E_REQUIRED_FIELD",
                message="name is required and must be a non-empty string",
                file=file,
                path="name",
            )
        )

    description = template.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="description must be a string",
                file=file,
                path="description",
            )
        )

    color = template.get("color", "blue")
    if not isinstance(color, str) or not color.strip():
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="color must be a non-empty string",
                file=file,
                path="color",
            )
        )

    raw_milestones = template.get("milestones")
    if raw_milestones is None:
        raw_milestones = []
    if not isinstance(raw_milestones, list):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="milestones must be an array",
                file=file,
                path="milestones",
            )
        )
        return None, _sorted(errors)

    milestones: list[TemplateMilestoneSpec] = []
    for i, raw in enumerate(raw_milestones):
        spec = _validate_milestone(raw, f"milestones[{i}]", i, file, errors)
        if spec is not None:
            milestones.append(spec)

    if errors:
        return None, _sorted(errors)

    return (
        ServiceTemplate(
            name=cast(str, name).strip(),
            milestones=milestones,
            description=cast(Optional[str], description),
            color=cast(str, color),
        ),
        [],
    )


def _validate_milestone(
    raw: Any,
    node_path: str,
    index: int,
    file: Optional[str],
    errors: list[TemplateValidationError],
) -> Optional[TemplateMilestoneSpec]:
    if not isinstance(raw, dict):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="milestone must be an object",
                file=file,
                path=node_path,
            )
        )
        return None

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(
            TemplateValidationError(
                code="E_REQUIRED_FIELD",
                message="name is required and must be a non-empty string",
                file=file,
                path=f"{node_path}.name",
            )
        )
        return None

    n_errors = len(errors)
    position = _position(raw, node_path, index, file, errors)
    start_expr = _offset(raw, "start_offset", node_path, file, errors, DEFAULT_START_OFFSET)
    due_expr = _offset(raw, "due_offset", node_path, file, errors, "")

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="description must be a string",
                file=file,
                path=f"{node_path}.description",
            )
        )

    raw_tasks = raw.get("tasks")
    if raw_tasks is None:
        raw_tasks = []
    if not isinstance(raw_tasks, list):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="tasks must be an array",
                file=file,
                path=f"{node_path}.tasks",
            )
        )
        return None

    tasks: list[TemplateTaskSpec] = []
    for ti, raw_task in enumerate(raw_tasks):
        task = _validate_task(raw_task, f"{node_path}.tasks[{ti}]", ti, file, errors)
        if task is not None:
            tasks.append(task)

    if len(errors) != n_errors:
        return None

    return TemplateMilestoneSpec(
        name=name.strip(),
        position=position,
        start_offset_expr=start_expr,
        due_offset_expr=due_expr,
        tasks=tasks,
        description=cast(Optional[str], description),
    )


def _validate_task(
    raw: Any,
    node_path: str,
    index: int,
    file: Optional[str],
    errors: list[TemplateValidationError],
) -> Optional[TemplateTaskSpec]:
    if not isinstance(raw, dict):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="task must be an object",
                file=file,
                path=node_path,
            )
        )
        return None

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append(
            TemplateValidationError(
                code="E_REQUIRED_FIELD",
                message="title is required and must be a non-empty string",
                file=file,
                path=f"{node_path}.title",
            )
        )
        return None

    n_errors = len(errors)
    position = _position(raw, node_path, index, file, errors)
    due_expr = _offset(raw, "due_offset", node_path, file, errors, "")

    priority = raw.get("priority", "medium")
    if not isinstance(priority, str) or priority not in ALLOWED_PRIORITIES:
        errors.append(
            TemplateValidationError(
                code="E_INVALID_ENUM",
                message=f"priority must be one of {sorted(ALLOWED_PRIORITIES)}",
                file=file,
                path=f"{node_path}.priority",
            )
        )

    visibility = raw.get("visibility", "internal")
    if not isinstance(visibility, str) or visibility not in ALLOWED_VISIBILITIES:
        errors.append(
            TemplateValidationError(
                code="E_INVALID_ENUM",
                message=f"visibility must be one of {sorted(ALLOWED_VISIBILITIES)}",
                file=file,
                path=f"{node_path}.visibility",
            )
        )

    estimated_hours = raw.get("estimated_hours")
    if estimated_hours is not None and (
        isinstance(estimated_hours, bool) or not isinstance(estimated_hours, (int, float))
    ):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="estimated_hours must be a number",
                file=file,
                path=f"{node_path}.estimated_hours",
            )
        )

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="description must be a string",
                file=file,
                path=f"{node_path}.description",
            )
        )

    if len(errors) != n_errors:
        return None

    return TemplateTaskSpec(
        title=title.strip(),
        position=position,
        due_offset_expr=due_expr,
        priority=cast(TaskPriority, priority),
        description=cast(Optional[str], description),
        estimated_hours=cast(Optional[float], estimated_hours),
        visibility=cast(TaskVisibility, visibility),
    )


def _position(
    raw: dict[str, Any],
    node_path: str,
    default: int,
    file: Optional[str],
    errors: list[TemplateValidationError],
) -> int:
    position = raw.get("position")
    if position is None:
        return default
    if isinstance(position, bool) or not isinstance(position, int):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message="position must be an integer",
                file=file,
                path=f"{node_path}.position",
            )
        )
        return default
    return position


def _offset(
    raw: dict[str, Any],
    key: str,
    node_path: str,
    file: Optional[str],
    errors: list[TemplateValidationError],
    default: str,
) -> str:
    value = raw.get(key)
    if value is None:
        return default
    # YAML reads a bare `5` as an int; keep it as the text the user typed.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str):
        errors.append(
            TemplateValidationError(
                code="E_INVALID_TYPE",
                message=f"{key} must be a string",
                file=file,
                path=f"{node_path}.{key}",
            )
        )
        return default
    return value


def _sorted(errors: Iterable[TemplateValidationError]) -> list[TemplateValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
