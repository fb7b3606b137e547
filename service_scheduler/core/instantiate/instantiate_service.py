from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Optional

import yaml

from service_scheduler.core.errors import TemplateValidationError
from service_scheduler.core.model import ComputedNode, ServiceTemplate, TemplateTaskSpec
from service_scheduler.core.parse.relative_date import format_relative_days
from service_scheduler.core.schedule.compute_schedule import (
    AnchorLike,
    StartPolicy,
    chained_start,
    compute_schedule,
    normalize_anchor,
)
from service_scheduler.core.templates.template_library import DEFAULT_MILESTONE_NAMES


logger = logging.getLogger(__name__)


def instantiate_service(
    template: ServiceTemplate,
    start_date: AnchorLike,
    *,
    service_name: Optional[str] = None,
    start_policy: StartPolicy = chained_start,
) -> dict[str, Any]:
    """Return the service, milestone and task records a new service gets.

    Dates are ISO strings; TBD dates are None. Nothing is persisted here.
    A template without milestones gets the default milestone set, undated.
    """

    anchor = normalize_anchor(start_date)
    service = {
        "name": (service_name or template.name).strip(),
        "description": template.description,
        "color": template.color,
        "start_date": anchor.isoformat(),
        "status": "planning",
        "template": template.name,
    }

    if not template.milestones:
        logger.info("template %r has no milestones; using defaults", template.name)
        milestones = [
            {
                "name": name,
                "position": i,
                "start_date": None,
                "due_date": None,
                "status": "upcoming",
                "tasks": [],
            }
            for i, name in enumerate(DEFAULT_MILESTONE_NAMES)
        ]
        return {"service": service, "milestones": milestones}

    computed = compute_schedule(anchor, template.milestones, start_policy=start_policy)
    return {
        "service": service,
        "milestones": [_milestone_record(node) for node in computed],
    }


def derive_template(service: dict[str, Any]) -> dict[str, Any]:
    """Build a template record from an existing service ("save as template").

    Milestone due offsets are measured from the milestone's own start,
    task offsets from their milestone's start. Gaps are whole days rounded
    up (a due at noon counts as a full day); negative gaps clamp to 0.
    A milestone without a start date starts where the previous one was due.
    """

    service_start = _as_instant(service.get("start_date"), "start_date")
    if service_start is None:
        raise TemplateValidationError(
            code="E_REQUIRED_FIELD",
            message="service start_date is required to derive relative offsets",
            path="start_date",
        )

    raw_milestones = service.get("milestones") or []
    if not isinstance(raw_milestones, list):
        raise TemplateValidationError(
            code="E_INVALID_TYPE", message="milestones must be an array", path="milestones"
        )

    ordered = sorted(
        enumerate(raw_milestones),
        key=lambda item: _position_of(item[1], item[0]),
    )

    milestones: list[dict[str, Any]] = []
    previous_due: Optional[datetime] = None
    for i, raw in ordered:
        path = f"milestones[{i}]"
        if not isinstance(raw, dict):
            raise TemplateValidationError(
                code="E_INVALID_TYPE", message="milestone must be an object", path=path
            )
        start = _as_instant(raw.get("start_date"), f"{path}.start_date")
        due = _as_instant(raw.get("due_date"), f"{path}.due_date")
        if start is None:
            start = previous_due if previous_due is not None else service_start

        record: dict[str, Any] = {
            "name": raw.get("name"),
            "position": _position_of(raw, i),
            "start_offset": _offset_label(service_start, start),
        }
        if raw.get("description"):
            record["description"] = raw.get("description")
        if due is not None:
            record["due_offset"] = _offset_label(start, due)

        record["tasks"] = _derive_tasks(raw.get("tasks") or [], start, path)
        milestones.append(record)
        previous_due = due

    out: dict[str, Any] = {"name": service.get("name"), "milestones": milestones}
    if service.get("description"):
        out["description"] = service.get("description")
    if service.get("color"):
        out["color"] = service.get("color")
    return out


def dump_yaml(data: dict[str, Any], path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False, allow_unicode=True)


def _milestone_record(node: ComputedNode) -> dict[str, Any]:
    spec = node.spec
    return {
        "name": node.name,
        "description": getattr(spec, "description", None),
        "position": node.position,
        "start_date": node.computed_start.isoformat(),
        "due_date": _iso(node.computed_due),
        "status": "upcoming",
        "tasks": [_task_record(task) for task in node.tasks],
    }


def _task_record(node: ComputedNode) -> dict[str, Any]:
    spec: TemplateTaskSpec = node.spec
    return {
        "title": node.name,
        "description": spec.description,
        "priority": spec.priority,
        "estimated_hours": spec.estimated_hours,
        "visibility": spec.visibility,
        "position": node.position,
        "due_date": _iso(node.computed_due),
        "status": "todo",
    }


def _derive_tasks(raw_tasks: Any, milestone_start: datetime, path: str) -> list[dict[str, Any]]:
    if not isinstance(raw_tasks, list):
        raise TemplateValidationError(
            code="E_INVALID_TYPE", message="tasks must be an array", path=f"{path}.tasks"
        )

    tasks: list[dict[str, Any]] = []
    for ti, raw in enumerate(raw_tasks):
        task_path = f"{path}.tasks[{ti}]"
        if not isinstance(raw, dict):
            raise TemplateValidationError(
                code="E_INVALID_TYPE", message="task must be an object", path=task_path
            )
        record: dict[str, Any] = {"title": raw.get("title"), "position": _position_of(raw, ti)}
        for key in ("description", "priority", "estimated_hours", "visibility"):
            if raw.get(key) is not None:
                record[key] = raw.get(key)
        due = _as_instant(raw.get("due_date"), f"{task_path}.due_date")
        if due is not None:
            record["due_offset"] = _offset_label(milestone_start, due)
        tasks.append(record)
    return tasks


def _offset_label(start: datetime, due: datetime) -> str:
    # Partial days round up: due at noon is a full day after a midnight start.
    days = math.ceil((due - start).total_seconds() / 86400)
    return format_relative_days(max(0, days)).lower()


def _position_of(raw: Any, default: int) -> int:
    if isinstance(raw, dict):
        pos = raw.get("position")
        if isinstance(pos, int) and not isinstance(pos, bool):
            return pos
    return default


def _as_instant(value: Any, path: str) -> Optional[datetime]:
    """UTC datetime for a stored date; bare dates are midnight, naive times are UTC."""
    if value is None or value == "":
        return None
    parsed: Any = value
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            parsed = None
    # yaml.safe_load already turns unquoted YYYY-MM-DD into date objects.
    if isinstance(parsed, datetime):
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    if isinstance(parsed, date):
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    raise TemplateValidationError(
        code="E_INVALID_DATE", message=f"not an ISO date: {value!r}", path=path
    )


def _iso(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day is not None else None
