from __future__ import annotations

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml


logger = logging.getLogger(__name__)

TEMPLATE_FILE_ENV = "SCHEDULER_TEMPLATE_FILE"


DEFAULT_TEMPLATES: dict[str, dict[str, Any]] = {
    "website-launch": {
        "description": "Design, build and launch a marketing site",
        "color": "blue",
        "milestones": [
            {
                "name": "Discovery & Planning",
                "position": 0,
                "start_offset": "same day",
                "due_offset": "1 week",
                "tasks": [
                    {"title": "Kickoff call", "position": 0, "due_offset": "next day", "priority": "high"},
                    {"title": "Sitemap and content inventory", "position": 1, "due_offset": "5 days"},
                ],
            },
            {
                "name": "Design",
                "position": 1,
                "start_offset": "1 week",
                "due_offset": "2 weeks",
                "tasks": [
                    {"title": "Wireframes", "position": 0, "due_offset": "1 week"},
                    {"title": "Visual design review", "position": 1, "due_offset": "2 weeks", "visibility": "client"},
                ],
            },
            {
                "name": "Development",
                "position": 2,
                "start_offset": "3 weeks",
                "due_offset": "1 month",
                "tasks": [
                    {"title": "Build templates", "position": 0, "due_offset": "3 weeks"},
                    {"title": "QA pass", "position": 1, "due_offset": "1 month", "priority": "high"},
                ],
            },
            {
                "name": "Launch",
                "position": 3,
                "start_offset": "2 months",
                "due_offset": "3 days",
                "tasks": [
                    {"title": "DNS cutover", "position": 0, "due_offset": "same day", "priority": "urgent"},
                ],
            },
        ],
    },
    "client-onboarding": {
        "description": "First month with a new client",
        "color": "green",
        "milestones": [
            {
                "name": "Welcome",
                "position": 0,
                "start_offset": "same day",
                "due_offset": "3 days",
                "tasks": [
                    {"title": "Send welcome pack", "position": 0, "due_offset": "same day", "visibility": "client"},
                    {"title": "Collect account access", "position": 1, "due_offset": "3 days"},
                ],
            },
            {
                "name": "Audit",
                "position": 1,
                "start_offset": "3 days",
                "due_offset": "2 weeks",
                "tasks": [
                    {"title": "Baseline report", "position": 0, "due_offset": "2 weeks", "priority": "high"},
                ],
            },
        ],
    },
    "monthly-retainer": {
        "description": "Recurring monthly engagement, one cycle",
        "color": "purple",
        "milestones": [
            {
                "name": "Monthly cycle",
                "position": 0,
                "start_offset": "same day",
                "due_offset": "1 month",
                "tasks": [
                    {"title": "Planning call", "position": 0, "due_offset": "next day"},
                    {"title": "Monthly report", "position": 1, "due_offset": "1 month", "visibility": "client"},
                ],
            },
        ],
    },
}

# Created instead when a template has no milestones at all.
DEFAULT_MILESTONE_NAMES: tuple[str, ...] = (
    "Discovery & Planning",
    "Development",
    "Review & Testing",
    "Delivery",
)


class TemplateConfigError(ValueError):
    pass


def load_template_file(path: str | Path) -> dict[str, dict[str, Any]]:
    """Load templates from a YAML file.

    Format:
      <name>:
        description: ...
        milestones: [...]

    Returns a mapping of template name -> raw template record. Records are
    shape-checked later by validate_template.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise TemplateConfigError("template file must be a mapping of name -> template")

    out: dict[str, dict[str, Any]] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or not k.strip():
            raise TemplateConfigError("template names must be non-empty strings")
        if not isinstance(v, dict):
            raise TemplateConfigError(f"template '{k}' must be a mapping")
        if "milestones" in v and not isinstance(v["milestones"], list):
            raise TemplateConfigError(f"template '{k}' milestones must be a list")
        out[k.strip()] = v
    return out


def merged_templates(
    overrides: dict[str, dict[str, Any]] | None = None,
) -> dict[str, dict[str, Any]]:
    """Return DEFAULT_TEMPLATES merged with optional overrides.

    Overrides replace templates of the same name, and may add new ones.
    """
    merged = deepcopy(DEFAULT_TEMPLATES)
    if overrides:
        for k, v in overrides.items():
            if k in merged:
                logger.info("template file overrides built-in template %r", k)
            merged[k] = deepcopy(v)
    return merged


def load_and_merge(template_file: str | None) -> dict[str, dict[str, Any]]:
    if not template_file:
        return merged_templates()
    overrides = load_template_file(template_file)
    return merged_templates(overrides)


def template_record(name: str, templates: dict[str, dict[str, Any]]) -> dict[str, Any]:
    """Raw record for a named template, in the same shape load_template returns."""
    record = deepcopy(templates[name])
    record.setdefault("name", name)
    return record
