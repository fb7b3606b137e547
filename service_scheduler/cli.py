from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

import typer

from service_scheduler.core.errors import ScheduleError, TemplateLoadError, TemplateValidationError
from service_scheduler.core.instantiate.instantiate_service import (
    derive_template,
    dump_yaml,
    instantiate_service,
)
from service_scheduler.core.io.load_template import load_document, load_template
from service_scheduler.core.lint.lint_template import lint_template
from service_scheduler.core.model import ServiceTemplate
from service_scheduler.core.parse.relative_date import parse_relative_date
from service_scheduler.core.parse.suggestions import suggestions as date_suggestions
from service_scheduler.core.preview.format_preview import (
    format_preview,
    preview_to_dicts,
    summarize_preview,
)
from service_scheduler.core.schedule.compute_schedule import (
    START_POLICIES,
    StartPolicy,
    compute_schedule,
)
from service_scheduler.core.templates.template_library import (
    TEMPLATE_FILE_ENV,
    TemplateConfigError,
    load_and_merge,
    template_record,
)
from service_scheduler.core.validate.validate_template import validate_template

LOG_LEVEL_ENV = "SCHEDULER_LOG_LEVEL"

app = typer.Typer(add_completion=False, no_args_is_help=True)

logger = logging.getLogger(__name__)


@app.callback()
def _callback(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar=LOG_LEVEL_ENV,
        help="Logging level: DEBUG|INFO|WARNING|ERROR",
    ),
) -> None:
    """Service schedule CLI."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        _print_errors(
            [
                TemplateValidationError(
                    code="E_UNKNOWN_LOG_LEVEL",
                    message=f"unknown log level: {log_level}",
                    path="log_level",
                )
            ]
        )
        raise typer.Exit(code=2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


@app.command("parse")
def parse(
    expr: str = typer.Argument(..., help='Relative date expression, e.g. "2 weeks"'),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Parse a relative date expression into whole days."""
    _check_format(format, "E_PARSE_UNKNOWN_FORMAT")

    duration = parse_relative_date(expr)
    if format == "json":
        payload: dict[str, Any] = {
            "tool": "scheduler",
            "command": "parse",
            "expression": expr,
            "ok": duration is not None,
            "total_days": duration.total_days if duration is not None else None,
            "canonical": duration.canonical() if duration is not None else None,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=0 if duration is not None else 2)

    if duration is None:
        _print_errors(
            [
                TemplateValidationError(
                    code="L_INVALID_OFFSET",
                    message=f"invalid relative date: {expr!r} (e.g. 'same day', '3 days', '2 weeks')",
                    path="expr",
                )
            ]
        )
        raise typer.Exit(code=2)

    typer.echo(f"{duration.canonical()}: {duration.total_days} days")


@app.command("suggestions")
def suggestions(
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List common relative date choices."""
    _check_format(format, "E_SUGGESTIONS_UNKNOWN_FORMAT")

    items = date_suggestions()
    if format == "json":
        payload = [
            {"label": s.label, "expression": s.expression, "total_days": s.total_days}
            for s in items
        ]
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    for s in items:
        typer.echo(f"- {s.label}: {s.expression} ({s.total_days}d)")


@app.command("templates")
def templates(
    template_file: Optional[str] = typer.Option(
        None,
        "--template-file",
        envvar=TEMPLATE_FILE_ENV,
        help="Optional YAML file to add/override templates",
    ),
) -> None:
    """List available service templates."""
    templates_map = _load_templates(template_file)

    typer.echo("Templates:")
    for name in sorted(templates_map.keys()):
        record = templates_map[name]
        milestones = record.get("milestones") or []
        names = [m.get("name", "?") for m in milestones if isinstance(m, dict)]
        typer.echo(f"- {name}: {', '.join(names) if names else '(no milestones)'}")


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a template file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate the shape of a service template file."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    try:
        raw = load_template(path)
    except TemplateLoadError as e:
        if format == "json":
            _emit_json("validate", False, [e], exit_code=1)
        _print_errors([e])
        raise typer.Exit(code=1)

    template, errors = validate_template(raw)
    if errors or template is None:
        if format == "json":
            _emit_json("validate", False, list(errors), exit_code=2)
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    if format == "json":
        _emit_json("validate", True, [], exit_code=0, summary=_template_summary(template))

    task_count = sum(len(m.tasks) for m in template.milestones)
    typer.echo(
        f"OK: {template.name} ({len(template.milestones)} milestones, {task_count} tasks)"
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a template file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a service template (offset formats, positions, task dues)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")

    try:
        raw = load_template(path)
    except TemplateLoadError as e:
        if format == "json":
            _emit_json("lint", False, [e], exit_code=1)
        _print_errors([e])
        raise typer.Exit(code=1)

    template, validation_errors = validate_template(raw)
    errors: list[ScheduleError] = list(validation_errors)
    if template is not None:
        errors.extend(lint_template(template, file=raw.get("__file__")))

    if format == "json":
        _emit_json("lint", not errors, errors, exit_code=2 if errors else 0)

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("preview")
def preview(
    path: Optional[str] = typer.Argument(None, help="Path to a template file (.yaml/.yml/.json)"),
    template: Optional[str] = typer.Option(None, "--template", help="Library template name"),
    template_file: Optional[str] = typer.Option(
        None,
        "--template-file",
        envvar=TEMPLATE_FILE_ENV,
        help="Optional YAML file to add/override templates",
    ),
    start: str = typer.Option(..., "--start", help="Service start date (YYYY-MM-DD)"),
    start_policy: str = typer.Option(
        "chained",
        "--start-policy",
        help="Milestone start rule: chained (after previous due) or anchored (from start)",
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Preview the concrete schedule a template produces for a start date."""
    _check_format(format, "E_PREVIEW_UNKNOWN_FORMAT")

    anchor = _parse_start(start)
    policy = _start_policy(start_policy)
    tmpl = _resolve_template(path, template, template_file)

    rows = format_preview(compute_schedule(anchor, tmpl.milestones, start_policy=policy))
    if format == "json":
        payload = {
            "tool": "scheduler",
            "command": "preview",
            "template": tmpl.name,
            "start": anchor.isoformat(),
            "start_policy": start_policy,
            "rows": preview_to_dicts(rows),
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    typer.echo(f"{tmpl.name} from {anchor.isoformat()}")
    typer.echo(summarize_preview(rows))


@app.command("instantiate")
def instantiate(
    path: Optional[str] = typer.Argument(None, help="Path to a template file (.yaml/.yml/.json)"),
    template: Optional[str] = typer.Option(None, "--template", help="Library template name"),
    template_file: Optional[str] = typer.Option(
        None,
        "--template-file",
        envvar=TEMPLATE_FILE_ENV,
        help="Optional YAML file to add/override templates",
    ),
    start: str = typer.Option(..., "--start", help="Service start date (YYYY-MM-DD)"),
    name: Optional[str] = typer.Option(None, "--name", help="Service name (defaults to template name)"),
    out: str = typer.Option(..., "--out", help="Path to write the service records (YAML)"),
    start_policy: str = typer.Option("chained", "--start-policy", help="chained|anchored"),
) -> None:
    """Create dated service records from a template."""
    anchor = _parse_start(start)
    policy = _start_policy(start_policy)
    tmpl = _resolve_template(path, template, template_file)

    records = instantiate_service(tmpl, anchor, service_name=name, start_policy=policy)
    _write_yaml(out, records)
    typer.echo(f"OK: wrote service {records['service']['name']!r} to {out}")


@app.command("derive")
def derive(
    path: str = typer.Argument(..., help="Path to a service file (.yaml/.yml/.json)"),
    out: str = typer.Option(..., "--out", help="Path to write the derived template (YAML)"),
) -> None:
    """Save an existing service as a reusable relative-date template."""
    try:
        service = load_document(path, kind="service")
    except TemplateLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    # instantiate output nests the service record; accept both shapes.
    if isinstance(service.get("service"), dict):
        merged = dict(service["service"])
        merged["milestones"] = service.get("milestones")
        service = merged

    try:
        record = derive_template(service)
    except TemplateValidationError as e:
        _print_errors([TemplateValidationError(code=e.code, message=e.message, file=path, path=e.path)])
        raise typer.Exit(code=2)

    _write_yaml(out, record)
    typer.echo(f"OK: wrote template to {out}")


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                TemplateValidationError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _parse_start(start: str) -> date:
    try:
        return date.fromisoformat(start.strip())
    except ValueError:
        _print_errors(
            [
                TemplateValidationError(
                    code="E_INVALID_DATE",
                    message=f"--start must be YYYY-MM-DD, got {start!r}",
                    path="start",
                )
            ]
        )
        raise typer.Exit(code=2)


def _start_policy(name: str) -> StartPolicy:
    if name not in START_POLICIES:
        _print_errors(
            [
                TemplateValidationError(
                    code="E_UNKNOWN_START_POLICY",
                    message=f"unknown start policy: {name} (choose one of: {', '.join(sorted(START_POLICIES))})",
                    path="start_policy",
                )
            ]
        )
        raise typer.Exit(code=2)
    return START_POLICIES[name]


def _load_templates(template_file: Optional[str]) -> dict[str, dict[str, Any]]:
    try:
        return load_and_merge(template_file)
    except FileNotFoundError:
        _print_errors(
            [
                TemplateLoadError(
                    code="E_TEMPLATE_FILE_NOT_FOUND",
                    message=f"template file not found: {template_file}",
                    path="template_file",
                )
            ]
        )
        raise typer.Exit(code=1)
    except TemplateConfigError as e:
        _print_errors(
            [
                TemplateValidationError(
                    code="E_TEMPLATE_FILE_INVALID",
                    message=str(e),
                    path="template_file",
                )
            ]
        )
        raise typer.Exit(code=2)


def _resolve_template(
    path: Optional[str], name: Optional[str], template_file: Optional[str]
) -> ServiceTemplate:
    """Load and shape-check a template given either a file path or a library name."""
    if (path is None) == (name is None):
        _print_errors(
            [
                TemplateValidationError(
                    code="E_TEMPLATE_SOURCE",
                    message="pass exactly one of PATH or --template",
                    path="template",
                )
            ]
        )
        raise typer.Exit(code=2)

    if path is not None:
        try:
            raw = load_template(path)
        except TemplateLoadError as e:
            _print_errors([e])
            raise typer.Exit(code=1)
    else:
        templates_map = _load_templates(template_file)
        if name not in templates_map:
            _print_errors(
                [
                    TemplateValidationError(
                        code="E_UNKNOWN_TEMPLATE",
                        message=f"unknown template: {name} (choose one of: {', '.join(sorted(templates_map.keys()))})",
                        path="template",
                    )
                ]
            )
            raise typer.Exit(code=2)
        raw = template_record(name, templates_map)

    tmpl, errors = validate_template(raw)
    if errors or tmpl is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)

    logger.debug("resolved template %r (%d milestones)", tmpl.name, len(tmpl.milestones))
    return tmpl


def _template_summary(template: ServiceTemplate) -> dict[str, Any]:
    return {
        "name": template.name,
        "milestone_count": len(template.milestones),
        "task_count": sum(len(m.tasks) for m in template.milestones),
        "milestones": [m.name for m in sorted(template.milestones, key=lambda m: m.position)],
    }


def _emit_json(
    command: str,
    ok: bool,
    errors: list[ScheduleError],
    *,
    exit_code: int,
    summary: Optional[dict[str, Any]] = None,
) -> None:
    def _to_item(e: ScheduleError) -> dict:
        if isinstance(e, TemplateLoadError):
            source = "load"
        elif e.code.startswith("L_"):
            source = "lint"
        else:
            source = "validate"
        return {
            "code": e.code,
            "message": e.message,
            "file": e.file,
            "path": e.path,
            "severity": "error",
            "source": source,
        }

    payload = {
        "tool": "scheduler",
        "command": command,
        "ok": ok,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
        "summary": summary,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _write_yaml(path: str, data: dict[str, Any]) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    dump_yaml(data, str(p))


def _print_errors(errors: list[ScheduleError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="scheduler")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
