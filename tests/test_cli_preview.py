import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from service_scheduler.cli import app


runner = CliRunner()


def _load_yaml(p: Path) -> dict:
    return yaml.safe_load(p.read_text(encoding="utf-8"))


def test_cli_preview_file_text():
    r = runner.invoke(app, ["preview", "examples/website-template.yaml", "--start", "2025-01-01"])
    assert r.exit_code == 0, r.stdout + r.stderr
    assert "Website build from 2025-01-01" in r.stdout
    assert "Discovery: 2025-01-01 -> 2025-01-15 (14d)" in r.stdout
    assert "Build: 2025-01-15 -> 2025-02-14 (30d)" in r.stdout


def test_cli_preview_tbd_rows_do_not_fail():
    r = runner.invoke(
        app,
        ["preview", "examples/invalid-offset-template.yaml", "--start", "2025-01-01", "--format", "json"],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    rows = {row["name"]: row for row in payload["rows"]}
    assert rows["Build"]["computed_due"] == "TBD"
    assert rows["Scaffold"]["computed_due"] == "2025-01-10"
    assert rows["Ship"]["computed_due"] == "2025-01-11"


def test_cli_preview_library_template_anchored():
    r = runner.invoke(
        app,
        [
            "preview",
            "--template",
            "website-launch",
            "--start",
            "2025-01-01",
            "--start-policy",
            "anchored",
            "--format",
            "json",
        ],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    payload = json.loads(r.stdout)
    assert payload["start_policy"] == "anchored"
    launch = [row for row in payload["rows"] if row["name"] == "Launch"][0]
    assert launch["computed_start"] == "2025-03-02"


def test_cli_preview_errors():
    r = runner.invoke(app, ["preview", "examples/website-template.yaml", "--start", "01/02/2025"])
    assert r.exit_code == 2
    assert "E_INVALID_DATE" in (r.stdout + r.stderr)

    r = runner.invoke(app, ["preview", "--start", "2025-01-01"])
    assert r.exit_code == 2
    assert "E_TEMPLATE_SOURCE" in (r.stdout + r.stderr)

    r = runner.invoke(app, ["preview", "--template", "nope", "--start", "2025-01-01"])
    assert r.exit_code == 2
    assert "E_UNKNOWN_TEMPLATE" in (r.stdout + r.stderr)

    r = runner.invoke(
        app,
        ["preview", "examples/website-template.yaml", "--start", "2025-01-01", "--start-policy", "x"],
    )
    assert r.exit_code == 2
    assert "E_UNKNOWN_START_POLICY" in (r.stdout + r.stderr)


def test_cli_instantiate_then_derive(tmp_path: Path):
    service_path = tmp_path / "out" / "service.yaml"
    r = runner.invoke(
        app,
        [
            "instantiate",
            "examples/website-template.yaml",
            "--start",
            "2025-01-01",
            "--name",
            "Acme",
            "--out",
            str(service_path),
        ],
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    records = _load_yaml(service_path)
    assert records["service"]["name"] == "Acme"
    assert records["milestones"][1]["due_date"] == "2025-02-14"

    template_path = tmp_path / "derived.yaml"
    r = runner.invoke(app, ["derive", str(service_path), "--out", str(template_path)])
    assert r.exit_code == 0, r.stdout + r.stderr
    derived = _load_yaml(template_path)
    assert derived["name"] == "Acme"
    assert [m["due_offset"] for m in derived["milestones"]] == ["2 weeks", "1 month"]

    r = runner.invoke(app, ["lint", str(template_path)])
    assert r.exit_code == 0, r.stdout + r.stderr


def test_cli_derive_missing_file(tmp_path: Path):
    r = runner.invoke(app, ["derive", "examples/nope.yaml", "--out", str(tmp_path / "x.yaml")])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in (r.stdout + r.stderr)
