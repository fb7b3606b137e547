from service_scheduler.core.io.load_template import load_template
from service_scheduler.core.lint.lint_template import lint_template
from service_scheduler.core.model import ServiceTemplate
from service_scheduler.core.validate.validate_template import validate_template


def _template(path):
    template, errors = validate_template(load_template(path))
    assert errors == []
    return template


def test_lint_clean_template():
    assert lint_template(_template("examples/website-template.yaml")) == []


def test_lint_flags_each_invalid_offset_field():
    errors = lint_template(
        _template("examples/invalid-offset-template.yaml"), file="t.yaml"
    )
    assert [(e.path, e.code) for e in errors] == [
        ("milestones[1].due_offset", "L_INVALID_OFFSET"),
        ("milestones[1].tasks[1].due_offset", "L_INVALID_OFFSET"),
    ]
    assert all(e.file == "t.yaml" for e in errors)
    assert "two weeks" in errors[0].message


def test_lint_empty_offset_shown_as_empty():
    template, _ = validate_template({"name": "X", "milestones": [{"name": "A"}]})
    [err] = lint_template(template)
    assert err.code == "L_INVALID_OFFSET"
    assert "<empty>" in err.message


def test_lint_duplicate_positions():
    template, _ = validate_template(
        {
            "name": "X",
            "milestones": [
                {"name": "A", "position": 1, "due_offset": "1 week"},
                {
                    "name": "B",
                    "position": 1,
                    "due_offset": "1 week",
                    "tasks": [
                        {"title": "t1", "position": 0, "due_offset": "1 day"},
                        {"title": "t2", "position": 0, "due_offset": "2 days"},
                    ],
                },
            ],
        }
    )
    errors = lint_template(template)
    assert [(e.path, e.code) for e in errors] == [
        ("milestones[1].position", "L_DUPLICATE_POSITION"),
        ("milestones[1].tasks[1].position", "L_DUPLICATE_POSITION"),
    ]


def test_lint_task_due_after_milestone_due():
    template, _ = validate_template(
        {
            "name": "X",
            "milestones": [
                {
                    "name": "A",
                    "due_offset": "1 week",
                    "tasks": [
                        {"title": "ok", "due_offset": "1 week"},
                        {"title": "late", "due_offset": "2 weeks"},
                    ],
                }
            ],
        }
    )
    [err] = lint_template(template)
    assert err.code == "L_TASK_DUE_AFTER_MILESTONE"
    assert err.path == "milestones[0].tasks[1].due_offset"


def test_lint_no_milestones():
    [err] = lint_template(ServiceTemplate(name="Empty", milestones=[]))
    assert err.code == "L_NO_MILESTONES"
