from service_scheduler.core.io.load_template import load_template
from service_scheduler.core.validate.validate_template import validate_template


def test_validate_happy_path():
    raw = load_template("examples/website-template.yaml")
    template, errors = validate_template(raw)
    assert errors == []
    assert template is not None
    assert [m.name for m in template.milestones] == ["Discovery", "Build"]
    qa = template.milestones[1].tasks[1]
    assert qa.priority == "urgent"
    assert qa.visibility == "client"
    assert template.milestones[0].tasks[1].priority == "medium"


def test_validate_bad_shape_collects_errors():
    raw = load_template("examples/invalid-shape-template.yaml")
    template, errors = validate_template(raw)
    assert template is None
    codes = {(e.path, e.code) for e in errors}
    assert ("name", "E_REQUIRED_FIELD") in codes
    assert ("milestones[0].position", "E_INVALID_TYPE") in codes
    assert ("milestones[0].tasks[0].priority", "E_INVALID_ENUM") in codes
    assert ("milestones[1]", "E_INVALID_TYPE") in codes
    assert errors == sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def test_validate_defaults_and_tolerates_bad_offsets():
    template, errors = validate_template(
        {
            "name": "Defaults",
            "milestones": [
                {"name": "A", "due_offset": "two weeks", "tasks": [{"title": "t"}]},
                {"name": "B", "due_offset": 5},
            ],
        }
    )
    assert errors == []
    a, b = template.milestones
    assert (a.position, b.position) == (0, 1)
    assert a.start_offset_expr == "same day"
    assert a.due_offset_expr == "two weeks"
    assert a.tasks[0].due_offset_expr == ""
    assert b.due_offset_expr == "5"
    assert template.color == "blue"


def test_validate_offset_must_be_text():
    template, errors = validate_template(
        {"name": "X", "milestones": [{"name": "A", "due_offset": ["1 week"]}]}
    )
    assert template is None
    assert [(e.path, e.code) for e in errors] == [("milestones[0].due_offset", "E_INVALID_TYPE")]


def test_validate_milestones_must_be_list():
    template, errors = validate_template({"name": "X", "milestones": {"a": 1}})
    assert template is None
    assert errors[0].code == "E_INVALID_TYPE"


def test_validate_missing_milestones_is_empty_template():
    template, errors = validate_template({"name": "Empty"})
    assert errors == []
    assert template.milestones == []
