import pytest

from service_scheduler.core.errors import TemplateLoadError
from service_scheduler.core.io.load_template import load_document, load_template


def test_load_yaml_success():
    raw = load_template("examples/website-template.yaml")
    assert raw["name"] == "Website build"
    assert isinstance(raw["milestones"], list)
    assert raw["__file__"] == "examples/website-template.yaml"


def test_load_json_success(tmp_path):
    p = tmp_path / "t.json"
    p.write_text('{"name": "J", "milestones": [], "extra": 1}', encoding="utf-8")
    raw = load_template(str(p))
    assert raw["name"] == "J"
    assert "extra" not in raw


def test_load_missing_file():
    with pytest.raises(TemplateLoadError) as exc:
        load_template("examples/does-not-exist.yaml")
    assert exc.value.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "template.txt"
    p.write_text("hello", encoding="utf-8")
    with pytest.raises(TemplateLoadError) as exc:
        load_template(str(p))
    assert exc.value.code == "E_UNSUPPORTED_FORMAT"


def test_load_yaml_parse_error(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("name: [unclosed", encoding="utf-8")
    with pytest.raises(TemplateLoadError) as exc:
        load_template(str(p))
    assert exc.value.code == "E_YAML_PARSE"


def test_load_json_parse_error(tmp_path):
    p = tmp_path / "bad.json"
    p.write_text("{nope", encoding="utf-8")
    with pytest.raises(TemplateLoadError) as exc:
        load_template(str(p))
    assert exc.value.code == "E_JSON_PARSE"


def test_load_non_mapping_top_level(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(TemplateLoadError) as exc:
        load_template(str(p))
    assert exc.value.code == "E_INVALID_TOP_LEVEL"
    assert str(exc.value).startswith(str(p))


def test_load_errors_name_the_document_kind(tmp_path):
    p = tmp_path / "service.txt"
    p.write_text("hello", encoding="utf-8")
    with pytest.raises(TemplateLoadError) as exc:
        load_document(str(p), kind="service")
    assert exc.value.message == "service files must be .yaml/.yml or .json"

    with pytest.raises(TemplateLoadError) as exc:
        load_template("examples/does-not-exist.yaml")
    assert exc.value.message == "template file does not exist"
