from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from service_scheduler.core.errors import TemplateLoadError


logger = logging.getLogger(__name__)


def load_document(path: str, kind: str = "template") -> dict[str, Any]:
    """Load a YAML/JSON mapping, tagging it with its source file under "__file__".

    kind ("template" or "service") only shapes the error messages.
    """

    p = Path(path)
    if not p.exists():
        raise TemplateLoadError(
            code="E_FILE_NOT_FOUND",
            message=f"{kind} file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise TemplateLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise TemplateLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message=f"{kind} files must be .yaml/.yml or .json",
                file=str(p),
            )
    except TemplateLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise TemplateLoadError(code=code, message=f"cannot parse {kind}: {e}", file=str(p)) from e

    if not isinstance(data, dict):
        raise TemplateLoadError(
            code="E_INVALID_TOP_LEVEL",
            message=f"top-level {kind} document must be a mapping/object",
            file=str(p),
        )

    data = dict(data)
    data["__file__"] = str(p)
    logger.debug("loaded %s %s (%d top-level keys)", kind, p, len(data) - 1)
    return data


def load_template(path: str) -> dict[str, Any]:
    """Load a service template file.

    Returns a dict with keys: name, description, color, milestones.
    Does not coerce types; validator owns shape checking.
    """
    data = load_document(path)

    # Normalize: keep only expected keys; validator checks required ones.
    normalized: dict[str, Any] = {
        "name": data.get("name"),
        "milestones": data.get("milestones"),
    }
    for key in ("description", "color"):
        if key in data:
            normalized[key] = data.get(key)

    normalized["__file__"] = data["__file__"]
    return normalized
