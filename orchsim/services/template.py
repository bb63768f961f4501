import json
import re
from typing import Any, Dict

PLACEHOLDER = re.compile(r"\{\{request\.(body|query)\.(\w+)\}\}")


def stringify(value: Any) -> str:
    """Render a JSON value the way it reads inside a JSON response string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def render_string(text: str, request: Dict[str, Any]) -> str:
    body = request.get("body") or {}
    query = request.get("query") or {}

    def _sub(m: re.Match) -> str:
        source = body if m.group(1) == "body" else query
        if not isinstance(source, dict):
            return ""
        return stringify(source.get(m.group(2)))

    return PLACEHOLDER.sub(_sub, text)


def interpolate(template: Any, request: Dict[str, Any]) -> Any:
    """
    Return a new tree where {{request.body.X}} / {{request.query.X}} tokens inside
    string values are replaced from the request snapshot. Descends into objects only;
    arrays and non-string scalars are returned as-is. The template is never mutated.
    """
    if isinstance(template, str):
        return render_string(template, request)
    if isinstance(template, dict):
        return {key: interpolate(value, request) for key, value in template.items()}
    return template
