"""
Response scripts for simulated endpoints.

A script is a handful of declarative statements applied to a working copy of
the response ({"status": ..., "body": ...}). One statement per line:

    # comments and blank lines are ignored
    status 201
    set body.id = uuid
    set body.created_at = now
    set body.customer.name = request.body.name
    set body.greeting = "Hello {{request.body.name}}"
    remove body.internal_notes

Expressions: now, uuid, request.method, request.path,
request.body.<field>, request.query.<field>, request.headers.<name>,
or any JSON literal (strings go through placeholder interpolation).
"""
import copy
import json
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from orchsim.services.template import render_string

STATUS_RE = re.compile(r"^status\s+(\d{3})$")
SET_RE = re.compile(r"^set\s+body((?:\.\w+)+)\s*=\s*(.+)$")
REMOVE_RE = re.compile(r"^remove\s+body((?:\.\w+)+)$")
REQUEST_REF_RE = re.compile(r"^request\.(body|query|headers)\.([\w-]+)$")


class ScriptError(Exception):
    """Raised when a response script cannot be parsed or applied."""

    def __init__(self, message: str, line_no: Optional[int] = None):
        self.line_no = line_no
        super().__init__(f"line {line_no}: {message}" if line_no else message)


def _split_path(raw: str) -> List[str]:
    return [p for p in raw.split(".") if p]


def _lookup_header(headers: Dict[str, Any], name: str) -> Any:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _reject_constant(name: str) -> Any:
    raise ScriptError(f"non-finite number {name!r} is not valid JSON")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ScriptError(f"number {text!r} is out of range")
    return value


def evaluate(expr: str, request: Dict[str, Any], now: Callable[[], datetime]) -> Any:
    expr = expr.strip()
    if expr == "now":
        return now().isoformat()
    if expr == "uuid":
        return str(uuid.uuid4())
    if expr == "request.method":
        return request.get("method")
    if expr == "request.path":
        return request.get("path")
    m = REQUEST_REF_RE.match(expr)
    if m:
        source = request.get(m.group(1)) or {}
        if m.group(1) == "headers":
            return _lookup_header(source, m.group(2))
        return source.get(m.group(2)) if isinstance(source, dict) else None
    try:
        value = json.loads(expr, parse_constant=_reject_constant, parse_float=_finite_float)
    except (ValueError, RecursionError) as e:
        raise ScriptError(f"invalid expression {expr!r}") from e
    if isinstance(value, str):
        return render_string(value, request)
    return value


def _assign(body: Any, path: List[str], value: Any) -> None:
    node = body
    for key in path[:-1]:
        if not isinstance(node, dict):
            raise ScriptError(f"cannot descend into non-object at {key!r}")
        node = node.setdefault(key, {})
    if not isinstance(node, dict):
        raise ScriptError(f"cannot assign {path[-1]!r} on a non-object")
    node[path[-1]] = value


def _remove(body: Any, path: List[str]) -> None:
    node = body
    for key in path[:-1]:
        if not isinstance(node, dict) or key not in node:
            return
        node = node[key]
    if isinstance(node, dict):
        node.pop(path[-1], None)


def run_script(script: str, request: Dict[str, Any], response: Dict[str, Any],
               now: Optional[Callable[[], datetime]] = None) -> Dict[str, Any]:
    """
    Apply `script` to a deep copy of `response` and return the copy.
    The caller's response (and the endpoint template behind it) is left untouched.
    """
    now = now or (lambda: datetime.now(timezone.utc))
    working = copy.deepcopy(response)
    if working.get("body") is None:
        working["body"] = {}

    for line_no, raw in enumerate(script.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        try:
            m = STATUS_RE.match(line)
            if m:
                status = int(m.group(1))
                if not 100 <= status <= 599:
                    raise ScriptError(f"status out of range: {status}")
                working["status"] = status
                continue
            m = SET_RE.match(line)
            if m:
                _assign(working["body"], _split_path(m.group(1)), evaluate(m.group(2), request, now))
                continue
            m = REMOVE_RE.match(line)
            if m:
                _remove(working["body"], _split_path(m.group(1)))
                continue
            raise ScriptError(f"unknown statement {line!r}")
        except ScriptError as e:
            if e.line_no is None:
                raise ScriptError(str(e), line_no) from e
            raise
    return working
