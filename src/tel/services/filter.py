"""Filter composition and placeholder substitution for stored queries.

Both operations splice text into SQL verbatim. Queries and predicates are
written by the person running the tool against their own databases, so no
escaping or parameter binding is attempted.
"""

import json
import re
from pathlib import Path
from typing import Any

from tel.errors import ConfigParseError

_LEADING_WHERE = re.compile(r"^where\b", re.IGNORECASE)


def normalize_predicate(raw: str) -> str:
    """Strip surrounding whitespace and one leading WHERE keyword."""
    predicate = raw.strip()
    predicate = _LEADING_WHERE.sub("", predicate, count=1)
    return predicate.strip()


def compose_filter(base_query: str, raw_filter: str) -> str:
    """Wrap a base query as a subquery restricted by a filter predicate.

    Args:
        base_query: The stored query text.
        raw_filter: Predicate typed by the user, optionally starting with WHERE.

    Returns:
        ``SELECT * FROM (base_query) WHERE predicate``, or the base query
        unchanged when the predicate is empty.
    """
    predicate = normalize_predicate(raw_filter or "")
    if not predicate:
        return base_query
    return f"SELECT * FROM ({base_query}) WHERE {predicate}"


def _render_arg(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def substitute_placeholders(sql: str, args: dict[str, Any]) -> str:
    """Replace ``:name`` markers with argument values as literal text.

    Longer names go first so ``:id`` does not clobber part of ``:id2``.
    """
    for name in sorted(args, key=len, reverse=True):
        sql = sql.replace(f":{name}", _render_arg(args[name]))
    return sql


def load_placeholder_args(path: Path) -> dict[str, Any]:
    """Read placeholder arguments from a JSON object file.

    Raises:
        ConfigParseError: If the file is unreadable or not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigParseError(f"cannot read args file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"args file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigParseError(f"args file {path} must contain a JSON object")
    return data
