"""
Template Substitution

Renders {{variable}} placeholders in prompt messages.

Supports:
- Surrounding whitespace inside braces: {{ name }}
- Nested lookup with dots: {{user.name}}, {{items.0}}
- Objects and lists rendered as compact JSON

Unresolvable placeholders are left exactly as written.
render() never raises.
"""

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any


PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")

_MISSING = object()


def _lookup(variables: Mapping[str, Any], key: str) -> Any:
    value: Any = variables
    for segment in key.split("."):
        if isinstance(value, Mapping):
            if segment not in value:
                return _MISSING
            value = value[segment]
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            if not segment.isdigit() or int(segment) >= len(value):
                return _MISSING
            value = value[int(segment)]
        else:
            return _MISSING
    return value


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def render(template: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute {{placeholders}} in template from variables.

    Args:
        template: Text containing zero or more placeholders
        variables: Variable bag (may be nested)

    Returns:
        Rendered text. Placeholders that cannot be resolved, or resolve
        to None, are kept verbatim.
    """
    if not isinstance(template, str):
        return template
    if not isinstance(variables, Mapping):
        variables = {}

    def replace(match: "re.Match[str]") -> str:
        try:
            value = _lookup(variables, match.group(1).strip())
            if value is _MISSING or value is None:
                return match.group(0)
            return _to_text(value)
        except Exception:
            return match.group(0)

    return PLACEHOLDER.sub(replace, template)


def has_placeholders(text: str) -> bool:
    """Check whether text contains at least one {{placeholder}}."""
    return isinstance(text, str) and PLACEHOLDER.search(text) is not None
