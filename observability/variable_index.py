"""
Variable Indexing

Turns the variables of an execution log into searchable path/value pairs.

Example: {"user": {"name": "Ada"}, "tags": ["a", "b"]}
    -> [("user.name", "Ada"), ("tags", '["a","b"]')]

DESIGN RULES:
- Nested objects are flattened with dotted paths
- Lists are kept whole, as compact JSON text
- Empty objects produce no entries; None is kept (indexed as "")
- Pure functions, no storage access
"""

import json
from typing import Any, List, Mapping, Tuple

from storage.models import ExecutionLog, VariableSearchRecord

PathValue = Tuple[str, Any]


def flatten_variables(variables: Mapping[str, Any], prefix: str = "") -> List[PathValue]:
    results: List[PathValue] = []

    for key, value in variables.items():
        path = f"{prefix}.{key}" if prefix else str(key)

        if value is None:
            results.append((path, None))
        elif isinstance(value, (list, tuple)):
            results.append((path, json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)))
        elif isinstance(value, Mapping):
            if value:
                results.extend(flatten_variables(value, path))
        else:
            results.append((path, value))

    return results


def format_for_search(value: Any) -> str:
    """Searchable text of a flattened value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_search_records(log: ExecutionLog, variables: Mapping[str, Any]) -> List[VariableSearchRecord]:
    return [
        VariableSearchRecord(
            tenant_id=log.tenant_id,
            project_id=log.project_id,
            prompt_id=log.prompt_id,
            log_id=log.id,
            variable_path=path,
            variable_value=format_for_search(value),
            created_at=log.created_at,
        )
        for path, value in flatten_variables(variables)
    ]
