"""Write-time field sentinels resolved by the document store at commit."""

from typing import Any


class _ServerTimestamp:
    """Replaced by the commit timestamp of the batch that writes it."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class Increment:
    """Add a number to the stored value (missing or null counts as 0)."""

    def __init__(self, value: int | float) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Increment({self.value!r})"


class ArrayUnion:
    """Append values to a stored list, skipping ones already present."""

    def __init__(self, *values: Any) -> None:
        self.values = list(values)

    def __repr__(self) -> str:
        return f"ArrayUnion({self.values!r})"


def resolve_value(value: Any, current: Any, commit_time: str) -> Any:
    """Resolve a single field value against the currently stored value."""
    if value is SERVER_TIMESTAMP:
        return commit_time
    if isinstance(value, Increment):
        return (current or 0) + value.value
    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        existing.extend(v for v in value.values if v not in existing)
        return existing
    return value


def resolve_fields(data: dict[str, Any], current: dict[str, Any] | None, commit_time: str) -> dict[str, Any]:
    """Resolve every sentinel in a write payload."""
    current = current or {}
    return {key: resolve_value(value, current.get(key), commit_time) for key, value in data.items()}
