"""Shared utilities for command implementations.

Provides common argument parsing used across multiple commands.
"""

from typing import Any, Dict, Iterable


def parse_item_id(value: Any) -> Any:
    """Turn a CLI id into the gateway's id type (integers stay integers).

    Examples:
        >>> parse_item_id("12")
        12
        >>> parse_item_id("a1b2")
        'a1b2'
    """
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lstrip("-").isdigit():
            return int(cleaned)
        return cleaned
    return value


def parse_assignments(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse ``field=value`` strings into a dict.

    Raises:
        ValueError: If a pair has no '=' or an empty field name
    """
    fields: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"Expected field=value, got '{pair}'")
        fields[name] = value
    return fields
