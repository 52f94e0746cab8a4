"""
Data models shared by the sync engine:
- OrderedItem: canonical, server-confirmed state of one row in a collection
- CollectionSchema: which fields of a collection are editable and how they validate
- Payload normalization and timestamp helpers used at the gateway boundary
"""

from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

TEXT = "text"
FLAG = "flag"
FIELD_KINDS = (TEXT, FLAG)

_IDENTIFIER_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_ROUTE_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")

_RESERVED_KEYS = {"id", "position", "created_at", "updated_at"}


@dataclass(frozen=True)
class OrderedItem:
    """Canonical item as last confirmed by the persistence gateway."""

    id: Any
    position: int
    created_at: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    def with_position(self, position: int) -> "OrderedItem":
        return replace(self, position=position)

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "position": self.position, "created_at": self.created_at}
        data.update(self.fields)
        return data


@dataclass(frozen=True)
class CollectionSchema:
    """Describes the editable surface of one collection.

    ``fields`` maps editable field names to their kind (``text`` or ``flag``).
    ``extra_fields`` are stored and returned by the gateway but never edited
    through drafts. ``visibility`` is a ``(flag, requires)`` pair: when the
    flag is true the ``requires`` text field must be non-empty. ``route`` is
    the API path segment when it differs from the collection name.
    """

    name: str
    fields: Dict[str, str]
    required: Optional[str] = None
    visibility: Optional[Tuple[str, str]] = None
    reorderable: bool = False
    extra_fields: Tuple[str, ...] = ()
    route: Optional[str] = None

    @classmethod
    def from_config(cls, name: str, cfg: Mapping[str, Any]) -> "CollectionSchema":
        """Build a schema from a ``collections.<name>`` config block."""
        if not _IDENTIFIER_RE.match(name):
            raise ValueError(f"Collection name '{name}' must be a lowercase identifier")

        raw_fields = cfg.get("fields") or {}
        fields: Dict[str, str] = {}
        for field_name, kind in raw_fields.items():
            if not _IDENTIFIER_RE.match(field_name) or field_name in _RESERVED_KEYS:
                raise ValueError(f"Invalid field name '{field_name}' in collection '{name}'")
            kind = kind or TEXT
            if kind not in FIELD_KINDS:
                raise ValueError(f"Field '{field_name}' in collection '{name}' has unknown kind '{kind}'")
            fields[field_name] = kind

        extra = tuple(cfg.get("extra_fields") or ())
        for field_name in extra:
            if not _IDENTIFIER_RE.match(field_name) or field_name in _RESERVED_KEYS:
                raise ValueError(f"Invalid extra field '{field_name}' in collection '{name}'")

        required = cfg.get("required")
        if required is not None and fields.get(required) != TEXT:
            raise ValueError(f"Required field '{required}' of '{name}' must be an editable text field")

        visibility = None
        vis_cfg = cfg.get("visibility")
        if vis_cfg:
            flag_name = vis_cfg.get("flag")
            requires = vis_cfg.get("requires")
            if fields.get(flag_name) != FLAG or fields.get(requires) != TEXT:
                raise ValueError(
                    f"Visibility rule of '{name}' must pair an editable flag with an editable text field"
                )
            visibility = (flag_name, requires)

        route = cfg.get("route")
        if route is not None and not _ROUTE_RE.match(str(route)):
            raise ValueError(f"Route '{route}' of '{name}' must be a single lowercase path segment")

        return cls(
            name=name,
            fields=fields,
            required=required,
            visibility=visibility,
            reorderable=bool(cfg.get("reorderable", False)),
            extra_fields=extra,
            route=str(route) if route is not None else None,
        )

    @property
    def endpoint(self) -> str:
        return self.route or self.name

    @property
    def editable_fields(self) -> List[str]:
        return list(self.fields)

    @property
    def stored_fields(self) -> List[str]:
        return list(self.fields) + [f for f in self.extra_fields if f not in self.fields]

    def is_text(self, name: str) -> bool:
        return self.fields.get(name) == TEXT

    def is_flag(self, name: str) -> bool:
        return self.fields.get(name) == FLAG


def snake_case(key: str) -> str:
    """Convert ``askerName`` style keys to ``asker_name``."""
    return _CAMEL_RE.sub("_", key).lower()


def coerce_flag(value: Any) -> bool:
    """Interpret form/JSON/SQLite values as a boolean flag."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def clean_text(value: Any) -> Optional[str]:
    """Trim a text value; empty strings become None as the server stores them."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def item_from_payload(payload: Mapping[str, Any], schema: Optional[CollectionSchema] = None) -> OrderedItem:
    """Normalize a raw server payload into an OrderedItem.

    Accepts both snake_case and camelCase keys; every key is folded to
    snake_case once here so the rest of the engine never guesses field names.
    """
    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        snake = snake_case(str(key))
        # snake_case spelling wins when a payload carries both
        if snake in normalized and snake != key:
            continue
        normalized[snake] = value

    if "id" not in normalized:
        raise ValueError("Item payload is missing 'id'")

    raw_position = normalized.pop("position", None)
    try:
        position = int(raw_position) if raw_position is not None else 0
    except (TypeError, ValueError):
        logger.debug("Ignoring non-integer position %r for item %r", raw_position, normalized.get("id"))
        position = 0

    item_id = normalized.pop("id")
    created_at = normalized.pop("created_at", None)
    created_at = "" if created_at is None else str(created_at)

    if schema is not None:
        for name, kind in schema.fields.items():
            if kind == FLAG:
                normalized[name] = coerce_flag(normalized.get(name, False))
            else:
                normalized.setdefault(name, None)

    return OrderedItem(id=item_id, position=position, created_at=created_at, fields=normalized)


def sort_items(items: List[OrderedItem]) -> List[OrderedItem]:
    """Sort by position, ties broken by created_at ascending."""

    def _key(item: OrderedItem):
        parsed = parse_timestamp(item.created_at)
        stamp = parsed.timestamp() if parsed is not None else float("inf")
        return (item.position, stamp)

    return sorted(items, key=_key)


def parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    """Parse an ISO-8601 / SQLite timestamp into an aware UTC datetime.

    Returns None for anything that does not parse; naive values are taken as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def format_timestamp(dt: datetime.datetime) -> str:
    """Render a datetime the way browsers render ``toISOString()``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    dt = dt.astimezone(datetime.timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


__all__ = [
    "TEXT",
    "FLAG",
    "OrderedItem",
    "CollectionSchema",
    "snake_case",
    "coerce_flag",
    "clean_text",
    "item_from_payload",
    "sort_items",
    "parse_timestamp",
    "format_timestamp",
    "utcnow",
]
