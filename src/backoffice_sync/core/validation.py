"""Field validation shared by drafts (before any network call) and the storage backends."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .errors import ValidationError
from .models import FLAG, CollectionSchema, clean_text, coerce_flag


def validate_fields(schema: CollectionSchema, values: Mapping[str, Any], item_id: Any = None) -> None:
    """Raise ValidationError when *values* break the rules of *schema*.

    The same rules apply on create and on edit: the required text field must
    be non-empty after trimming, and a visibility flag set to true needs its
    dependent text field filled in.
    """
    if schema.required and not clean_text(values.get(schema.required)):
        raise ValidationError(
            f"'{schema.required}' cannot be empty.",
            item_id=item_id,
            field=schema.required,
        )

    if schema.visibility:
        flag_name, requires = schema.visibility
        if coerce_flag(values.get(flag_name)) and not clean_text(values.get(requires)):
            raise ValidationError(
                f"'{requires}' is required before '{flag_name}' can be turned on.",
                item_id=item_id,
                field=requires,
            )


def normalize_fields(schema: CollectionSchema, values: Mapping[str, Any]) -> Dict[str, Any]:
    """Server-side normalization: trim text, store empty text as None, coerce flags.

    Keys outside the schema's stored fields are dropped.
    """
    stored = set(schema.stored_fields)
    normalized: Dict[str, Any] = {}
    for name, value in values.items():
        if name not in stored:
            continue
        if schema.fields.get(name) == FLAG:
            normalized[name] = coerce_flag(value)
        else:
            normalized[name] = clean_text(value)
    return normalized


__all__ = ["validate_fields", "normalize_fields"]
