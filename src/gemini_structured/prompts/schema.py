"""Schema text helpers for the output-format segment of a prompt.

A schema can be supplied as ready-made text, as a JSON-Schema mapping, or as a
Pydantic model class. Whatever the form, it ends up embedded verbatim in the
prompt so the generator sees exactly what it must produce.
"""

from collections.abc import Mapping, Sequence
import json
from typing import Any

from pydantic import PydanticUserError, TypeAdapter


def describe_schema(schema: Any) -> str | None:
    """Render `schema` as prompt text, or None when there is nothing to embed.

    Raises:
        TypeError: If `schema` is of an unsupported type.
    """
    if schema is None:
        return None
    if isinstance(schema, str):
        return schema if schema.strip() else None
    if isinstance(schema, Mapping):
        return json.dumps(schema, indent=2)
    if hasattr(schema, "model_json_schema"):  # Pydantic v2 model class
        return json.dumps(schema.model_json_schema(), indent=2)
    try:
        # Generic types such as list[Item]
        return json.dumps(TypeAdapter(schema).json_schema(), indent=2)
    except (PydanticUserError, TypeError, ValueError) as e:
        raise TypeError(
            f"Unsupported schema type {type(schema).__name__}; expected str, "
            "mapping, Pydantic model or a type Pydantic can adapt"
        ) from e


def build_simple_schema(type_name: str, fields: Sequence[tuple[str, str]]) -> str:
    """Build a flat JSON Schema for an object whose fields are all required.

    Args:
        type_name: Title of the object type.
        fields: ``(name, json_type)`` pairs, e.g. ``[("name", "string"),
            ("age", "number")]``.

    Returns:
        Indented JSON Schema text.

    Raises:
        ValueError: If `type_name` is empty or no fields are given.
    """
    if not type_name:
        raise ValueError("type_name cannot be empty")
    if not fields:
        raise ValueError("fields cannot be empty")

    properties = {name: {"type": field_type} for name, field_type in fields}
    schema = {
        "title": type_name,
        "type": "object",
        "properties": properties,
        "required": [name for name, _ in fields],
    }
    return json.dumps(schema, indent=2)
