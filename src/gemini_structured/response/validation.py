"""
Validation of extracted documents against a response model
"""

from collections.abc import Callable
from typing import Any

from pydantic import PydanticUserError, TypeAdapter, ValidationError

from gemini_structured.core.types import ParseFailure, Parsed
from gemini_structured.utils import truncate_preview

type Validator = Callable[[Any], Any]


def response_validator(response_model: Any) -> Validator:
    """Build the callable that validates documents against `response_model`

    Args:
        response_model: A Pydantic v2 model class, or any type Pydantic can
            adapt (e.g. ``list[Item]``, ``dict[str, int]``).

    Raises:
        TypeError: If Pydantic cannot build a validator for `response_model`.
    """
    if hasattr(response_model, "model_validate"):  # Pydantic model
        return response_model.model_validate
    try:
        return TypeAdapter(response_model).validate_python
    except (PydanticUserError, TypeError, ValueError) as e:
        raise TypeError(
            f"Unsupported response_model {response_model!r}; expected a Pydantic "
            "model or a type Pydantic can adapt"
        ) from e


def validate_document(
    outcome: Parsed,
    response_model: Any,
    *,
    preview_chars: int = 200,
    validator: Validator | None = None,
) -> tuple[Any, ParseFailure | None]:
    """Validate a parsed document against a Pydantic model or generic type

    Args:
        outcome: The successful extraction to validate.
        response_model: The model the document must match.
        preview_chars: Bound on the error text echoed back into the failure.
        validator: Prebuilt result of `response_validator(response_model)`.

    Returns:
        ``(validated, None)`` on success, ``(None, failure)`` when the document
        does not match. The failure is retried like any other parse error.

    Raises:
        TypeError: If no validator is given and `response_model` is unusable.
    """
    if validator is None:
        validator = response_validator(response_model)
    try:
        return validator(outcome.document), None
    except ValidationError as e:
        reason = (
            f"Schema validation failed for {_model_name(response_model)} "
            f"({e.error_count()} error(s)): {truncate_preview(str(e), preview_chars)}"
        )
        return None, ParseFailure(reason=reason, raw=outcome.raw)


def _model_name(response_model: Any) -> str:
    return getattr(response_model, "__name__", None) or repr(response_model)
