"""Core data types that flow through the construction loop.

This module defines the immutable values exchanged between the extractor,
the prompt builders and the retry engine: the tagged outcome of a single
attempt, the error taxonomy, and the terminal `ConstructionResult` handed
back to callers. Failures are values here, never exceptions, so the engine
can always return a result instead of unwinding across the call boundary.
"""

from __future__ import annotations

import dataclasses
import enum
import typing

from gemini_structured.exceptions import ConstructionError

# --- Minimal guard helpers (clarity > boilerplate) ---


def _require(
    *,
    condition: bool,
    message: str,
    exc: type[Exception] = ValueError,
    field_name: str | None = None,
) -> None:
    """Centralized validation with optional field context for clearer errors."""
    if not condition:
        if field_name:
            raise exc(f"{field_name}: {message}")
        raise exc(message)


# --- Error taxonomy ---


class ErrorKind(enum.Enum):
    """Why a construction (or a single attempt) did not produce a document."""

    INVALID_CONFIG = "invalid_config"
    EMPTY_RESPONSE = "empty_response"
    INVALID_JSON = "invalid_json"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"
    GENERATOR_FAILED = "generator_failed"
    ALLOCATION_FAILED = "allocation_failed"

    @property
    def description(self) -> str:
        """Human-readable summary of the error kind."""
        return _ERROR_DESCRIPTIONS[self]

    @property
    def retryable(self) -> bool:
        """Whether another attempt could plausibly fix this condition."""
        return self in (
            ErrorKind.EMPTY_RESPONSE,
            ErrorKind.INVALID_JSON,
            ErrorKind.GENERATOR_FAILED,
        )


_ERROR_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.INVALID_CONFIG: "Invalid configuration",
    ErrorKind.EMPTY_RESPONSE: "Empty response from generator",
    ErrorKind.INVALID_JSON: "Invalid JSON in generator response",
    ErrorKind.MAX_RETRIES_EXCEEDED: "Maximum retries exceeded",
    ErrorKind.GENERATOR_FAILED: "Generator call failed",
    ErrorKind.ALLOCATION_FAILED: "Memory allocation failed",
}


# --- Attempt outcomes (transient, one per loop iteration) ---


@dataclasses.dataclass(frozen=True, slots=True)
class Parsed:
    """A document was extracted and parsed from the generator output."""

    document: typing.Any
    method: str
    raw: str


@dataclasses.dataclass(frozen=True, slots=True)
class ParseFailure:
    """Text was produced but no stage could turn it into a document."""

    reason: str
    raw: str

    kind: typing.ClassVar[ErrorKind] = ErrorKind.INVALID_JSON

    def describe(self) -> str:
        return self.reason


@dataclasses.dataclass(frozen=True, slots=True)
class EmptyResponse:
    """The generator answered with nothing but whitespace."""

    raw: str = ""

    kind: typing.ClassVar[ErrorKind] = ErrorKind.EMPTY_RESPONSE

    def describe(self) -> str:
        return "Generator returned an empty response"


@dataclasses.dataclass(frozen=True, slots=True)
class GeneratorFailure:
    """The generator signalled failure (returned None or raised)."""

    reason: str

    kind: typing.ClassVar[ErrorKind] = ErrorKind.GENERATOR_FAILED

    def describe(self) -> str:
        return f"Generator call failed: {self.reason}"


type AttemptFailure = ParseFailure | EmptyResponse | GeneratorFailure
type AttemptOutcome = Parsed | AttemptFailure


# --- Terminal result ---


@dataclasses.dataclass(frozen=True, slots=True)
class ConstructionResult:
    """The single value returned by `construct()`.

    Exactly one of `document` (on success) or `error_kind` (on failure) is
    meaningful. `last_response` keeps the most recent raw generator text for
    diagnostics only; it is never parsed again.
    """

    document: typing.Any = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    attempts_used: int = 0
    last_response: str | None = None
    model: typing.Any = None
    extraction_method: str | None = None

    def __post_init__(self) -> None:
        """Validate invariants for type safety."""
        _require(
            condition=isinstance(self.attempts_used, int) and self.attempts_used >= 0,
            message="must be a non-negative int",
            field_name="attempts_used",
        )
        _require(
            condition=self.error_kind is None or bool(self.error_message),
            message="is required when error_kind is set",
            field_name="error_message",
        )

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(
        cls,
        outcome: Parsed,
        attempts_used: int,
        *,
        model: typing.Any = None,
    ) -> ConstructionResult:
        return cls(
            document=outcome.document,
            attempts_used=attempts_used,
            last_response=outcome.raw,
            model=model,
            extraction_method=outcome.method,
        )

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        attempts_used: int,
        last_response: str | None = None,
    ) -> ConstructionResult:
        return cls(
            error_kind=kind,
            error_message=message,
            attempts_used=attempts_used,
            last_response=last_response,
        )

    def unwrap(self) -> typing.Any:
        """Return the document, or raise `ConstructionError` for failures."""
        if self.error_kind is not None:
            raise ConstructionError(self)
        return self.document
