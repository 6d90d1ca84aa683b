"""Core value types shared by the extractor, prompt builders and engine."""

from .types import (
    AttemptFailure,
    AttemptOutcome,
    ConstructionResult,
    EmptyResponse,
    ErrorKind,
    GeneratorFailure,
    ParseFailure,
    Parsed,
)

__all__ = [
    "AttemptFailure",
    "AttemptOutcome",
    "ConstructionResult",
    "EmptyResponse",
    "ErrorKind",
    "GeneratorFailure",
    "ParseFailure",
    "Parsed",
]
