"""Basic exceptions for structured output construction"""  # noqa: D415

from __future__ import annotations

import typing

if typing.TYPE_CHECKING:
    from gemini_structured.core.types import ConstructionResult


class GeminiStructuredError(Exception):
    """Base exception for structured output construction errors"""  # noqa: D415


class ConfigurationError(GeminiStructuredError):
    """Raised when settings or a construct configuration are invalid"""  # noqa: D415


class GeneratorError(GeminiStructuredError):
    """Raised by generator adapters when the upstream model call fails"""  # noqa: D415


class ConstructionError(GeminiStructuredError):
    """Raised by `ConstructionResult.unwrap()` for a failed construction.

    The engine itself never raises; this only surfaces when a caller asks
    for exception-style handling of a result value.
    """

    def __init__(self, result: ConstructionResult) -> None:
        self.result = result
        kind = result.error_kind.name if result.error_kind else "UNKNOWN"
        super().__init__(f"{kind}: {result.error_message}")
