"""Configuration management for structured output construction.

Two layers are involved:

- `StructuredSettings`: ambient, process-wide defaults (API key, model, retry
  budget, delay) validated by Pydantic and read from `GEMINI_*` environment
  variables.
- `ConstructConfig`: the immutable, per-invocation request handed to
  `construct()`. Fields left as `None` fall back to the ambient settings.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import contextmanager
import contextvars
import dataclasses
import math
import typing

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from gemini_structured.exceptions import ConfigurationError
from gemini_structured.instrumentation import is_observer

if typing.TYPE_CHECKING:
    from gemini_structured.client.base import TextGenerator
    from gemini_structured.core.types import ErrorKind
    from gemini_structured.instrumentation import AttemptObserver

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 3600.0
DEFAULT_PREVIEW_CHARS = 200
DEFAULT_MODEL = "gemini-2.0-flash"


class StructuredSettings(BaseSettings):
    """Pydantic settings schema for ambient configuration.

    This handles validation, type coercion, and default values for all
    configuration fields. It integrates with environment variables using
    the GEMINI_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars for forward compatibility
    )

    api_key: str | None = Field(
        default=None,
        description="Google Gemini API key, only needed by GeminiGenerator",
    )

    model: str = Field(
        default=DEFAULT_MODEL,
        description="Gemini model identifier used by GeminiGenerator",
        min_length=1,
    )

    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        description="Retries after the first attempt; 0 means a single attempt",
        ge=0,
    )

    retry_delay: float = Field(
        default=DEFAULT_RETRY_DELAY,
        description="Seconds to wait between attempts",
        ge=0.0,
        allow_inf_nan=False,
    )

    preview_chars: int = Field(
        default=DEFAULT_PREVIEW_CHARS,
        description="Maximum characters of a response quoted in error messages",
        ge=1,
    )


# --- Ambient Configuration Resolution ---

_ambient_settings_var: contextvars.ContextVar[StructuredSettings] = (
    contextvars.ContextVar("gemini_structured_settings")
)


def get_settings() -> StructuredSettings:
    """Resolve settings from the current context or the environment.

    Precedence:
    1. Settings installed by `settings_scope`.
    2. Environment variables (`GEMINI_MAX_RETRIES`, `GEMINI_API_KEY`, ...).
    3. Field defaults.
    """
    try:
        return _ambient_settings_var.get()
    except LookupError:
        return StructuredSettings()


@contextmanager
def settings_scope(
    settings: StructuredSettings | None = None, **overrides: typing.Any
) -> Generator[StructuredSettings]:
    """Temporarily use different settings.

    Thread-safe and async-safe, which makes it handy for tests or for a
    single stubborn target that deserves a bigger retry budget.

    Example:
        with settings_scope(max_retries=5):
            result = construct(config)
    """
    base = settings if settings is not None else get_settings()
    scoped = (
        StructuredSettings.model_validate({**base.model_dump(), **overrides})
        if overrides
        else base
    )
    token = _ambient_settings_var.set(scoped)
    try:
        yield scoped
    finally:
        _ambient_settings_var.reset(token)


# --- Per-invocation configuration ---


@dataclasses.dataclass(frozen=True, slots=True)
class ConstructConfig:
    """Everything one `construct()` call needs.

    Attributes:
        base_prompt: The request sent to the generator. Required.
        generator: A `TextGenerator` or a plain ``prompt -> text`` callable.
            Required. Returning None signals a failed call.
        target_name: Label for logs and observers.
        schema: Optional schema text, JSON-Schema mapping or Pydantic model
            embedded in the prompt.
        response_model: Optional Pydantic model (or type) the parsed document
            must validate against. Also supplies the schema when `schema` is
            unset.
        max_retries: Retries after the first attempt (None: settings).
        retry_delay: Seconds between attempts (None: settings).
        backoff_factor: Multiplier applied to the delay after each retry;
            1.0 keeps the delay flat. Every delay is capped at
            `MAX_RETRY_DELAY` seconds.
        on_error: Optional ``(ErrorKind, message)`` side channel, called at
            every retry boundary and at final failure.
        observer: Optional `AttemptObserver`.
        preview_chars: Bound on response previews (None: settings).
    """

    base_prompt: str
    generator: TextGenerator | Callable[[str], str | None] | None
    target_name: str = "document"
    schema: typing.Any = None
    response_model: typing.Any = None
    max_retries: int | None = None
    retry_delay: float | None = None
    backoff_factor: float = 1.0
    on_error: Callable[[ErrorKind, str], typing.Any] | None = None
    observer: AttemptObserver | None = None
    preview_chars: int | None = None

    def resolved(self, settings: StructuredSettings | None = None) -> ConstructConfig:
        """Return a copy with every `None` default filled from settings."""
        settings = settings or get_settings()
        return dataclasses.replace(
            self,
            max_retries=(
                settings.max_retries if self.max_retries is None else self.max_retries
            ),
            retry_delay=(
                settings.retry_delay if self.retry_delay is None else self.retry_delay
            ),
            preview_chars=(
                settings.preview_chars
                if self.preview_chars is None
                else self.preview_chars
            ),
        )

    @property
    def max_attempts(self) -> int:
        """Total attempts allowed once resolved (``max_retries + 1``)."""
        retries = self.max_retries if self.max_retries is not None else 0
        return retries + 1

    def problems(self) -> list[str]:
        """Describe every invariant this configuration violates."""
        found: list[str] = []
        if self.generator is None or not (
            callable(self.generator) or callable(getattr(self.generator, "generate", None))
        ):
            found.append("generator is required and must be callable")
        if not isinstance(self.base_prompt, str) or not self.base_prompt.strip():
            found.append("base_prompt must be a non-empty string")
        if not isinstance(self.target_name, str) or not self.target_name:
            found.append("target_name must be a non-empty string")
        if self.max_retries is not None and (
            not isinstance(self.max_retries, int)
            or isinstance(self.max_retries, bool)
            or self.max_retries < 0
        ):
            found.append("max_retries must be an int >= 0")
        if self.retry_delay is not None and not _finite_at_least(self.retry_delay, 0):
            found.append("retry_delay must be a finite number >= 0")
        if not _finite_at_least(self.backoff_factor, 1):
            found.append("backoff_factor must be a finite number >= 1")
        if self.preview_chars is not None and (
            not isinstance(self.preview_chars, int)
            or isinstance(self.preview_chars, bool)
            or self.preview_chars < 1
        ):
            found.append("preview_chars must be an int >= 1")
        if self.on_error is not None and not callable(self.on_error):
            found.append("on_error must be callable")
        if self.observer is not None and not is_observer(self.observer):
            found.append("observer must implement at least one lifecycle hook")
        return found

    def validate(self) -> ConstructConfig:
        """Raise `ConfigurationError` if any invariant is violated.

        `construct()` never raises and reports these problems as an
        `INVALID_CONFIG` result instead; this is for callers that prefer to
        fail fast when they build a configuration.
        """
        found = self.problems()
        if found:
            raise ConfigurationError(
                f"Invalid configuration for {self.target_name!r}: {'; '.join(found)}"
            )
        return self


def _finite_at_least(value: typing.Any, minimum: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return value >= minimum
