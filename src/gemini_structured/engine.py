"""Retry engine: the attempt loop behind `construct()`.

State machine::

    Init -> Attempting -> Success
                       -> Retrying -> Attempting
                       -> Exhausted

`Init` validates the configuration. Each `Attempting` pass calls the
generator once and runs the extractor over its output. A failed attempt
either moves to `Retrying` (notify, wait, rebuild a corrective prompt from
this attempt's failure) or, once `max_retries + 1` attempts are spent, to
`Exhausted`. Every path ends in a `ConstructionResult`; nothing is raised
across `construct()`.

The loop is synchronous. The generator is awaited to completion before the
next step and the inter-attempt delay blocks the calling thread. Independent
invocations share no mutable state and may run on separate threads.
"""

from collections.abc import Callable
import logging
import time

from pydantic import ValidationError

from gemini_structured.client.base import TextGenerator, as_generator
from gemini_structured.config import (
    MAX_RETRY_DELAY,
    ConstructConfig,
    StructuredSettings,
    get_settings,
)
from gemini_structured.core.types import (
    AttemptFailure,
    AttemptOutcome,
    ConstructionResult,
    EmptyResponse,
    ErrorKind,
    GeneratorFailure,
    Parsed,
)
from gemini_structured.instrumentation import ObserverProtocol, fanout
from gemini_structured.prompts import (
    BasePromptBuilder,
    CorrectivePromptBuilder,
    StructuredPromptBuilder,
)
from gemini_structured.response import (
    extract_document,
    response_validator,
    validate_document,
)
from gemini_structured.response.validation import Validator

log = logging.getLogger(__name__)


class RetryEngine:
    """Run the construct loop for one `ConstructConfig` at a time.

    The engine holds no per-invocation state, so a single instance can serve
    concurrent callers.

    Attributes:
        settings: Settings used to fill unset config fields. None resolves
            the ambient settings on every call.
    """

    def __init__(
        self,
        settings: StructuredSettings | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the engine.

        Args:
            settings: Optional fixed settings.
            sleep: Blocking wait used between attempts.
        """
        self.settings = settings
        self._sleep = sleep

    def construct(self, config: ConstructConfig) -> ConstructionResult:
        """Build a structured document from the configured generator.

        Returns:
            `ConstructionResult` carrying either the parsed document or the
            error kind, message, attempts used and last raw response.
        """
        # --- Init ---
        problems = (
            config.problems()
            if isinstance(config, ConstructConfig)
            else ["config must be a ConstructConfig"]
        )
        if problems:
            return self._invalid(problems)

        try:
            settings = self.settings or get_settings()
            config = config.resolved(settings)
            generator = as_generator(config.generator)
            initial = StructuredPromptBuilder(
                config.base_prompt,
                config.target_name,
                config.schema if config.schema is not None else config.response_model,
            )
            validator = (
                response_validator(config.response_model)
                if config.response_model is not None
                else None
            )
        except (ValidationError, TypeError) as e:
            return self._invalid([str(e)])
        except MemoryError:
            return ConstructionResult.failure(
                ErrorKind.ALLOCATION_FAILED,
                "Memory allocation failed while preparing the initial prompt",
                attempts_used=0,
            )

        return self._run(
            config, generator, initial, validator, fanout(config.observer)
        )

    # --- Attempt loop ---

    def _run(
        self,
        config: ConstructConfig,
        generator: TextGenerator,
        initial: StructuredPromptBuilder,
        validator: Validator | None,
        observer: ObserverProtocol,
    ) -> ConstructionResult:
        target = config.target_name
        max_attempts = config.max_attempts
        builder: BasePromptBuilder = initial
        last_response: str | None = None
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            try:
                observer.on_attempt_start(target, attempt, max_attempts)
                log.debug("[%s] Attempt %d/%d started", target, attempt, max_attempts)

                outcome, raw = self._attempt(generator, builder.create_prompt(), config)
                if raw is not None:
                    last_response = raw

                model = None
                if isinstance(outcome, Parsed) and validator is not None:
                    model, failure = validate_document(
                        outcome,
                        config.response_model,
                        preview_chars=config.preview_chars,
                        validator=validator,
                    )
                    if failure is not None:
                        outcome = failure

                if isinstance(outcome, Parsed):
                    observer.on_attempt_success(target, attempt, max_attempts)
                    log.debug(
                        "[%s] Attempt %d/%d succeeded via %s",
                        target,
                        attempt,
                        max_attempts,
                        outcome.method,
                    )
                    return ConstructionResult.success(outcome, attempt, model=model)

                error = outcome.describe()
                if attempt < max_attempts:
                    delay = self._delay_for(config, attempt)
                    log.warning(
                        "[%s] Attempt %d/%d failed: %s. Retrying in %.2fs",
                        target,
                        attempt,
                        max_attempts,
                        error,
                        delay,
                    )
                    observer.on_attempt_retry(target, attempt, max_attempts, error)
                    self._notify_error(config, outcome.kind, error)
                    if delay > 0:
                        self._sleep(delay)
                    builder = CorrectivePromptBuilder(
                        initial,
                        error,
                        getattr(outcome, "raw", None),
                        preview_chars=config.preview_chars,
                    )
                    continue

                return self._exhausted(config, outcome, attempt, last_response, observer)

            except MemoryError:
                # Allocation failures end the call without a retry
                message = f"Memory allocation failed during attempt {attempt}"
                log.error("[%s] %s", target, message)
                self._notify_error(config, ErrorKind.ALLOCATION_FAILED, message)
                return ConstructionResult.failure(
                    ErrorKind.ALLOCATION_FAILED, message, attempt, last_response
                )

        # Unreachable: max_attempts >= 1 and every iteration returns or retries
        raise AssertionError("attempt loop ended without a result")

    def _attempt(
        self,
        generator: TextGenerator,
        prompt: str,
        config: ConstructConfig,
    ) -> tuple[AttemptOutcome, str | None]:
        """Call the generator once and classify what came back."""
        try:
            raw = generator.generate(prompt)
        except MemoryError:
            raise
        except Exception as e:
            log.debug("Generator raised %s", type(e).__name__, exc_info=True)
            return GeneratorFailure(reason=f"{type(e).__name__}: {e}"), None

        if raw is None:
            return GeneratorFailure(reason="generator returned no output"), None
        if isinstance(raw, bytes | bytearray):
            raw = bytes(raw).decode("utf-8", errors="replace")
        if not isinstance(raw, str):
            return (
                GeneratorFailure(
                    reason=f"generator returned {type(raw).__name__}, expected str"
                ),
                None,
            )
        return extract_document(raw, preview_chars=config.preview_chars), raw

    def _exhausted(
        self,
        config: ConstructConfig,
        outcome: AttemptFailure,
        attempt: int,
        last_response: str | None,
        observer: ObserverProtocol,
    ) -> ConstructionResult:
        kind = (
            ErrorKind.EMPTY_RESPONSE
            if isinstance(outcome, EmptyResponse)
            else ErrorKind.MAX_RETRIES_EXCEEDED
        )
        error = outcome.describe()
        message = f"{kind.description} after {attempt} attempt(s). Last error: {error}"
        log.error("[%s] %s", config.target_name, message)
        observer.on_final_failure(config.target_name, attempt, error)
        self._notify_error(config, kind, message)
        return ConstructionResult.failure(kind, message, attempt, last_response)

    # --- Helpers ---

    @staticmethod
    def _delay_for(config: ConstructConfig, attempt: int) -> float:
        """Delay after `attempt` fails: flat, or growing by `backoff_factor`.

        Never exceeds `MAX_RETRY_DELAY`, however large the factor grows.
        """
        base = config.retry_delay or 0
        if base <= 0:
            return 0.0
        try:
            delay = float(base) * config.backoff_factor ** (attempt - 1)
        except OverflowError:
            return MAX_RETRY_DELAY
        return min(delay, MAX_RETRY_DELAY)

    @staticmethod
    def _notify_error(config: ConstructConfig, kind: ErrorKind, message: str) -> None:
        if config.on_error is None:
            return
        try:
            config.on_error(kind, message)
        except MemoryError:
            raise
        except Exception as e:
            log.error(
                "Error callback failed for %s: %s",
                config.target_name,
                e,
                exc_info=True,
            )

    @staticmethod
    def _invalid(problems: list[str]) -> ConstructionResult:
        message = f"{ErrorKind.INVALID_CONFIG.description}: {'; '.join(problems)}"
        log.error("%s", message)
        return ConstructionResult.failure(
            ErrorKind.INVALID_CONFIG, message, attempts_used=0
        )


def construct(
    config: ConstructConfig, *, settings: StructuredSettings | None = None
) -> ConstructionResult:
    """Construct a structured document with retries and corrective feedback.

    Convenience wrapper around `RetryEngine().construct(config)`.

    Example:
        result = construct(
            ConstructConfig(
                base_prompt="Return a user object",
                schema='{"name": "string"}',
                generator=GeminiGenerator(),
            )
        )
        if result.ok:
            print(result.document["name"])
    """
    return RetryEngine(settings).construct(config)
