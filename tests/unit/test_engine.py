"""
Unit tests for the retry engine behind construct()
"""

import logging

from pydantic import BaseModel
import pytest

from gemini_structured import (
    ConstructConfig,
    ConstructionError,
    ErrorKind,
    RetryEngine,
    StructuredSettings,
    construct,
    settings_scope,
)
from gemini_structured.config import MAX_RETRY_DELAY
from gemini_structured.instrumentation import AttemptCallbacks
from tests.helpers import ErrorLog, ScriptedGenerator


class User(BaseModel):
    name: str
    age: int


def make_config(generator, **overrides) -> ConstructConfig:
    params = {
        "base_prompt": "Return a user object",
        "generator": generator,
        "target_name": "User",
        "max_retries": 2,
        "retry_delay": 0.0,
    }
    params.update(overrides)
    return ConstructConfig(**params)


@pytest.mark.unit
class TestSuccessPaths:
    """Documents produced on the first or a later attempt"""

    def test_fenced_response_succeeds_first_attempt(self, engine, observer):
        generator = ScriptedGenerator(['Sure! ```json\n{"name":"Ann"}\n```'])
        config = make_config(
            generator, schema='{"name":"string"}', observer=observer
        )

        result = engine.construct(config)

        assert result.ok
        assert result.document == {"name": "Ann"}
        assert result.attempts_used == 1
        assert result.error_kind is None
        assert result.extraction_method == "fenced_block"
        assert result.last_response == 'Sure! ```json\n{"name":"Ann"}\n```'
        assert observer.kinds() == ["start", "success"]

    def test_first_prompt_embeds_schema(self, engine):
        generator = ScriptedGenerator(['{"name": "Ann"}'])
        engine.construct(make_config(generator, schema='{"name":"string"}'))

        assert generator.prompts[0].startswith("Return a user object")
        assert '{"name":"string"}' in generator.prompts[0]

    def test_recovers_after_parse_failure(self, engine):
        generator = ScriptedGenerator(["not json", '{"ok":true}'])
        retries = []
        callbacks = AttemptCallbacks(on_retry=lambda *args: retries.append(args))

        result = engine.construct(make_config(generator, observer=callbacks))

        assert result.ok
        assert result.document == {"ok": True}
        assert result.attempts_used == 2
        assert len(retries) == 1
        target, attempt, max_attempts, error = retries[0]
        assert (target, attempt, max_attempts) == ("User", 1, 3)
        assert "Failed to extract valid JSON" in error

    def test_corrective_prompt_describes_last_failure(self, engine):
        generator = ScriptedGenerator(["not json", '{"ok":true}'])
        engine.construct(make_config(generator))

        corrective = generator.prompts[1]
        assert corrective.startswith(generator.prompts[0])
        assert "could not be parsed" in corrective
        assert "Failed to extract valid JSON" in corrective
        assert "<previous_response>\nnot json\n</previous_response>" in corrective

    def test_corrective_prompt_not_accumulated(self, engine):
        generator = ScriptedGenerator(["first bad", "second bad", '{"ok": 1}'])
        engine.construct(make_config(generator))

        third = generator.prompts[2]
        assert "second bad" in third
        assert "first bad" not in third
        assert third.count("<error>") == 1


@pytest.mark.unit
class TestFailurePaths:
    """Exhaustion, empty responses and generator failures"""

    @pytest.mark.parametrize("max_retries", [0, 1, 2, 4])
    def test_always_unparseable_exhausts_budget(self, engine, max_retries):
        generator = ScriptedGenerator(["still not json"])
        result = engine.construct(make_config(generator, max_retries=max_retries))

        assert not result.ok
        assert result.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert result.attempts_used == max_retries + 1
        assert generator.calls == max_retries + 1
        assert result.last_response == "still not json"
        assert "Maximum retries exceeded" in result.error_message
        assert "'still not json'" in result.error_message

    def test_zero_retries_makes_one_attempt_on_success(self, engine):
        generator = ScriptedGenerator(['{"a": 1}', '{"a": 2}'])
        result = engine.construct(make_config(generator, max_retries=0))
        assert result.attempts_used == 1
        assert generator.calls == 1

    def test_empty_response_maps_to_empty_response_error(self, engine):
        generator = ScriptedGenerator(["   "])
        result = engine.construct(make_config(generator, max_retries=1))

        assert result.error_kind is ErrorKind.EMPTY_RESPONSE
        assert result.attempts_used == 2
        assert result.last_response == "   "

    def test_empty_then_valid(self, engine):
        generator = ScriptedGenerator(["", '{"name": "Bo"}'])
        result = engine.construct(make_config(generator))

        assert result.document == {"name": "Bo"}
        assert result.attempts_used == 2
        assert "<previous_response>" not in generator.prompts[1]
        assert "empty response" in generator.prompts[1]

    def test_none_from_generator_is_generator_failure(self, engine):
        errors = ErrorLog()
        generator = ScriptedGenerator([None])
        result = engine.construct(make_config(generator, max_retries=1, on_error=errors))

        assert result.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert result.last_response is None
        assert errors.kinds == [
            ErrorKind.GENERATOR_FAILED,
            ErrorKind.MAX_RETRIES_EXCEEDED,
        ]
        assert "generator returned no output" in result.error_message

    def test_raising_generator_is_captured(self, engine):
        generator = ScriptedGenerator([ConnectionError("upstream down"), '{"a": 1}'])
        result = engine.construct(make_config(generator))

        assert result.ok
        assert result.attempts_used == 2
        assert "ConnectionError: upstream down" in generator.prompts[1]

    def test_non_string_output_is_generator_failure(self, engine):
        result = engine.construct(make_config(lambda prompt: 42, max_retries=0))
        assert result.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert "generator returned int, expected str" in result.error_message

    def test_bytes_output_is_decoded(self, engine):
        result = engine.construct(make_config(lambda prompt: b'{"a": 1}'))
        assert result.document == {"a": 1}

    def test_last_response_survives_later_generator_failure(self, engine):
        generator = ScriptedGenerator(["garbage", None])
        result = engine.construct(make_config(generator, max_retries=1))
        assert result.last_response == "garbage"

    def test_unwrap_raises_for_failures(self, engine):
        result = engine.construct(make_config(ScriptedGenerator(["nope"]), max_retries=0))
        with pytest.raises(ConstructionError, match="MAX_RETRIES_EXCEEDED"):
            result.unwrap()

    def test_final_failure_is_logged(self, engine, caplog):
        with caplog.at_level(logging.ERROR, logger="gemini_structured.engine"):
            engine.construct(make_config(ScriptedGenerator(["nope"]), max_retries=0))
        assert "Maximum retries exceeded after 1 attempt(s)" in caplog.text


@pytest.mark.unit
class TestAllocationFailure:
    """Memory exhaustion ends the call without retrying"""

    def test_memory_error_is_not_retried(self, engine, observer):
        errors = ErrorLog()
        generator = ScriptedGenerator([MemoryError()])
        result = engine.construct(
            make_config(generator, observer=observer, on_error=errors)
        )

        assert result.error_kind is ErrorKind.ALLOCATION_FAILED
        assert result.attempts_used == 1
        assert generator.calls == 1
        assert observer.kinds() == ["start"]
        assert errors.kinds == [ErrorKind.ALLOCATION_FAILED]

    def test_memory_error_on_later_attempt_keeps_last_response(self, engine):
        generator = ScriptedGenerator(["bad", MemoryError()])
        result = engine.construct(make_config(generator))

        assert result.error_kind is ErrorKind.ALLOCATION_FAILED
        assert result.attempts_used == 2
        assert result.last_response == "bad"


@pytest.mark.unit
class TestInvalidConfiguration:
    """Invalid configurations never reach the generator"""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"generator": None},
            {"base_prompt": ""},
            {"base_prompt": "   "},
            {"max_retries": -1},
            {"retry_delay": -0.5},
            {"backoff_factor": 0.5},
            {"backoff_factor": float("inf")},
            {"retry_delay": float("nan")},
            {"retry_delay": float("inf")},
            {"preview_chars": 0},
            {"preview_chars": True},
            {"on_error": "not callable"},
            {"observer": object()},
            {"target_name": ""},
        ],
    )
    def test_rejected_before_any_attempt(self, engine, observer, overrides):
        errors = ErrorLog()
        params = {"observer": observer, "on_error": errors, **overrides}
        result = engine.construct(make_config(ScriptedGenerator(["{}"]), **params))

        assert result.error_kind is ErrorKind.INVALID_CONFIG
        assert result.attempts_used == 0
        assert result.error_message.startswith("Invalid configuration")
        assert observer.kinds() == []
        assert errors.entries == []

    def test_non_config_is_rejected(self, engine):
        result = engine.construct({"base_prompt": "x"})
        assert result.error_kind is ErrorKind.INVALID_CONFIG

    def test_unsupported_schema_is_invalid_config(self, engine):
        generator = ScriptedGenerator(["{}"])
        result = engine.construct(make_config(generator, schema=object()))

        assert result.error_kind is ErrorKind.INVALID_CONFIG
        assert generator.calls == 0

    def test_unusable_response_model_is_invalid_config(self, engine, observer):
        generator = ScriptedGenerator(['{"a": 1}'])
        result = engine.construct(
            make_config(
                generator,
                schema='{"a":"int"}',
                response_model=5,
                observer=observer,
            )
        )

        assert result.error_kind is ErrorKind.INVALID_CONFIG
        assert result.attempts_used == 0
        assert "Unsupported response_model" in result.error_message
        assert generator.calls == 0
        assert observer.kinds() == []


@pytest.mark.unit
class TestDelays:
    """Inter-attempt waits"""

    def test_flat_delay_between_attempts(self, sleeps):
        engine = RetryEngine(StructuredSettings(), sleep=sleeps.append)
        engine.construct(make_config(ScriptedGenerator(["x"]), retry_delay=0.25))
        assert sleeps == [0.25, 0.25]

    def test_exponential_backoff(self, sleeps):
        engine = RetryEngine(StructuredSettings(), sleep=sleeps.append)
        config = make_config(
            ScriptedGenerator(["x"]), retry_delay=0.5, backoff_factor=2.0, max_retries=3
        )
        engine.construct(config)
        assert sleeps == [0.5, 1.0, 2.0]

    def test_no_wait_after_final_attempt_or_success(self, sleeps):
        engine = RetryEngine(StructuredSettings(), sleep=sleeps.append)
        engine.construct(make_config(ScriptedGenerator(['{"a": 1}']), retry_delay=1.0))
        assert sleeps == []

    def test_zero_delay_skips_sleep(self, engine, sleeps):
        engine.construct(make_config(ScriptedGenerator(["x"])))
        assert sleeps == []

    @pytest.mark.parametrize(
        ("retry_delay", "backoff_factor", "max_retries"),
        [(0.0, 1e200, 3), (0.0, 10, 310), (1.0, 1e200, 3), (2.0, 10, 310)],
    )
    def test_huge_backoff_never_escapes(
        self, sleeps, retry_delay, backoff_factor, max_retries
    ):
        engine = RetryEngine(StructuredSettings(), sleep=sleeps.append)
        config = make_config(
            ScriptedGenerator(["x"]),
            retry_delay=retry_delay,
            backoff_factor=backoff_factor,
            max_retries=max_retries,
        )

        result = engine.construct(config)

        assert result.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert result.attempts_used == max_retries + 1
        assert all(delay <= MAX_RETRY_DELAY for delay in sleeps)
        if retry_delay == 0.0:
            assert sleeps == []
        else:
            assert sleeps[-1] == MAX_RETRY_DELAY

    def test_long_flat_delay_is_capped(self, sleeps):
        engine = RetryEngine(StructuredSettings(), sleep=sleeps.append)
        engine.construct(
            make_config(ScriptedGenerator(["x"]), retry_delay=10**400, max_retries=1)
        )
        assert sleeps == [MAX_RETRY_DELAY]


@pytest.mark.unit
class TestSettingsDefaults:
    """Unset config fields fall back to settings"""

    def test_defaults_from_settings(self, sleeps):
        engine = RetryEngine(
            StructuredSettings(max_retries=1, retry_delay=0.1), sleep=sleeps.append
        )
        generator = ScriptedGenerator(["x"])
        config = ConstructConfig(base_prompt="p", generator=generator)

        result = engine.construct(config)

        assert result.attempts_used == 2
        assert sleeps == [0.1]

    def test_environment_defaults(self, monkeypatch):
        monkeypatch.setenv("GEMINI_MAX_RETRIES", "0")
        generator = ScriptedGenerator(["x"])
        result = construct(ConstructConfig(base_prompt="p", generator=generator))
        assert result.attempts_used == 1

    def test_settings_scope_overrides(self):
        generator = ScriptedGenerator(["x"])
        with settings_scope(max_retries=4, retry_delay=0):
            result = construct(ConstructConfig(base_prompt="p", generator=generator))
        assert result.attempts_used == 5

    def test_invalid_environment_is_invalid_config(self, monkeypatch):
        monkeypatch.setenv("GEMINI_MAX_RETRIES", "-3")
        result = construct(
            ConstructConfig(base_prompt="p", generator=ScriptedGenerator(["{}"]))
        )
        assert result.error_kind is ErrorKind.INVALID_CONFIG


@pytest.mark.unit
class TestResponseModel:
    """Pydantic validation of parsed documents"""

    def test_valid_document_is_validated(self, engine):
        generator = ScriptedGenerator(['{"name": "Ann", "age": 31}'])
        result = engine.construct(make_config(generator, response_model=User))

        assert result.ok
        assert result.model == User(name="Ann", age=31)
        assert result.document == {"name": "Ann", "age": 31}

    def test_schema_defaults_to_model_schema(self, engine):
        generator = ScriptedGenerator(['{"name": "Ann", "age": 31}'])
        engine.construct(make_config(generator, response_model=User))
        assert '"age"' in generator.prompts[0]

    def test_validation_failure_is_retried(self, engine, observer):
        generator = ScriptedGenerator(
            ['{"name": "Ann"}', '{"name": "Ann", "age": 31}']
        )
        result = engine.construct(
            make_config(generator, response_model=User, observer=observer)
        )

        assert result.attempts_used == 2
        assert observer.kinds() == ["start", "retry", "start", "success"]
        assert "Schema validation failed for User" in generator.prompts[1]

    def test_validation_never_passing_exhausts(self, engine):
        generator = ScriptedGenerator(['{"name": 1}'])
        result = engine.construct(
            make_config(generator, response_model=User, max_retries=1)
        )
        assert result.error_kind is ErrorKind.MAX_RETRIES_EXCEEDED
        assert result.model is None

    def test_generic_response_model(self, engine):
        generator = ScriptedGenerator(['[{"name": "A", "age": 1}]'])
        result = engine.construct(make_config(generator, response_model=list[User]))
        assert result.model == [User(name="A", age=1)]
