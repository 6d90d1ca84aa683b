"""Attempt lifecycle instrumentation.

Observers receive four synchronous notifications from the retry engine:
attempt start, attempt success, attempt retry and final failure. They are
pure side channels. An observer that raises is logged and skipped, and nothing
an observer does can abort or reshape the retry loop.
"""

from collections import Counter, deque
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any, Literal, Protocol, Self, runtime_checkable

log = logging.getLogger(__name__)

type EventKind = Literal["start", "success", "retry", "final_failure"]


@runtime_checkable
class AttemptObserver(Protocol):
    """Duck-typed protocol for attempt observers.

    Implementations may omit any hook; missing hooks are skipped. The
    runtime check only matches observers that implement all four.
    """

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None: ...  # noqa: D102
    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None: ...  # noqa: D102
    def on_attempt_retry(  # noqa: D102
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None: ...
    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None: ...  # noqa: D102


_HOOKS = (
    "on_attempt_start",
    "on_attempt_success",
    "on_attempt_retry",
    "on_final_failure",
)


@dataclass(frozen=True, slots=True)
class AttemptCallbacks:
    """Four optional function slots, adapted to the `AttemptObserver` protocol."""

    on_start: Callable[[str, int, int], Any] | None = None
    on_success: Callable[[str, int, int], Any] | None = None
    on_retry: Callable[[str, int, int, str], Any] | None = None
    on_failure: Callable[[str, int, str], Any] | None = None

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None:
        if self.on_start is not None:
            self.on_start(target_name, attempt, max_attempts)

    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None:
        if self.on_success is not None:
            self.on_success(target_name, attempt, max_attempts)

    def on_attempt_retry(
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None:
        if self.on_retry is not None:
            self.on_retry(target_name, attempt, max_attempts, error)

    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None:
        if self.on_failure is not None:
            self.on_failure(target_name, total_attempts, error)


@dataclass(frozen=True, slots=True)
class _NoOpObserver:
    """An immutable and stateless observer used when nothing is registered."""

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None:
        pass

    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None:
        pass

    def on_attempt_retry(
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None:
        pass

    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None:
        pass


class _FanoutObserver:
    """Forwards every hook to each observer, isolating their failures."""

    __slots__ = ("observers",)

    def __init__(self, *observers: Any):
        self.observers = observers

    def _dispatch(self, hook: str, *args: Any) -> None:
        for observer in self.observers:
            method = getattr(observer, hook, None)
            if method is None:
                continue
            try:
                method(*args)
            except MemoryError:
                raise
            except Exception as e:
                log.error(
                    "Attempt observer '%s' failed in %s: %s",
                    type(observer).__name__,
                    hook,
                    e,
                    exc_info=True,
                )

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self._dispatch("on_attempt_start", target_name, attempt, max_attempts)

    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self._dispatch("on_attempt_success", target_name, attempt, max_attempts)

    def on_attempt_retry(
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None:
        self._dispatch("on_attempt_retry", target_name, attempt, max_attempts, error)

    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None:
        self._dispatch("on_final_failure", target_name, total_attempts, error)


_NO_OP_SINGLETON = _NoOpObserver()

type ObserverProtocol = _FanoutObserver | _NoOpObserver


def fanout(*observers: Any) -> ObserverProtocol:
    """Combine observers into one, skipping `None` entries.

    Returns the shared no-op observer when nothing is left to notify.
    """
    active = tuple(o for o in observers if o is not None)
    if active:
        return _FanoutObserver(*active)
    return _NO_OP_SINGLETON


def is_observer(candidate: Any) -> bool:
    """True if `candidate` exposes at least one callable lifecycle hook."""
    return any(callable(getattr(candidate, hook, None)) for hook in _HOOKS)


class LoggingObserver:
    """Writes each lifecycle event to a logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or log

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self.logger.debug("[%s] attempt %d/%d started", target_name, attempt, max_attempts)

    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self.logger.info("[%s] attempt %d/%d succeeded", target_name, attempt, max_attempts)

    def on_attempt_retry(
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None:
        self.logger.warning(
            "[%s] attempt %d/%d failed, retrying: %s",
            target_name,
            attempt,
            max_attempts,
            error,
        )

    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None:
        self.logger.error(
            "[%s] giving up after %d attempt(s): %s", target_name, total_attempts, error
        )


@dataclass(frozen=True, slots=True)
class AttemptEvent:
    """One recorded lifecycle notification."""

    kind: EventKind
    target_name: str
    attempt: int
    max_attempts: int | None = None
    error: str | None = None


class InMemoryObserver:
    """Built-in observer for development use.

    This observer collects events in memory. To view the collected data,
    call the `get_report()` method and print the result.
    """

    def __init__(self, max_events: int = 1000):
        self.max_events = max_events
        self.events: deque[AttemptEvent] = deque(maxlen=max_events)
        self.counts: Counter[tuple[str, EventKind]] = Counter()

    def _record(self, event: AttemptEvent) -> None:
        self.events.append(event)
        self.counts[(event.target_name, event.kind)] += 1

    def on_attempt_start(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self._record(AttemptEvent("start", target_name, attempt, max_attempts))

    def on_attempt_success(self, target_name: str, attempt: int, max_attempts: int) -> None:
        self._record(AttemptEvent("success", target_name, attempt, max_attempts))

    def on_attempt_retry(
        self, target_name: str, attempt: int, max_attempts: int, error: str
    ) -> None:
        self._record(AttemptEvent("retry", target_name, attempt, max_attempts, error))

    def on_final_failure(self, target_name: str, total_attempts: int, error: str) -> None:
        self._record(
            AttemptEvent("final_failure", target_name, total_attempts, error=error)
        )

    def count(self, kind: EventKind, target_name: str | None = None) -> int:
        """Number of `kind` events, optionally for a single target."""
        return sum(
            n
            for (target, event_kind), n in self.counts.items()
            if event_kind == kind and (target_name is None or target == target_name)
        )

    def kinds(self) -> list[EventKind]:
        """Event kinds in the order they were recorded."""
        return [event.kind for event in self.events]

    def reset(self) -> Self:
        self.events.clear()
        self.counts.clear()
        return self

    def print_report(self) -> None:
        """Prints the report to stdout if any data was collected."""
        if self.counts:
            print(self.get_report())  # noqa: T201

    def get_report(self) -> str:
        """Generate a per-target reliability report."""
        lines = ["=== Attempt Report ===\n"]
        targets = sorted({target for target, _ in self.counts})
        for target in targets:
            attempts = self.counts[(target, "start")]
            successes = self.counts[(target, "success")]
            retries = self.counts[(target, "retry")]
            failures = self.counts[(target, "final_failure")]
            rate = successes / attempts if attempts else 0.0
            lines.append(
                f"{target:<30} | "
                f"Attempts: {attempts:<4} | "
                f"Successes: {successes:<4} | "
                f"Retries: {retries:<4} | "
                f"Failures: {failures:<4} | "
                f"Attempt success rate: {rate:.0%}",
            )
        return "\n".join(lines)
