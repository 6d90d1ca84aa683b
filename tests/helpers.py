"""Shared test doubles for the construct loop."""

from collections.abc import Iterable
from typing import Any


class ScriptedGenerator:
    """A generator that replays a fixed script of responses.

    Each script entry is returned in turn: strings and None are returned as
    is, exception instances are raised. Once the script runs out the last
    entry repeats. Every prompt received is recorded.
    """

    def __init__(self, responses: Iterable[Any]):
        self.responses = list(responses)
        if not self.responses:
            raise ValueError("ScriptedGenerator needs at least one response")
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response


class ErrorLog:
    """Collects `(ErrorKind, message)` pairs from the on_error callback."""

    def __init__(self) -> None:
        self.entries: list[tuple[Any, str]] = []

    def __call__(self, kind: Any, message: str) -> None:
        self.entries.append((kind, message))

    @property
    def kinds(self) -> list[Any]:
        return [kind for kind, _ in self.entries]
