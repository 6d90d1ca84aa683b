"""Generator interface consumed by the retry engine."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that turns a prompt into generated text.

    `generate` may block and may raise. Returning None signals a failed call
    without an exception.
    """

    def generate(self, prompt: str) -> str | None: ...  # noqa: D102


class CallableGenerator:
    """Adapts a plain ``prompt -> text`` callable to `TextGenerator`."""

    __slots__ = ("func",)

    def __init__(self, func: Callable[[str], str | None]):  # noqa: D107
        if not callable(func):
            raise TypeError("func must be callable")
        self.func = func

    def generate(self, prompt: str) -> str | None:  # noqa: D102
        return self.func(prompt)

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", type(self.func).__name__)
        return f"CallableGenerator({name})"


def as_generator(generator: Any) -> TextGenerator:
    """Normalize a generator object or plain callable to `TextGenerator`.

    Raises:
        TypeError: If `generator` is neither.
    """
    if callable(getattr(generator, "generate", None)):
        return generator
    if callable(generator):
        return CallableGenerator(generator)
    raise TypeError(
        f"Expected a TextGenerator or callable, got {type(generator).__name__}"
    )
