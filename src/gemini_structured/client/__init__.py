"""Generators: the text-producing side of the construction loop."""

from .base import CallableGenerator, TextGenerator, as_generator
from .gemini_generator import GeminiGenerator

__all__ = [
    "CallableGenerator",
    "GeminiGenerator",
    "TextGenerator",
    "as_generator",
]
