"""Prompt engineering module for initial and corrective prompts."""

from .base import BasePromptBuilder
from .corrective_prompt_builder import CorrectivePromptBuilder
from .schema import build_simple_schema, describe_schema
from .structured_prompt_builder import StructuredPromptBuilder

__all__ = [
    "BasePromptBuilder",
    "CorrectivePromptBuilder",
    "StructuredPromptBuilder",
    "build_simple_schema",
    "describe_schema",
]
