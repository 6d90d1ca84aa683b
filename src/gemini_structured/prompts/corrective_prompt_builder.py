"""Corrective prompts that feed the last failure back to the generator."""

from gemini_structured.utils import truncate_preview

from .base import BasePromptBuilder
from .structured_prompt_builder import StructuredPromptBuilder


class CorrectivePromptBuilder(BasePromptBuilder):
    """Builds a retry prompt from a single failed attempt.

    A new builder is made for every retry, so the prompt only ever describes
    the most recent failure. Output is deterministic for the same inputs.
    """

    def __init__(  # noqa: D107
        self,
        initial: StructuredPromptBuilder,
        reason: str,
        previous_response: str | None = None,
        *,
        preview_chars: int = 200,
    ):
        self.initial = initial
        self.reason = reason
        self.previous_response = previous_response
        self.preview_chars = preview_chars

    def create_prompt(self) -> str:
        """Creates the initial prompt followed by the correction segment."""
        prompt_parts = [
            self.initial.create_prompt(),
            "",
            "<error>",
            "Your previous response could not be parsed:",
            self.reason,
            "</error>",
        ]

        if self.previous_response and self.previous_response.strip():
            prompt_parts.extend(
                [
                    "",
                    "<previous_response>",
                    truncate_preview(self.previous_response, self.preview_chars),
                    "</previous_response>",
                ]
            )

        prompt_parts.extend(
            [
                "",
                "<instructions>",
                "Fix the specific error described above. "
                + self.initial.output_requirement(),
                "</instructions>",
            ]
        )
        return "\n".join(prompt_parts)
