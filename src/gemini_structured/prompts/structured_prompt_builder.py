from typing import Any  # noqa: D100

from .base import BasePromptBuilder
from .schema import describe_schema


class StructuredPromptBuilder(BasePromptBuilder):
    """Builds the initial prompt: the base request plus the output format."""

    def __init__(self, base_prompt: str, target_name: str, schema: Any = None):  # noqa: D107
        self.base_prompt = base_prompt
        self.target_name = target_name
        self.schema_text = describe_schema(schema)

    def create_prompt(self) -> str:
        """Creates the base prompt, with the schema segment when one is configured."""
        if self.schema_text is None:
            return self.base_prompt

        prompt_parts = [
            self.base_prompt,
            "",
            "# Output format",
            "Your response MUST be a single, valid JSON document that strictly "
            "conforms to this schema:",
            "",
            f"JSON Schema for {self.target_name}:",
            self.schema_text,
        ]
        return "\n".join(prompt_parts)

    def output_requirement(self) -> str:
        """One-line restatement of the structural requirement."""
        return (
            f"Return ONLY valid JSON that can be parsed into a {self.target_name} "
            "object. Do not include explanations, markdown formatting, or any "
            "other text outside the JSON document."
        )
