"""
Structured Output Validation — Prompt Builder

Pure functions that assemble the prompt sent to the model and the
corrective text appended to the instruction on retry.
"""

from __future__ import annotations

import json

from .types import OutputSchema, RepairPromptConfig

__all__ = [
    "DEFAULT_PROMPT_PREFIX",
    "DEFAULT_REPAIR_PROMPT_PREFIX",
    "default_repair_prompt_fn",
    "build_prompt",
    "build_corrective_suffix",
]


DEFAULT_PROMPT_PREFIX = "\n".join([
    "- You MUST respond only with valid JSON.",
    "- Do not include markdown.",
    "- Do not include explanations.",
    "- Do not include text outside the JSON.",
    "- Respond in the language requested by the instruction or the language in which it was written.",
    "",
    "The JSON must follow this schema:",
])

DEFAULT_REPAIR_PROMPT_PREFIX = "\n".join([
    "The returned JSON is invalid or does not follow the schema.",
    "Correct and respond ONLY with valid JSON.",
])


def default_repair_prompt_fn(prefix: str, error: str) -> str:
    """Corrective suffix: the repair prefix followed by the error details."""
    return f"{prefix}\nError details: {error}"


def build_prompt(
    instruction: str,
    schema: OutputSchema,
    prefix: str | None = None,
    indent: int = 2,
) -> str:
    """
    Build the prompt for one attempt.

    Layout: formatting directives, the schema as an indented JSON document,
    then an "Instruction:" label and the instruction text. Deterministic for
    identical inputs.
    """
    directives = DEFAULT_PROMPT_PREFIX if prefix is None else prefix
    schema_text = json.dumps(schema.to_json_schema(), indent=indent)
    return f"{directives}\n{schema_text}\nInstruction:\n{instruction}".strip()


def build_corrective_suffix(error_message: str, repair_prompt: RepairPromptConfig | None = None) -> str:
    """Corrective text for the next attempt, built from the last failure."""
    cfg = repair_prompt or RepairPromptConfig()
    fn = cfg.fn or default_repair_prompt_fn
    prefix = DEFAULT_REPAIR_PROMPT_PREFIX if cfg.prefix is None else cfg.prefix
    return fn(prefix, error_message)
