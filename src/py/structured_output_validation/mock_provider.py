"""
Structured Output Validation — Mock Model Adapter

Simulates a model adapter with configurable structured output behavior:
- Valid JSON responses
- Repairable JSON (unquoted keys, trailing commas, truncation)
- Schema-violating JSON (missing fields, wrong types)
- Markdown-wrapped JSON and prose around JSON
- Non-JSON text responses
- Scripted response sequences, latency and error injection

No API keys needed. Used for testing.
"""

from __future__ import annotations

import asyncio
import json
import math
import random
from dataclasses import dataclass, field
from typing import Literal

# What kind of output the mock should produce.
OutputMode = Literal[
    "valid",             # Well-formed JSON matching the expected schema
    "truncated",         # JSON cut off mid-object (simulates max_tokens)
    "missing_field",     # Valid JSON but missing a required field
    "wrong_type",        # Valid JSON but a field has the wrong type
    "extra_text",        # Valid JSON surrounded by prose text
    "markdown_wrapped",  # Valid JSON inside ```json code fence
    "invalid_json",      # Syntactically broken JSON (trailing comma)
    "unquoted_keys",     # JS-style object literal with bare keys
    "non_json",          # Plain text, no JSON at all
]

DEFAULT_VALID_OUTPUT: dict[str, object] = {"name": "Alice", "age": 30, "active": True}


@dataclass
class MockModelConfig:
    """Configuration for the mock model adapter."""

    # Simulated response latency in milliseconds.
    latency_ms: float = 0

    # Probability of raising an error (network/API failure).
    failure_rate: float = 0.0

    # Error message when failure triggers.
    error_message: str = "Model unavailable"

    # Output mode controlling what the mock returns.
    # Can be a single mode or a list — if list, cycles through them per call.
    output_mode: OutputMode | list[OutputMode] = "valid"

    # Scripted raw responses. When set, these are returned in order (the last
    # one repeats) and output_mode is ignored.
    responses: list[str] | None = None

    # The valid JSON object to use as the base for responses.
    valid_output: dict[str, object] = field(default_factory=lambda: dict(DEFAULT_VALID_OUTPUT))


class MockModel:
    """Mock model adapter. Pass `model.call` wherever a ModelAdapter is expected."""

    def __init__(self, config: MockModelConfig | None = None) -> None:
        self._config = config or MockModelConfig()
        modes = self._config.output_mode
        self._output_modes: list[OutputMode] = list(modes) if isinstance(modes, list) else [modes]
        self._prompts: list[str] = []

    async def call(self, prompt: str) -> str:
        self._prompts.append(prompt)

        if self._config.latency_ms > 0:
            await asyncio.sleep(self._config.latency_ms / 1000)

        if random.random() < self._config.failure_rate:
            raise RuntimeError(self._config.error_message)

        if self._config.responses:
            index = min(self.call_count, len(self._config.responses)) - 1
            return self._config.responses[index]

        mode = self._output_modes[(self.call_count - 1) % len(self._output_modes)]
        return self._generate_output(mode)

    def _generate_output(self, mode: OutputMode) -> str:
        valid = self._config.valid_output
        valid_json = json.dumps(valid)

        if mode == "valid":
            return valid_json

        if mode == "truncated":
            cut_point = math.floor(len(valid_json) * 0.6)
            return valid_json[:cut_point]

        if mode == "missing_field":
            keys = list(valid.keys())
            if not keys:
                return "{}"
            partial = {k: v for k, v in valid.items() if k != keys[0]}
            return json.dumps(partial)

        if mode == "wrong_type":
            mutated = dict(valid)
            for key, value in mutated.items():
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    mutated[key] = f"not a number: {value}"
                    break
                if isinstance(value, str):
                    mutated[key] = 999
                    break
            return json.dumps(mutated)

        if mode == "extra_text":
            return f"Here is the data you requested:\n{valid_json}\nI hope this helps!"

        if mode == "markdown_wrapped":
            return f"```json\n{valid_json}\n```"

        if mode == "invalid_json":
            inner = valid_json[1:-1]
            return f"{{{inner},}}"

        if mode == "unquoted_keys":
            pairs = ", ".join(f"{k}: {json.dumps(v)}" for k, v in valid.items())
            return f"{{ {pairs}, }}"

        if mode == "non_json":
            return "I apologize, but I cannot provide the requested information in the specified format."

        return valid_json

    @property
    def call_count(self) -> int:
        """Total calls made to this adapter instance."""
        return len(self._prompts)

    @property
    def prompts(self) -> list[str]:
        """Every prompt received, in call order."""
        return list(self._prompts)

    def reset(self) -> None:
        """Forget recorded prompts."""
        self._prompts.clear()
