"""
Structured Output Validation — Type Definitions

Core types for the prompt -> parse -> repair -> validate -> retry loop.
Framework-agnostic: schemas and model adapters plug in through the
protocols and callables below.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Protocol, Union, runtime_checkable

# A model adapter — any async function from prompt text to response text.
ModelAdapter = Callable[[str], Awaitable[str]]

# Syntactic JSON repair: malformed JSON text in, well-formed JSON text out.
RepairFn = Callable[[str], str]

# Combines the repair prompt prefix with the error text into a corrective suffix.
RepairPromptFn = Callable[[str, str], str]

# One step in a violation path — object key or array index.
PathItem = Union[str, int]


@runtime_checkable
class OutputSchema(Protocol):
    """
    Schema the generator renders into prompts and validates output against.

    Pydantic models, hand-written field schemas or any other validation
    engine work as long as they implement this protocol.
    """

    def to_json_schema(self) -> dict[str, Any]:
        """JSON Schema document for embedding in the prompt."""
        ...

    def validate(self, value: Any) -> Any:
        """Validate and coerce a parsed value. Raises SchemaViolationError."""
        ...


# --- Errors ---


class StructuredOutputError(Exception):
    """Base class for errors raised by the structured output loop."""


class MalformedOutputError(StructuredOutputError):
    """Raw model output is not JSON and could not be repaired into JSON."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class JsonRepairError(StructuredOutputError):
    """The repair step found nothing it could turn into JSON."""


@dataclass(frozen=True)
class Violation:
    """A single schema violation at a field path."""

    path: tuple[PathItem, ...]
    reason: str

    def __str__(self) -> str:
        if not self.path:
            return self.reason
        dotted = ".".join(str(p) for p in self.path)
        return f"{dotted}: {self.reason}"


class SchemaViolationError(StructuredOutputError):
    """Parsed output does not satisfy the schema. Carries every violation."""

    def __init__(self, violations: list[Violation]) -> None:
        self.violations = list(violations)
        if len(self.violations) == 1:
            summary = str(self.violations[0])
        else:
            summary = f"{len(self.violations)} validation errors: " + "; ".join(
                str(v) for v in self.violations
            )
        super().__init__(summary)

    def tree(self) -> dict[str, Any]:
        """
        Nest violations by path.

        Each node has an "errors" list; object keys go under "properties"
        and array indexes under "items".
        """
        root: dict[str, Any] = {"errors": []}
        for violation in self.violations:
            node = root
            for step in violation.path:
                bucket = "items" if isinstance(step, int) else "properties"
                children = node.setdefault(bucket, {})
                node = children.setdefault(str(step), {"errors": []})
            node["errors"].append(violation.reason)
        return root

    def to_json(self) -> str:
        """Serialized violation tree, as fed back to the model on retry."""
        return json.dumps(self.tree())


# --- Requests and results ---


@dataclass(frozen=True)
class GenerationRequest:
    """Everything one call to the generator needs."""

    adapter: ModelAdapter
    schema: OutputSchema
    instruction: str

    # Overrides the default formatting directives placed before the schema.
    prefix: str | None = None

    # Indent used when rendering the JSON Schema into the prompt.
    json_schema_indent: int = 2

    # Per-call retry bound. None falls back to the generator's default.
    max_retries: int | None = None

    # Failed attempts already consumed.
    retry_count: int = 0

    def next_attempt(self, corrective_suffix: str) -> GenerationRequest:
        """Request for the following attempt, with the corrective text appended."""
        return replace(
            self,
            instruction=f"{self.instruction}\n\n{corrective_suffix}",
            retry_count=self.retry_count + 1,
        )


@dataclass(frozen=True)
class ParsedCandidate:
    """A parsed, not yet validated, model response."""

    value: Any
    was_repaired: bool


@dataclass(frozen=True)
class GenerationMetadata:
    """How much correction the accepted result needed."""

    # Failed attempts before the accepted one (0 = first attempt succeeded).
    retry_count: int

    # Whether syntactic repair was needed for the accepted attempt.
    was_repaired: bool

    # Wall-clock time for all attempts in milliseconds.
    total_latency_ms: float = 0.0


@dataclass(frozen=True)
class GenerationResult:
    """Validated data plus metadata. The only thing a successful call returns."""

    data: Any
    metadata: GenerationMetadata

    # The raw model output of the accepted attempt.
    raw: str = ""


# --- Configuration ---


@dataclass(frozen=True)
class RepairPromptConfig:
    """How corrective suffixes are built. None fields use the defaults."""

    prefix: str | None = None
    fn: RepairPromptFn | None = None


@dataclass(frozen=True)
class GeneratorConfig:
    """Configuration for the StructuredGenerator."""

    # Retries after the first attempt when a call does not pass max_retries.
    # Default: 3 (so 4 total attempts).
    default_max_retries: int = 3

    # Corrective prompt template.
    repair_prompt: RepairPromptConfig = field(default_factory=RepairPromptConfig)

    # Syntactic repair applied when the raw response is not valid JSON.
    # None uses the built-in repair_json.
    repair: RepairFn | None = None

    # Emit diagnostic log records at each checkpoint of the loop.
    debug: bool = False

    # Level the diagnostic records are emitted at.
    log_level: int = logging.DEBUG

    # Callback fired before each retry with the error text and the attempt number.
    on_retry: Callable[[str, int], None] | None = None

    # Callback fired when the retry bound is hit, with the final error and attempt count.
    on_exhausted: Callable[[Exception, int], None] | None = None

    def __post_init__(self) -> None:
        if self.default_max_retries < 0:
            raise ValueError("default_max_retries must be >= 0")
