"""
Structured Output Validation

Prompt -> parse -> repair -> validate -> retry loop that coerces model
output into schema-conformant data.
Package entry point — re-exports from the component modules.
"""

from .generator import StructuredGenerator, error_feedback
from .prompts import (
    DEFAULT_PROMPT_PREFIX,
    DEFAULT_REPAIR_PROMPT_PREFIX,
    default_repair_prompt_fn,
    build_prompt,
    build_corrective_suffix,
)
from .repair import (
    strip_markdown_fences,
    extract_json,
    repair_json,
    normalize_response,
)
from .schemas import (
    validate_candidate,
    PydanticSchema,
    JsonObjectSchema,
    FieldDef,
)
from .types import (
    ModelAdapter,
    RepairFn,
    RepairPromptFn,
    OutputSchema,
    Violation,
    StructuredOutputError,
    MalformedOutputError,
    JsonRepairError,
    SchemaViolationError,
    GenerationRequest,
    ParsedCandidate,
    GenerationMetadata,
    GenerationResult,
    RepairPromptConfig,
    GeneratorConfig,
)
from .mock_provider import MockModel, MockModelConfig

__all__ = [
    "StructuredGenerator",
    "error_feedback",
    "DEFAULT_PROMPT_PREFIX",
    "DEFAULT_REPAIR_PROMPT_PREFIX",
    "default_repair_prompt_fn",
    "build_prompt",
    "build_corrective_suffix",
    "strip_markdown_fences",
    "extract_json",
    "repair_json",
    "normalize_response",
    "validate_candidate",
    "PydanticSchema",
    "JsonObjectSchema",
    "FieldDef",
    "ModelAdapter",
    "RepairFn",
    "RepairPromptFn",
    "OutputSchema",
    "Violation",
    "StructuredOutputError",
    "MalformedOutputError",
    "JsonRepairError",
    "SchemaViolationError",
    "GenerationRequest",
    "ParsedCandidate",
    "GenerationMetadata",
    "GenerationResult",
    "RepairPromptConfig",
    "GeneratorConfig",
    "MockModel",
    "MockModelConfig",
]
