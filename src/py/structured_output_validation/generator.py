"""
Structured Output Validation — Core Implementation

Prompt -> model -> parse/repair -> validate -> retry loop for model output
that has to match a schema.

The generator wraps any async model adapter. On failure it appends
corrective text carrying the error to the instruction and tries again,
up to a retry bound. When the bound is hit the last error is re-raised
unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from .prompts import build_corrective_suffix, build_prompt
from .repair import normalize_response, repair_json
from .schemas import validate_candidate
from .types import (
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    GeneratorConfig,
    ModelAdapter,
    OutputSchema,
    SchemaViolationError,
)

logger = logging.getLogger(__name__)

__all__ = ["StructuredGenerator", "error_feedback"]


def error_feedback(err: Exception) -> str:
    """Error text fed back to the model: the full violation tree, or the message."""
    if isinstance(err, SchemaViolationError):
        return err.to_json()
    return str(err)


class StructuredGenerator:
    """
    StructuredGenerator — the core abstraction.

    Holds configuration only, so one instance can serve concurrent calls.
    Every result carries metadata about how much correction it needed.
    """

    def __init__(self, config: GeneratorConfig | None = None) -> None:
        self._config = config or GeneratorConfig()

    @property
    def config(self) -> GeneratorConfig:
        return self._config

    def _log(self, msg: str, *args: Any) -> None:
        if self._config.debug:
            logger.log(self._config.log_level, msg, *args)

    async def generate_json(
        self,
        adapter: ModelAdapter,
        schema: OutputSchema,
        instruction: str,
        *,
        prefix: str | None = None,
        json_schema_indent: int = 2,
        max_retries: int | None = None,
        retry_count: int = 0,
    ) -> GenerationResult:
        """Keyword form of execute()."""
        return await self.execute(GenerationRequest(
            adapter=adapter,
            schema=schema,
            instruction=instruction,
            prefix=prefix,
            json_schema_indent=json_schema_indent,
            max_retries=max_retries,
            retry_count=retry_count,
        ))

    async def execute(self, request: GenerationRequest) -> GenerationResult:
        """
        Ask the model for schema-conformant JSON and validate the answer.

        Returns a GenerationResult on the first attempt that validates.
        Raises the last attempt's error (MalformedOutputError,
        SchemaViolationError or whatever the adapter raised) once
        max_retries retries have failed.
        """
        start_time = time.perf_counter()
        cfg = self._config
        max_retries = request.max_retries if request.max_retries is not None else cfg.default_max_retries
        repair = cfg.repair or repair_json
        current = request

        while True:
            self._log("Attempt %d of %d", current.retry_count + 1, max_retries + 1)

            try:
                prompt = build_prompt(
                    current.instruction,
                    current.schema,
                    prefix=current.prefix,
                    indent=current.json_schema_indent,
                )
                raw = await current.adapter(prompt)
                candidate = normalize_response(raw, current.schema, repair=repair)
                if candidate.was_repaired:
                    self._log("Direct parse failed, repaired output parsed")
                data = validate_candidate(candidate.value, current.schema)
            except Exception as err:
                self._log("Attempt %d failed: %s: %s", current.retry_count + 1, type(err).__name__, err)

                if current.retry_count >= max_retries:
                    self._log("Retries exhausted after %d attempts", current.retry_count + 1)
                    if cfg.on_exhausted:
                        cfg.on_exhausted(err, current.retry_count + 1)
                    raise

                message = error_feedback(err)
                if cfg.on_retry:
                    cfg.on_retry(message, current.retry_count + 1)
                self._log("Retrying with corrective prompt (retry %d)", current.retry_count + 1)
                current = current.next_attempt(build_corrective_suffix(message, cfg.repair_prompt))
                continue

            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self._log(
                "Output validated after %d retries (repaired=%s)",
                current.retry_count,
                candidate.was_repaired,
            )
            return GenerationResult(
                data=data,
                metadata=GenerationMetadata(
                    retry_count=current.retry_count,
                    was_repaired=candidate.was_repaired,
                    total_latency_ms=elapsed_ms,
                ),
                raw=raw,
            )
