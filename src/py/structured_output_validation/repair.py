"""
Structured Output Validation — Response Normalizer

Turns raw model text into a parsed JSON value: direct parse first, then
syntactic repair. Repair never looks at the target schema.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator

from .types import JsonRepairError, MalformedOutputError, OutputSchema, ParsedCandidate, RepairFn

__all__ = [
    "strip_markdown_fences",
    "extract_json",
    "repair_json",
    "normalize_response",
]

_VALID_ESCAPES = frozenset('"\\/bfnrtu')

_LITERALS = {
    "true": "true",
    "false": "false",
    "null": "null",
    "True": "true",
    "False": "false",
    "None": "null",
}

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t", "\b": "\\b", "\f": "\\f"}

_NUMBER_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_WORD_RE = re.compile(r"(?:[^\W\d]|\$)[\w$]*")

# Brackets, commas and colons only: nothing worth returning.
_CONTENT_FREE_RE = re.compile(r"[\s\[\]{},:]*")


def strip_markdown_fences(raw: str) -> str:
    """
    Strip markdown code fences from model output.
    Models commonly wrap JSON in ```json ... ``` blocks.
    """
    trimmed = raw.strip()
    match = re.match(r"^```(?:json|JSON)?\s*\n?([\s\S]*?)\n?\s*```$", trimmed)
    return match.group(1).strip() if match else trimmed


def _balanced_from(text: str, start: int) -> str:
    """Slice from the opener at start to its matching closer, or to the end."""
    opener = text[start]
    closer = "}" if opener == "{" else "]"

    # Walk forward tracking bracket depth, respecting strings and comments
    depth = 0
    quote: str | None = None
    escape = False
    i = start

    while i < len(text):
        char = text[i]

        if escape:
            escape = False
        elif quote:
            if char == "\\":
                escape = True
            elif char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif text.startswith("//", i) or text.startswith("/*", i):
            i = _skip_comment(text, i)
            continue
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
        i += 1

    # Unbalanced: return from start to end (repair closes it)
    return text[start:]


def _segments(text: str) -> Iterator[str]:
    """Non-overlapping bracketed segments of text, in order."""
    pos = 0
    while pos < len(text):
        starts = [p for p in (text.find("{", pos), text.find("[", pos)) if p != -1]
        if not starts:
            return
        start = min(starts)
        segment = _balanced_from(text, start)
        yield segment
        pos = start + len(segment)


def extract_json(raw: str) -> str:
    """
    Extract JSON from text that contains prose around it.

    Returns the first bracketed segment that parses as JSON, else the first
    bracketed segment, else the trimmed input.
    """
    trimmed = raw.strip()
    segments = list(_segments(trimmed))
    if not segments:
        return trimmed

    for segment in segments:
        try:
            json.loads(segment)
        except ValueError:
            continue
        return segment
    return segments[0]


def _read_string(text: str, start: int) -> tuple[str, int]:
    """Read a single- or double-quoted string at start; return it as a JSON string."""
    quote = text[start]
    chars: list[str] = []
    i = start + 1

    while i < len(text):
        char = text[i]

        if char == "\\":
            nxt = text[i + 1] if i + 1 < len(text) else ""
            if nxt == "'":
                chars.append("'")
                i += 2
            elif nxt and nxt in _VALID_ESCAPES:
                chars.append("\\" + nxt)
                i += 2
            else:
                chars.append("\\\\")
                i += 1
            continue

        if char == quote:
            return '"' + "".join(chars) + '"', i + 1

        if char == '"':
            chars.append('\\"')
        elif char in _CONTROL_ESCAPES:
            chars.append(_CONTROL_ESCAPES[char])
        elif ord(char) < 0x20:
            chars.append(f"\\u{ord(char):04x}")
        else:
            chars.append(char)
        i += 1

    # Unterminated: close it at end of input
    return '"' + "".join(chars) + '"', i


def _normalize_number(token: str) -> str:
    """1. -> 1.0, .5 -> 0.5, -.5 -> -0.5"""
    token = re.sub(r"^(-?)\.", r"\g<1>0.", token)
    return re.sub(r"\.(?!\d)", ".0", token)


def _skip_comment(text: str, pos: int) -> int:
    """Index just past a // or /* */ comment starting at pos."""
    if text.startswith("//", pos):
        end = text.find("\n", pos)
        return len(text) if end == -1 else end
    end = text.find("*/", pos + 2)
    return len(text) if end == -1 else end + 2


def _next_significant(text: str, pos: int) -> str:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return text[pos] if pos < len(text) else ""


def _strip_dangling(out: list[str]) -> None:
    """Drop trailing commas; give a dangling key a null value."""
    while out and out[-1].strip() in ("", ","):
        out.pop()
    if out and out[-1] == ":":
        out.append("null")


def _repair_segment(text: str) -> str:
    out: list[str] = []
    # Track the order of unmatched openers so we close them in reverse order
    open_stack: list[str] = []
    i = 0

    while i < len(text):
        char = text[i]

        if char in "\"'":
            token, i = _read_string(text, i)
            out.append(token)
            continue

        if text.startswith("//", i) or text.startswith("/*", i):
            i = _skip_comment(text, i)
            continue

        if char in "-." or char.isdigit():
            match = _NUMBER_RE.match(text, i)
            if match:
                out.append(_normalize_number(match.group()))
                i = match.end()
                continue

        if char.isalpha() or char in "_$":
            match = _WORD_RE.match(text, i)
            if match:
                word = match.group()
                i = match.end()
                if _next_significant(text, i) == ":":
                    out.append(json.dumps(word))
                else:
                    out.append(_LITERALS.get(word, json.dumps(word)))
                continue

        if char in "{[":
            open_stack.append(char)
            out.append(char)
        elif char in "}]":
            expected = "{" if char == "}" else "["
            # Stray closers are dropped
            if open_stack and open_stack[-1] == expected:
                open_stack.pop()
                _strip_dangling(out)
                out.append(char)
        else:
            out.append(char)
        i += 1

    _strip_dangling(out)
    synthesized = bool(open_stack)
    while open_stack:
        opener = open_stack.pop()
        _strip_dangling(out)
        out.append("}" if opener == "{" else "]")

    repaired = "".join(out)
    # Closers we added around nothing are not a value the model produced
    if synthesized and _CONTENT_FREE_RE.fullmatch(repaired):
        raise JsonRepairError("Output contains no JSON values")
    return repaired


def repair_json(raw: str) -> str:
    """
    Attempt syntactic JSON repair for common model output issues.

    Handles: markdown fences, prose around the JSON, unquoted keys, bare
    word values, single-quoted strings, Python literals, comments, numbers
    like 1. and .5, raw control characters in strings, trailing commas,
    stray closers and unbalanced nesting.

    When the output holds several bracketed segments, the largest one that
    repairs into valid JSON wins. Raises JsonRepairError when there is
    nothing to repair.
    """
    segments = list(_segments(strip_markdown_fences(raw)))
    if not segments:
        raise JsonRepairError("No JSON object or array found in output")

    best: str | None = None
    fallback: str | None = None
    first_error: JsonRepairError | None = None

    for segment in segments:
        try:
            repaired = _repair_segment(segment)
        except JsonRepairError as err:
            first_error = first_error or err
            continue
        try:
            json.loads(repaired)
        except ValueError:
            fallback = fallback or repaired
            continue
        if best is None or len(repaired) > len(best):
            best = repaired

    if best is not None:
        return best
    if fallback is not None:
        return fallback
    raise first_error or JsonRepairError("Output contains no JSON values")


def normalize_response(raw: str, schema: OutputSchema | None = None, repair: RepairFn | None = None) -> ParsedCandidate:
    """
    Parse raw model output, falling back to syntactic repair.

    The schema is accepted for symmetry with the validation step but is
    never consulted: repair is purely syntactic. Raises MalformedOutputError
    carrying the direct parse error when repair also fails.
    """
    try:
        value: Any = json.loads(raw)
        return ParsedCandidate(value=value, was_repaired=False)
    except ValueError as first_error:
        fix = repair or repair_json
        try:
            value = json.loads(fix(raw))
        except Exception as repair_error:
            raise MalformedOutputError(str(first_error), raw=raw) from repair_error
        return ParsedCandidate(value=value, was_repaired=True)
