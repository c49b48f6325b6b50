"""Recover block nodes from raw model output.

Model output that claims to be a JSON array is often wrapped in code fences,
surrounded by prose, truncated, or sprinkled with unescaped quotes and
trailing commas. Recovery runs an ordered chain of parsing stages and stops
at the first that yields a JSON array:

1. strip code fences and surrounding whitespace
2. strict parse of the cleaned text
3. strict parse of the first ``[`` .. last ``]`` substring
4. structural repair of that substring (or of ``[`` .. end), then parse

The parsed array must then satisfy the block node shape contract. Every
outcome is returned as a ``RecoveryResult``; nothing here raises on bad input.

Usage:
    from docpatch.core.response_recovery import recover

    result = recover(raw_text)
    if result.ok:
        nodes = result.nodes
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from docpatch.core.logging import get_logger, preview
from docpatch.core.schemas_document import BlockNode, dump_nodes, validate_nodes

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


@dataclass
class RecoveryResult:
    """Tagged outcome of the recovery chain.

    On success ``nodes`` holds the validated sequence and ``stage`` names the
    stage that produced it. On failure ``raw_text`` keeps the offending output
    for diagnostics and ``error`` says why.
    """

    ok: bool
    raw_text: str
    nodes: list[BlockNode] | None = None
    stage: str | None = None
    error: str | None = None


# =============================================================================
# Stages
# =============================================================================


def strip_fences(raw_output: str) -> str:
    """Strip markdown code fences from model output.

    Handles: ```json ... ```, ``` ... ```, several fenced blocks (the first
    one opening with ``[`` wins, else the first holding one), an unterminated
    opening fence, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    blocks = [m.group(1).strip() for m in _FENCE_RE.finditer(cleaned)]
    if blocks:
        # A reply may quote a short snippet before the fenced array
        for block in blocks:
            if block.startswith("["):
                return block
        return next((block for block in blocks if "[" in block), blocks[0])

    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _loads_array(text: str) -> list[Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    return parsed if isinstance(parsed, list) else None


def _bracketed(text: str) -> str | None:
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end <= start:
        return None
    return text[start : end + 1]


def parse_strict(text: str) -> list[Any] | None:
    """Stage 2: the cleaned text is exactly a JSON array."""
    return _loads_array(text)


def parse_bracketed(text: str) -> list[Any] | None:
    """Stage 3: a JSON array embedded in surrounding prose."""
    candidate = _bracketed(text)
    if candidate is None:
        return None
    return _loads_array(candidate)


def parse_repaired(text: str) -> list[Any] | None:
    """Stage 4: repair the bracketed substring, else everything from the first ``[``."""
    candidates = []
    bracketed = _bracketed(text)
    if bracketed is not None:
        candidates.append(bracketed)
    first = text.find("[")
    if first >= 0 and text[first:] != bracketed:
        candidates.append(text[first:])

    for candidate in candidates:
        parsed = _loads_array(repair_json(candidate))
        if parsed is not None:
            return parsed
    return None


PARSE_STAGES: tuple[tuple[str, Callable[[str], list[Any] | None]], ...] = (
    ("strict", parse_strict),
    ("bracketed", parse_bracketed),
    ("repaired", parse_repaired),
)


# =============================================================================
# Structural repair
# =============================================================================


def _next_significant(text: str, pos: int) -> str | None:
    for ch in text[pos:]:
        if not ch.isspace():
            return ch
    return None


def _strip_trailing_comma(out: list[str]) -> None:
    while out and out[-1].isspace():
        out.pop()
    if out and out[-1] == ",":
        out.pop()


_DANGLING_KEY_RE = re.compile(r'([{,])\s*"(?:[^"\\]|\\.)*"\s*:?\s*$')


def repair_json(text: str) -> str:
    """
    Best-effort repair of almost-JSON.

    Fixes unescaped quotes and raw newlines inside strings, trailing commas,
    stray closers, unterminated strings, dangling keys at a truncation point,
    and unbalanced brackets. The output is not guaranteed to parse.
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escape = False

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                out.append(ch)
                escape = False
            elif ch == "\\":
                out.append(ch)
                escape = True
            elif ch == '"':
                # A quote only closes the string when JSON structure follows it
                if _next_significant(text, i + 1) in (",", ":", "}", "]", None):
                    out.append(ch)
                    in_string = False
                else:
                    out.append('\\"')
            elif ch == "\n":
                out.append("\\n")
            elif ch == "\r":
                out.append("\\r")
            elif ch == "\t":
                out.append("\\t")
            else:
                out.append(ch)
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in "[{":
            stack.append("]" if ch == "[" else "}")
            out.append(ch)
        elif ch in "]}":
            if ch not in stack:
                continue  # stray closer
            while stack:
                closer = stack.pop()
                _strip_trailing_comma(out)
                out.append(closer)
                if closer == ch:
                    break
        else:
            out.append(ch)

    # Truncated input: finish the open string, drop a half-written key, close containers
    if in_string:
        if escape:
            out.pop()
        out.append('"')
    repaired = "".join(out)

    if stack and stack[-1] == "}":
        repaired = _DANGLING_KEY_RE.sub(r"\1", repaired)
    repaired = re.sub(r"[,:\s]+$", "", repaired)

    while stack:
        repaired += stack.pop()

    return repaired


# =============================================================================
# Entry points
# =============================================================================


def recover(raw_text: str) -> RecoveryResult:
    """
    Turn raw model output into validated block nodes.

    Args:
        raw_text: Untrusted generation output

    Returns:
        RecoveryResult; ``ok`` is False when every stage failed, when the
        recovered array is empty, or when any node violates the shape contract
    """
    stripped = (raw_text or "").strip()
    cleaned = strip_fences(stripped)
    # Fenced content that yields nothing falls back to the whole reply
    candidates = [cleaned] if cleaned == stripped else [cleaned, stripped]

    parsed: list[Any] | None = None
    stage: str | None = None
    for candidate in candidates:
        for name, parse in PARSE_STAGES:
            parsed = parse(candidate)
            if parsed is not None:
                stage = name
                break
        if parsed is not None:
            break

    if parsed is None:
        logger.warning(f"All recovery stages failed: {preview(raw_text)}")
        return RecoveryResult(
            ok=False, raw_text=raw_text, stage="parse", error="No JSON array could be recovered"
        )

    if not parsed:
        return RecoveryResult(
            ok=False, raw_text=raw_text, stage="empty", error="Recovered array is empty"
        )

    try:
        nodes = validate_nodes(parsed)
    except ValidationError as e:
        logger.warning(
            f"Recovered array (stage={stage}) failed shape validation: "
            f"{e.error_count()} error(s)"
        )
        return RecoveryResult(ok=False, raw_text=raw_text, stage="shape", error=str(e))

    if stage != "strict":
        logger.info(f"Recovered {len(nodes)} node(s) via {stage} stage")
    return RecoveryResult(ok=True, raw_text=raw_text, nodes=nodes, stage=stage)


def serialize_nodes(nodes: list[BlockNode], indent: int | None = 2) -> str:
    """Canonical JSON text for a node sequence; ``recover`` reads it back unchanged."""
    return json.dumps(dump_nodes(nodes), indent=indent, ensure_ascii=False)
