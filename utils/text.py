"""Text helpers for prompts and model output"""
import re
from typing import List

CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "\n...[truncated]"

_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_EMPHASIS = re.compile(r"\*\*|__")
_HEADER = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_EXTRA_BLANK_LINES = re.compile(r"\n{3,}")


def sanitize_draft(raw: str) -> str:
    """
    Strip markdown artifacts from a model draft.

    Removes fenced code blocks, bold/underline emphasis markers and header
    hashes, then collapses runs of blank lines to a single blank line.
    """
    if not raw:
        return ""
    cleaned = _CODE_BLOCK.sub("", raw)
    cleaned = _EMPHASIS.sub("", cleaned)
    cleaned = _HEADER.sub("", cleaned)
    cleaned = _EXTRA_BLANK_LINES.sub("\n\n", cleaned)
    return cleaned.strip()


def strip_json_fences(raw: str) -> str:
    """Remove a ```json ... ``` wrapper around a model's JSON answer."""
    cleaned = (raw or "").strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def estimate_tokens(text: str) -> int:
    """Provider-agnostic estimate: ~4 characters per token."""
    if not text:
        return 0
    return -(-len(text) // CHARS_PER_TOKEN)


def truncate_to_tokens(text: str, max_tokens: int) -> str:
    max_chars = max_tokens * CHARS_PER_TOKEN
    if not text or len(text) <= max_chars:
        return text or ""
    return text[:max_chars] + TRUNCATION_MARKER


def format_context(chunks: List[str], label: str = "CONTEXT") -> str:
    """Number retrieved excerpts in the order given."""
    return "\n\n".join(f"[{label}-{i + 1}] {chunk}" for i, chunk in enumerate(chunks) if chunk)
