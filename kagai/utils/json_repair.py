"""
Best-effort parsing of JSON emitted by LLMs.

Models wrap JSON in markdown fences, leave trailing commas, use smart quotes
or get cut off by the token limit. ``parse_llm_json`` tries a strict parse
first and then applies a fixed sequence of regex cleanups, re-trying after
each one so that the more aggressive rewrites only run when needed.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Optional

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
# A // comment running to end of line with no quote after it (keeps URLs intact)
_LINE_COMMENT_RE = re.compile(r'(^|[\s,\[{])//[^\n"]*$', re.MULTILINE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_SINGLE_QUOTED_RE = re.compile(r"(?<=[{\[,:])(\s*)'([^'\"]*)'(?=\s*[:,\]}])")
_UNQUOTED_KEY_RE = re.compile(r"(?<=[{,])(\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*):")
_PY_LITERAL_RE = re.compile(r"([:\[,]\s*)(True|False|None)\b")
_SMART_QUOTES = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}
_PY_LITERALS = {"True": "true", "False": "false", "None": "null"}


def extract_json_block(text: str) -> Optional[str]:
    """
    Pull the JSON object out of a model response.

    Strips a markdown code fence if present and returns the span from the
    first ``{`` to the last ``}``. A response cut off before its closing
    brace returns everything from the first ``{``.
    """
    if not text:
        return None

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end < start:
        return text[start:].strip()
    return text[start : end + 1]


def _replace_smart_quotes(text: str) -> str:
    for bad, good in _SMART_QUOTES.items():
        text = text.replace(bad, good)
    return text


def _strip_comments(text: str) -> str:
    text = _BLOCK_COMMENT_RE.sub("", text)
    return _LINE_COMMENT_RE.sub(r"\1", text)


def _strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _fix_literals_and_quotes(text: str) -> str:
    text = _PY_LITERAL_RE.sub(lambda m: m.group(1) + _PY_LITERALS[m.group(2)], text)
    return _SINGLE_QUOTED_RE.sub(r'\1"\2"', text)


def _quote_keys(text: str) -> str:
    return _UNQUOTED_KEY_RE.sub(r'\1"\2"\3:', text)


def _close_truncated(text: str) -> str:
    """Close strings, arrays and objects left open by a truncated response."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack:
            stack.pop()

    if not stack and not in_string:
        return text
    if in_string:
        text += '"'
    text = text.rstrip().rstrip(",")
    return _strip_trailing_commas(text + "".join(reversed(stack)))


_REPAIRS: tuple[Callable[[str], str], ...] = (
    _replace_smart_quotes,
    _strip_comments,
    _strip_trailing_commas,
    _fix_literals_and_quotes,
    _quote_keys,
    _close_truncated,
)


def repair_json(text: str) -> str:
    """Apply every cleanup step and return the rewritten text."""
    repaired = extract_json_block(text) or text
    for fix in _REPAIRS:
        repaired = fix(repaired)
    return repaired


def _try_load(text: Optional[str]) -> Optional[Any]:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def parse_llm_json(text: str) -> Any:
    """
    Parse JSON from an LLM response, repairing it if necessary.

    Raises:
        ValueError: if no JSON could be recovered.
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    parsed = _try_load(text.strip())
    if parsed is not None:
        return parsed

    block = extract_json_block(text)
    if block is None:
        raise ValueError("No JSON object found in response")

    parsed = _try_load(block)
    if parsed is not None:
        return parsed

    repaired = block
    for fix in _REPAIRS:
        repaired = fix(repaired)
        parsed = _try_load(repaired)
        if parsed is not None:
            return parsed

    raise ValueError("Could not repair JSON response")


def parse_analysis_fallback(text: str) -> dict:
    """
    Last-resort scrape of ``type`` and ``tags`` from a non-JSON answer.

    Returns ``{"type": ..., "tags": [...]}`` with type ``"unknown"`` and an
    empty tag list when nothing can be found.
    """
    text = text or ""
    type_match = re.search(r"type[\"'\s:]+([^\"'\n,}\]]+)", text, re.IGNORECASE)
    item_type = type_match.group(1).strip().lower() if type_match else ""

    tags: list[str] = []
    tags_match = re.search(r"tags[\"'\s:]+\[(.*?)\]", text, re.IGNORECASE | re.DOTALL)
    if tags_match:
        for raw in tags_match.group(1).split(","):
            tag = raw.strip().lower().replace('"', "").replace("'", "").strip()
            if tag:
                tags.append(tag)

    return {"type": item_type or "unknown", "tags": tags[:4]}
