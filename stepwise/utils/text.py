"""Small text helpers shared by the agent loop and the planner."""

from __future__ import annotations


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json / ``` fence from a model response."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_json_object(text: str) -> str:
    """Return the span from the first ``{`` to the last ``}``, or the text unchanged."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text
    return text[start:end + 1]


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to at most ``limit`` characters."""
    if limit < 0 or len(text) <= limit:
        return text
    return text[:limit]
