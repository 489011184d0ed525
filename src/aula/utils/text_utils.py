"""Text helpers for LLM output and status messages."""

import re

THINK_BLOCK = re.compile(
    r"<(think|thinking|analysis|reasoning)>.*?</\1>", re.DOTALL | re.IGNORECASE
)


def strip_think(text: str) -> str:
    """Remove reasoning blocks some models prepend to their answer."""
    return THINK_BLOCK.sub("", text or "").strip()


def truncate(text: str, limit: int = 100) -> str:
    """Cut text to limit characters, marking the cut with '...'."""
    text = str(text)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
