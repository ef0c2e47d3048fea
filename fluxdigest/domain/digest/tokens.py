"""Approximate LLM token budgeting."""

from typing import Optional

CJK_TOKEN_COST = 1.6
DEFAULT_TOKEN_COST = 0.3
ELLIPSIS = "..."


def char_token_cost(ch: str) -> float:
    """Estimated tokens for one character: CJK ideographs cost more than latin text."""
    if "\u4e00" <= ch <= "\u9fff":
        return CJK_TOKEN_COST
    return DEFAULT_TOKEN_COST


def estimate_tokens(text: Optional[str]) -> float:
    if not text:
        return 0.0
    return sum(char_token_cost(ch) for ch in text)


def estimate_truncate(text: Optional[str], max_tokens: float) -> str:
    """
    Cut ``text`` to roughly ``max_tokens`` tokens.

    This is a heuristic, not a real tokenizer: latin text is counted at about
    0.3 tokens per character and CJK ideographs (U+4E00..U+9FFF) at 1.6.
    The text is returned unchanged if its running cost never reaches the
    budget. Otherwise the prefix before the character that reached the budget
    is returned with ``...`` appended. Empty or None input yields ``""``.
    """
    if not text:
        return ""

    total = 0.0
    for i, ch in enumerate(text):
        total += char_token_cost(ch)
        if total >= max_tokens:
            return text[:i] + ELLIPSIS
    return text
