"""Token estimation for message bodies and summaries."""

import math
from typing import Callable, Iterable

import tiktoken

from memoria.compaction.types import EstimatorName

# Cache the encoder
_encoder: tiktoken.Encoding | None = None

DEFAULT_CHARS_PER_TOKEN = 4


def _get_encoder() -> tiktoken.Encoding:
    """Get or create the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """
    Estimate the number of tokens in a text string.

    Uses a length heuristic (~4 characters per token), rounded up.
    Only meant for threshold decisions, not billing.

    Args:
        text: The text to estimate tokens for.
        chars_per_token: Average characters per token.

    Returns:
        Estimated token count.
    """
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def estimate_tokens_cl100k(text: str) -> int:
    """
    Estimate tokens with the cl100k_base encoding.

    Args:
        text: The text to estimate tokens for.

    Returns:
        Token count under cl100k_base.
    """
    if not text:
        return 0
    return len(_get_encoder().encode(text))


def get_estimator(
    name: EstimatorName = "chars",
    chars_per_token: int = DEFAULT_CHARS_PER_TOKEN,
) -> Callable[[str], int]:
    """
    Get a token estimator by name.

    Args:
        name: "chars" for the length heuristic, "cl100k" for tiktoken.
        chars_per_token: Ratio used by the "chars" estimator.

    Returns:
        A function mapping text to an estimated token count.
    """
    if name == "cl100k":
        return estimate_tokens_cl100k
    if name == "chars":
        return lambda text: estimate_tokens(text, chars_per_token)
    raise ValueError(f"Unknown estimator: {name}")


def estimate_texts_tokens(
    texts: Iterable[str],
    estimator: Callable[[str], int] = estimate_tokens,
) -> int:
    """Sum estimated tokens over several texts."""
    return sum(estimator(text) for text in texts)
