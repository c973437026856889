"""Token estimation and context budgeting."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from credit_gateway.types import Message

logger = logging.getLogger(__name__)

# Rough estimate: 1 token ≈ 4 characters
_CHARS_PER_TOKEN = 4

# Trimming never goes below one user/assistant pair
_MIN_KEPT_MESSAGES = 2


def estimate_tokens(text: str | None) -> int:
    """Approximate the token count of *text* from its length."""
    if not text:
        return 0
    return math.ceil(len(text) / _CHARS_PER_TOKEN)


def count_tokens(messages: Sequence[Message], system_prompt: str | None = None) -> int:
    """Estimated tokens for a system prompt plus every message body."""
    total = estimate_tokens(system_prompt)
    for message in messages:
        total += estimate_tokens(message.get("content"))
    return total


def budget_messages(
    messages: Sequence[Message],
    system_prompt: str | None,
    max_tokens: int,
) -> tuple[list[Message], int]:
    """Drop the oldest turns until the conversation fits *max_tokens*.

    Messages are removed two at a time so user/assistant pairs stay
    together (one at a time when only three remain). Trimming stops at two
    messages even if the remainder is still over budget.

    Returns:
        Tuple of (kept messages, estimated total tokens of what was kept).
    """
    kept = list(messages)
    total = count_tokens(kept, system_prompt)
    while total > max_tokens and len(kept) > _MIN_KEPT_MESSAGES:
        kept = kept[min(2, len(kept) - _MIN_KEPT_MESSAGES) :]
        total = count_tokens(kept, system_prompt)

    if len(kept) < len(messages):
        logger.debug(
            "context_trimmed | dropped=%d kept=%d tokens=%d limit=%d",
            len(messages) - len(kept),
            len(kept),
            total,
            max_tokens,
        )
    if total > max_tokens:
        logger.warning(
            "context_over_budget | tokens=%d limit=%d messages=%d",
            total,
            max_tokens,
            len(kept),
        )
    return kept, total
