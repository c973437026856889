"""Prompt-cache breakpoint selection for Anthropic-format relay requests.

Upstream caching charges a premium on the first write and a steep discount on
later reads, and a request may declare only a handful of breakpoints. The
selector spends those breakpoints on the largest blocks that are likely to be
sent again unchanged: the system prompt and older conversation turns. The
newest message is never marked since it has not been seen before.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from credit_gateway.tokens import estimate_tokens
from credit_gateway.types import CacheBlock, Message

logger = logging.getLogger(__name__)

DEFAULT_CACHE_MIN_TOKENS = 1024

# Upstream rejects requests carrying more cache markers than this
DEFAULT_MAX_CACHE_BREAKPOINTS = 4

# Fenced code blocks shorter than this do not qualify on shape alone
_LARGE_CODE_BLOCK_CHARS = 500

_TABLE_ROW_RE = re.compile(r"^[ \t]*\|.*\|[ \t]*$", re.MULTILINE)
# Header separator such as "--- | :---:"; outer pipes are optional
_TABLE_DELIMITER_RE = re.compile(
    r"^[ \t]*\|?[ \t]*:?-{3,}:?[ \t]*(?:\|[ \t]*:?-{3,}:?[ \t]*)+\|?[ \t]*$",
    re.MULTILINE,
)
_FENCED_BLOCK_RE = re.compile(r"```(.*?)```", re.DOTALL)
_REFERENCE_TAG_RE = re.compile(r"<(?:document|context|reference)\b[^>]*>", re.IGNORECASE)
_ROLE_CARD_TAG_RE = re.compile(r"<(?:character|persona|system_config)\b[^>]*>", re.IGNORECASE)

_EPHEMERAL = {"type": "ephemeral"}


# ── Structural heuristics ───────────────────────────────────────


def has_markdown_table(text: str) -> bool:
    """True if *text* contains a pipe-delimited table, with or without outer pipes."""
    return bool(_TABLE_ROW_RE.search(text) or _TABLE_DELIMITER_RE.search(text))


def has_large_code_block(text: str) -> bool:
    """True if *text* contains a fenced code block of at least 500 characters."""
    return any(
        len(match.group(1)) >= _LARGE_CODE_BLOCK_CHARS
        for match in _FENCED_BLOCK_RE.finditer(text)
    )


def has_reference_markers(text: str) -> bool:
    """True if *text* carries retrieved-document tags (``<document>`` etc.)."""
    return bool(_REFERENCE_TAG_RE.search(text))


def has_role_card_markers(text: str) -> bool:
    """True if *text* carries persona/role-card tags (``<persona>`` etc.)."""
    return bool(_ROLE_CARD_TAG_RE.search(text))


_STRUCTURAL_CHECKS = (
    has_markdown_table,
    has_large_code_block,
    has_reference_markers,
    has_role_card_markers,
)


def matches_structural_pattern(text: str | None) -> bool:
    """True if *text* looks like stable reference material worth caching."""
    if not text:
        return False
    return any(check(text) for check in _STRUCTURAL_CHECKS)


def is_cache_eligible(
    text: str | None,
    tokens: int,
    min_tokens: int = DEFAULT_CACHE_MIN_TOKENS,
) -> bool:
    """Return whether a block of *tokens* estimated tokens may take a breakpoint."""
    return tokens >= min_tokens or matches_structural_pattern(text)


# ── Selection ───────────────────────────────────────────────────


@dataclass
class CacheSelection:
    """Outcome of breakpoint selection.

    ``messages`` is the wire-ready list: the system prompt first (if any),
    then the conversation. Chosen blocks carry an ephemeral cache marker.
    """

    messages: list[dict[str, Any]]
    cached_block_count: int = 0
    blocks: list[CacheBlock] = field(default_factory=list)

    @property
    def cache_enabled(self) -> bool:
        """Whether at least one breakpoint was placed."""
        return self.cached_block_count > 0


def _cached_content(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": text, "cache_control": dict(_EPHEMERAL)}]


def collect_candidates(
    messages: Sequence[Message],
    system_prompt: str | None,
    min_tokens: int = DEFAULT_CACHE_MIN_TOKENS,
) -> list[CacheBlock]:
    """Return every cache-eligible block, in prompt order.

    The final message is skipped regardless of size.
    """
    candidates: list[CacheBlock] = []

    if system_prompt:
        tokens = estimate_tokens(system_prompt)
        if is_cache_eligible(system_prompt, tokens, min_tokens):
            candidates.append(CacheBlock(kind="system", estimated_tokens=tokens))

    for index, message in enumerate(messages[:-1]):
        content = message.get("content") or ""
        tokens = estimate_tokens(content)
        if is_cache_eligible(content, tokens, min_tokens):
            candidates.append(
                CacheBlock(
                    kind="message",
                    index=index,
                    role=message.get("role"),
                    estimated_tokens=tokens,
                )
            )
    return candidates


def select_cache_blocks(
    messages: Sequence[Message],
    system_prompt: str | None = None,
    min_tokens: int = DEFAULT_CACHE_MIN_TOKENS,
    max_breakpoints: int = DEFAULT_MAX_CACHE_BREAKPOINTS,
) -> CacheSelection:
    """Pick up to *max_breakpoints* blocks to mark as cacheable.

    Candidates are ranked by estimated size, largest first; ties keep prompt
    order so earlier blocks win.

    Args:
        messages: Budgeted conversation, oldest first.
        system_prompt: Optional system prompt, emitted as a leading ``system`` message.
        min_tokens: Size at which a block is eligible regardless of shape.
        max_breakpoints: Cache markers allowed per request; never more than
            ``DEFAULT_MAX_CACHE_BREAKPOINTS``.

    Returns:
        ``CacheSelection`` with the annotated wire messages.
    """
    candidates = collect_candidates(messages, system_prompt, min_tokens)
    ranked = sorted(candidates, key=lambda block: block.estimated_tokens, reverse=True)
    limit = min(max_breakpoints, DEFAULT_MAX_CACHE_BREAKPOINTS, len(ranked))
    chosen = ranked[: max(0, limit)]

    cache_system = any(block.kind == "system" for block in chosen)
    cached_indexes = {block.index for block in chosen if block.kind == "message"}

    annotated: list[dict[str, Any]] = []
    if system_prompt:
        annotated.append(
            {
                "role": "system",
                "content": _cached_content(system_prompt) if cache_system else system_prompt,
            }
        )

    for index, message in enumerate(messages):
        content = message.get("content") or ""
        annotated.append(
            {
                "role": message.get("role"),
                "content": _cached_content(content) if index in cached_indexes else content,
            }
        )

    logger.debug(
        "cache_selection | candidates=%d chosen=%d tokens=%s",
        len(candidates),
        len(chosen),
        [block.estimated_tokens for block in chosen],
    )
    return CacheSelection(messages=annotated, cached_block_count=len(chosen), blocks=chosen)
