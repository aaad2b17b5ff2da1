"""Token accounting for model conversations.

cl100k_base is not any one provider's tokenizer, but it is close enough to
budget prompts for both Claude and GPT-4 class models.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

import tiktoken

if TYPE_CHECKING:
    from patchwise_core.models import Turn

# Chat APIs wrap each message in a few framing tokens and prime the reply.
_TOKENS_PER_TURN = 4
_REPLY_PRIMING_TOKENS = 3


@lru_cache(maxsize=1)
def _encoder():
    return tiktoken.get_encoding("cl100k_base")


def estimate_tokens(text: str) -> int:
    if not text:
        return 0
    return len(_encoder().encode(text, disallowed_special=()))


def estimate_conversation_tokens(turns: list[Turn]) -> int:
    """Return the estimated input cost of a whole conversation."""
    total = _REPLY_PRIMING_TOKENS
    for turn in turns:
        total += _TOKENS_PER_TURN + estimate_tokens(turn.content)
    return total


def is_conversation_within_limit(turns: list[Turn], budget: int) -> bool:
    return estimate_conversation_tokens(turns) <= budget
