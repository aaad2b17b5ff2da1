"""Base provider implementing the Template Method pattern.

All providers share the same call algorithm:
    complete() → _call_with_retry() → _call_api()   ← only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the async SDK client
  - _call_api: make one raw API call and return a Completion

Retry and backoff live here so they are defined once and behave the same for
every provider. Once retries are exhausted the error propagates as a
ProviderError; callers decide whether the whole review run is lost.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from patchwise_core.errors import ProviderError
from patchwise_core.models import Turn

logger = logging.getLogger(__name__)

# Shared defaults; subclasses may override them as class attributes.
_MAX_RETRIES = 3
_MAX_TOKENS = 4096


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: dict[str, Any]


@dataclass(frozen=True)
class Completion:
    text: str = ""
    function_call: FunctionCall | None = None


class BaseProvider(ABC):
    MODEL: str = ""
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = 0.2

    def __init__(self, model: str | None = None):
        self.model = model or self.MODEL

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def complete(self, turns: list[Turn], function: dict | None = None) -> Completion:
        """Send a conversation and return the model's reply.

        When ``function`` (a JSON-schema function description) is given, the
        model is forced to call exactly that function and the parsed call is
        returned in ``Completion.function_call``.
        """
        return await self._call_with_retry(turns, function)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def _call_api(self, turns: list[Turn], function: dict | None) -> Completion:
        """Make a single API call. Raise on failure; retries are handled here."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    async def _call_with_retry(self, turns: list[Turn], function: dict | None) -> Completion:
        for attempt in range(self.MAX_RETRIES):
            try:
                return await self._call_api(turns, function)
            except Exception as e:
                if attempt == self.MAX_RETRIES - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_RETRIES,
                        e,
                    )
                    raise ProviderError(f"{self.__class__.__name__} request failed: {e}") from e
                delay = 2**attempt
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ds...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_RETRIES,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
        raise ProviderError(f"{self.__class__.__name__} made no attempts (MAX_RETRIES={self.MAX_RETRIES})")
