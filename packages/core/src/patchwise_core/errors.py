from __future__ import annotations


class PatchwiseError(Exception):
    """Base class for errors raised by the review engine."""


class SuggestionParseError(PatchwiseError, ValueError):
    """The model's structured review could not be parsed."""


class ProviderError(PatchwiseError):
    """A model call failed after every retry."""


class StrategiesExhaustedError(PatchwiseError):
    """Every configured review strategy failed.

    ``errors`` maps each strategy name to the exception that ended it, in the
    order the strategies were tried.
    """

    def __init__(self, errors: dict[str, BaseException]):
        self.errors = errors
        detail = "; ".join(f"{name}: {exc}" for name, exc in errors.items())
        super().__init__(f"All review strategies failed ({detail})")
