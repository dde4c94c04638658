"""Error taxonomy for the analysis engine."""

from typing import Optional


class EngineError(Exception):
    """Base class for every error raised by the analysis engine."""


class InsufficientDataError(EngineError):
    """
    Input is shorter than an indicator's minimum lookback.

    Recoverable: callers treat the indicator as unavailable and keep going.
    """

    def __init__(self, indicator: str, required: int, available: int):
        self.indicator = indicator
        self.required = required
        self.available = available
        super().__init__(
            f"{indicator}: insufficient data ({available} values, {required} required)"
        )


class InvalidParameterError(EngineError, ValueError):
    """Non-positive period, empty series, mismatched inputs. Programmer error."""


class MissingInputError(EngineError):
    """A fundamental / sentiment / indicator input needed by a score category is absent."""

    def __init__(self, field: str, detail: Optional[str] = None):
        self.field = field
        msg = f"missing input: {field}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)
