"""
Exception types raised inside SkillSwap.

None of these escape the matching engine's public entry points; they mark
the places where a signal or a record is dropped.
"""


class SkillSwapError(Exception):
    """Base class for SkillSwap errors."""


class EmbeddingUnavailableError(SkillSwapError):
    """The embedding provider is not ready or failed to return a vector."""


class ProfileFormatError(SkillSwapError):
    """A raw profile record could not be converted into a Profile."""
