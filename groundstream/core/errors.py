"""
Error taxonomy for the grounding pipeline.
"""


class GroundstreamError(Exception):
    """Base class for all service errors."""


class ValidationError(GroundstreamError):
    """Missing or empty required input, rejected before any stage runs."""


class ModerationBlocked(GroundstreamError):
    """The moderation gate disallowed the input."""

    def __init__(self, reason=None):
        super().__init__(f"Content blocked by moderation: {reason}")
        self.reason = reason


class ModerationUnavailable(GroundstreamError):
    """The moderation gate itself failed (distinct from a disallow decision)."""


class UpstreamDegraded(GroundstreamError):
    """An optional stage (memory, search, moderation) failed; the run continues."""

    def __init__(self, stage: str, cause: Exception):
        super().__init__(f"{stage} degraded: {cause}")
        self.stage = stage
        self.cause = cause


class EmbeddingError(GroundstreamError):
    """The embedding provider could not produce a vector."""


class SearchError(GroundstreamError):
    """The search provider call failed."""


class StreamFailure(GroundstreamError):
    """The model stream reported an error mid-stream."""


class PersistenceError(GroundstreamError):
    """A memory store read or write failed."""
