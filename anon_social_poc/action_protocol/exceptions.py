"""
Custom exceptions for the anonymous action protocol.

Every failure a caller must be able to tell apart has its own class, so a
rejected post or vote can be handled by kind (regenerate the proof, stop,
join first) instead of by message text.
"""


class AnonActionError(Exception):
    """Base exception for anonymous action protocol errors."""

    pass


class MalformedIdentifierError(AnonActionError, ValueError):
    """Content identifier violates its encoding grammar."""

    pass


class ProofGenerationError(AnonActionError):
    """Error during proof generation."""

    pass


class NotAMemberError(ProofGenerationError):
    """Identity commitment is not in the group the proof is built against."""

    pass


class InvalidProofError(AnonActionError):
    """Proof failed verification or is bound to a different message/scope."""

    pass


class StaleRootError(InvalidProofError):
    """Proof was generated against a root that is no longer current."""

    pass


class NullifierReusedError(AnonActionError):
    """The action was already performed by this identity in this namespace."""

    pass


class DuplicateMemberError(AnonActionError):
    """Commitment already joined and the ledger rejects duplicate joins."""

    pass


class ConfigurationError(AnonActionError):
    """Configuration error."""

    pass


class EventLogError(AnonActionError):
    """Event log is corrupt or inconsistent with the state it replays into."""

    pass


class ContentUnavailableError(AnonActionError):
    """Content store could not serve or accept content (retryable)."""

    pass
