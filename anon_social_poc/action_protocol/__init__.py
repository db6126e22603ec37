"""Public API for the anonymous action protocol.

Backend classes are resolved on first attribute access.
"""
from __future__ import annotations

from importlib import import_module

from .codec import from_ref, is_valid_identifier, parse_identifier, to_ref
from .events import (
    EventLogFile,
    LedgerState,
    MemberJoined,
    Post,
    PostCreated,
    VoteCast,
    apply_event,
    fold_events,
)
from .exceptions import (
    AnonActionError,
    ConfigurationError,
    ContentUnavailableError,
    DuplicateMemberError,
    EventLogError,
    InvalidProofError,
    MalformedIdentifierError,
    NotAMemberError,
    NullifierReusedError,
    ProofGenerationError,
    StaleRootError,
)
from .factory import get_proof_backend
from .group import Group, MerkleProof, verify_merkle_proof
from .identity import Identity, derive_identity, derive_identity_from_signature
from .interfaces import ProofBackend
from .ledger import ActionLedger
from .scopes import (
    POST_SCOPE,
    ActionKind,
    nullifier_key,
    post_message,
    vote_message,
    vote_scope,
)
from .settings import LedgerSettings, load_settings
from .types import MembershipProof, ref_from_hex, ref_to_hex

__all__ = [
    "ActionKind",
    "ActionLedger",
    "AnonActionError",
    "ConfigurationError",
    "ContentUnavailableError",
    "DuplicateMemberError",
    "EventLogError",
    "EventLogFile",
    "Group",
    "Identity",
    "InvalidProofError",
    "LedgerSettings",
    "LedgerState",
    "LinkableRingBackend",
    "MalformedIdentifierError",
    "MemberJoined",
    "MembershipProof",
    "MerkleProof",
    "MockProofBackend",
    "NotAMemberError",
    "NullifierReusedError",
    "POST_SCOPE",
    "Post",
    "PostCreated",
    "ProofBackend",
    "ProofGenerationError",
    "StaleRootError",
    "VoteCast",
    "apply_event",
    "derive_identity",
    "derive_identity_from_signature",
    "fold_events",
    "from_ref",
    "get_proof_backend",
    "is_valid_identifier",
    "load_settings",
    "nullifier_key",
    "parse_identifier",
    "post_message",
    "ref_from_hex",
    "ref_to_hex",
    "to_ref",
    "verify_merkle_proof",
    "vote_message",
    "vote_scope",
]

_LAZY_EXPORTS = {
    "LinkableRingBackend": "backends.ring",
    "MockProofBackend": "backends.mock_adapter",
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
