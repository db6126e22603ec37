"""
Action scopes, expected messages and nullifier keys.

A scope partitions nullifier space: the same identity gets unrelated
nullifiers for posting, for voting on post A and for voting on post B.
All values here are public and protocol-wide.
"""

from enum import Enum

from .config import DOMAIN_SEPARATORS, POST_SCOPE_LABEL, VOTE_DOMAIN
from .security import hash_parts, hash_parts_to_int
from .types import validate_content_ref, validate_scalar


class ActionKind(str, Enum):
    """Independent nullifier namespaces."""

    POST = "post"
    VOTE = "vote"


# Fixed scope for publishing a post
POST_SCOPE = hash_parts_to_int(DOMAIN_SEPARATORS["scope"], POST_SCOPE_LABEL)


def post_message(content_ref: bytes) -> int:
    """A post proof carries the content reference itself as its message."""
    return int.from_bytes(validate_content_ref(content_ref), "big")


def vote_scope(content_ref: bytes) -> int:
    """Scope for voting on one post: H(VOTE_DOMAIN, ref)."""
    return hash_parts_to_int(
        DOMAIN_SEPARATORS["scope"], VOTE_DOMAIN, validate_content_ref(content_ref)
    )


def vote_message(content_ref: bytes, upvote: bool) -> int:
    """Message for a vote: H(ref, upvote). Binds the direction into the proof."""
    if not isinstance(upvote, bool):
        raise TypeError("upvote must be bool")
    return hash_parts_to_int(
        DOMAIN_SEPARATORS["message"],
        validate_content_ref(content_ref),
        b"\x01" if upvote else b"\x00",
    )


def nullifier_key(kind: ActionKind, disambiguator: bytes, nullifier: int) -> bytes:
    """
    Key of a nullifier record: H(kind, disambiguator, nullifier).

    The disambiguator is empty for posts and the content reference for votes.
    """
    kind = ActionKind(kind)
    if not isinstance(disambiguator, bytes):
        raise TypeError("disambiguator must be bytes")
    validate_scalar("nullifier", nullifier)
    return hash_parts(
        DOMAIN_SEPARATORS["nullifier_key"],
        kind.value.encode("ascii"),
        disambiguator,
        nullifier.to_bytes(32, "big"),
    )


def post_nullifier_key(nullifier: int) -> bytes:
    return nullifier_key(ActionKind.POST, b"", nullifier)


def vote_nullifier_key(content_ref: bytes, nullifier: int) -> bytes:
    return nullifier_key(ActionKind.VOTE, validate_content_ref(content_ref), nullifier)
