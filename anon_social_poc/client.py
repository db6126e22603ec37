"""
Client for the anonymous social board.

Ties an identity, a content store and a proof backend to one ledger:
upload the body, derive the content reference, prove against the freshest
roster snapshot, submit. Proof generation never holds the ledger lock.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import trio

from .action_protocol.codec import from_ref, to_ref
from .action_protocol.config import MAX_POST_CHARS
from .action_protocol.events import MemberJoined, PostCreated, VoteCast
from .action_protocol.exceptions import ContentUnavailableError
from .action_protocol.identity import Identity
from .action_protocol.interfaces import ProofBackend
from .action_protocol.ledger import ActionLedger
from .action_protocol.scopes import (
    POST_SCOPE,
    ActionKind,
    post_message,
    vote_message,
    vote_scope,
)
from .action_protocol.types import MembershipProof, validate_content_ref
from .content_store import ContentStore, PostBody

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedItem:
    content_ref: bytes
    identifier: str
    text: str
    created_at: int
    votes: int


class AnonSocialClient:
    """
    One member's view of the board.

    Example:
        >>> client = AnonSocialClient(ledger, backend, store, identity)
        >>> client.ensure_joined()
        >>> event = client.publish("hello")
        >>> client.vote(event.content_ref, upvote=True)
    """

    def __init__(
        self,
        ledger: ActionLedger,
        backend: ProofBackend,
        store: ContentStore,
        identity: Identity,
        *,
        clock: Callable[[], float] = time.time,
        max_post_chars: int = MAX_POST_CHARS,
    ):
        self.ledger = ledger
        self.backend = backend
        self.store = store
        self.identity = identity
        self._clock = clock
        self._max_post_chars = max_post_chars

    # ------------------------------------------------------------------
    # membership
    # ------------------------------------------------------------------

    def ensure_joined(self) -> Optional[MemberJoined]:
        """Join unless already a member; returns the event when a join happened."""
        if self.ledger.has_member(self.identity.commitment):
            return None
        return self.ledger.join(self.identity.commitment)

    @property
    def is_member(self) -> bool:
        return self.ledger.has_member(self.identity.commitment)

    # ------------------------------------------------------------------
    # posting
    # ------------------------------------------------------------------

    def upload(self, text: str) -> bytes:
        """Store a post body and return its content reference."""
        body = PostBody(text=text, created_at=int(self._clock()))
        body.validate(self._max_post_chars)
        identifier = self.store.put(body.to_bytes())
        return to_ref(identifier)

    def prove_post(self, content_ref: bytes) -> MembershipProof:
        return self.backend.prove(
            self.identity, self.ledger.group, POST_SCOPE, post_message(content_ref)
        )

    def publish(self, text: str) -> PostCreated:
        """
        Upload, prove and post.

        Raises:
            NotAMemberError: If the identity has not joined
            NullifierReusedError: If this identity already posted
        """
        ref = self.upload(text)
        return self.ledger.post(self.prove_post(ref), ref)

    def has_posted(self) -> bool:
        nullifier = self.backend.compute_nullifier(self.identity, POST_SCOPE)
        return self.ledger.is_nullifier_used(ActionKind.POST, b"", nullifier)

    # ------------------------------------------------------------------
    # voting
    # ------------------------------------------------------------------

    def prove_vote(self, content_ref: bytes, upvote: bool) -> MembershipProof:
        ref = validate_content_ref(content_ref)
        return self.backend.prove(
            self.identity, self.ledger.group, vote_scope(ref), vote_message(ref, upvote)
        )

    def vote(self, content_ref: bytes, upvote: bool) -> VoteCast:
        """
        Raises:
            NotAMemberError: If the identity has not joined
            NullifierReusedError: If this identity already voted on content_ref
        """
        return self.ledger.vote(self.prove_vote(content_ref, upvote), content_ref, upvote)

    def has_voted(self, content_ref: bytes) -> bool:
        ref = validate_content_ref(content_ref)
        nullifier = self.backend.compute_nullifier(self.identity, vote_scope(ref))
        return self.ledger.is_nullifier_used(ActionKind.VOTE, ref, nullifier)

    # ------------------------------------------------------------------
    # async variants
    # ------------------------------------------------------------------

    async def publish_async(self, text: str) -> PostCreated:
        """publish() with upload and proof generation in a worker thread."""
        ref, proof = await trio.to_thread.run_sync(self._prepare_post, text)
        return await trio.to_thread.run_sync(self.ledger.post, proof, ref)

    async def vote_async(self, content_ref: bytes, upvote: bool) -> VoteCast:
        proof = await trio.to_thread.run_sync(self.prove_vote, content_ref, upvote)
        return await trio.to_thread.run_sync(self.ledger.vote, proof, content_ref, upvote)

    def _prepare_post(self, text: str) -> Tuple[bytes, MembershipProof]:
        ref = self.upload(text)
        return ref, self.prove_post(ref)

    # ------------------------------------------------------------------
    # feed
    # ------------------------------------------------------------------

    def feed(self) -> List[FeedItem]:
        return build_feed(self.ledger, self.store)


def build_feed(ledger: ActionLedger, store: ContentStore) -> List[FeedItem]:
    """Posts newest first with their tallies; unresolvable content is skipped."""
    items = []
    for position, post in enumerate(ledger.posts()):
        identifier = from_ref(post.ref)
        if identifier is None:
            continue
        try:
            data = store.get(identifier)
        except ContentUnavailableError as exc:
            logger.warning("skipping %s: %s", identifier, exc)
            continue
        if data is None:
            logger.debug("skipping %s: not in store", identifier)
            continue
        try:
            body = PostBody.from_bytes(data)
        except ValueError as exc:
            logger.warning("skipping %s: %s", identifier, exc)
            continue

        item = FeedItem(
            content_ref=post.ref,
            identifier=identifier,
            text=body.text,
            created_at=post.created_at,
            votes=ledger.votes_for(post.ref),
        )
        items.append((position, item))

    # Newest first; ties go to the later publication
    items.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
    return [item for _, item in items]
