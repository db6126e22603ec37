"""
ActionLedger: the single writer for roster, nullifiers, posts and tallies.

Writers (join/post/vote) are serialized by one lock and every accepted
action is committed through events.apply_event(). Proof verification is
pure and runs before the lock is taken; the nullifier and root checks that
depend on shared state are repeated under the lock.

A failed call leaves state untouched. Nullifiers are never reset.

With an event log attached, the log is the shared source of truth: each
write takes the log's file lock and folds records appended by other
processes before its checks run.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .config import DEFAULT_GROUP_ID, MAX_TREE_DEPTH, MIN_TREE_DEPTH
from .events import (
    EventLogFile,
    LedgerEvent,
    LedgerState,
    MemberJoined,
    Post,
    PostCreated,
    VoteCast,
    apply_event,
)
from .exceptions import (
    DuplicateMemberError,
    InvalidProofError,
    NullifierReusedError,
    StaleRootError,
)
from .group import Group
from .interfaces import ProofBackend
from .scopes import (
    POST_SCOPE,
    ActionKind,
    nullifier_key,
    post_message,
    post_nullifier_key,
    vote_message,
    vote_nullifier_key,
    vote_scope,
)
from .types import MembershipProof, short_hex, validate_content_ref, validate_scalar

logger = logging.getLogger(__name__)

Listener = Callable[[LedgerEvent], None]


class ActionLedger:
    """
    Stateful authority for anonymous one-time actions in one group.

    Args:
        backend: Proof backend used for verification
        group_id: Group this ledger owns
        clock: Returns the current time in seconds (post timestamps)
        reject_duplicate_members: Refuse joins of an already present commitment
        event_log: Optional shared log; writes sync with it before committing

    Example:
        >>> ledger = ActionLedger(LinkableRingBackend())
        >>> ledger.join(identity.commitment)
        >>> proof = backend.prove(identity, ledger.group, POST_SCOPE, post_message(ref))
        >>> ledger.post(proof, ref)
    """

    def __init__(
        self,
        backend: ProofBackend,
        group_id: int = DEFAULT_GROUP_ID,
        *,
        clock: Callable[[], float] = time.time,
        reject_duplicate_members: bool = False,
        event_log: Optional[EventLogFile] = None,
    ):
        if not isinstance(backend, ProofBackend):
            raise TypeError("backend must implement ProofBackend")
        self._backend = backend
        self._clock = clock
        self._reject_duplicate_members = reject_duplicate_members
        self._event_log = event_log
        self._log_offset = 0
        self._state = LedgerState.initial(validate_scalar("group_id", group_id))
        # Reentrant so listeners may read the ledger while being notified
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

    # ========================================================================
    # REPLAY
    # ========================================================================

    @classmethod
    def replay(
        cls,
        events: Iterable[LedgerEvent],
        backend: ProofBackend,
        group_id: int = DEFAULT_GROUP_ID,
        **kwargs,
    ) -> "ActionLedger":
        """
        Rebuild a ledger by folding a recorded event stream.

        Events are not re-verified (proofs are not part of the log) and are
        neither re-logged nor delivered to listeners.

        Raises:
            EventLogError: If the stream is inconsistent
        """
        if kwargs.get("event_log") is not None:
            raise ValueError("use from_event_log() to replay an event log")
        ledger = cls(backend, group_id, **kwargs)
        with ledger._lock:
            for event in events:
                apply_event(ledger._state, event)
        logger.info(
            "replayed %d events: %d members, %d posts",
            len(ledger._state.history),
            ledger._state.group.size,
            len(ledger._state.posts),
        )
        return ledger

    @classmethod
    def from_event_log(
        cls,
        event_log: EventLogFile,
        backend: ProofBackend,
        group_id: int = DEFAULT_GROUP_ID,
        **kwargs,
    ) -> "ActionLedger":
        """Replay event_log, then keep appending new events to it."""
        ledger = cls(backend, group_id, event_log=event_log, **kwargs)
        applied = ledger.refresh()
        logger.info(
            "replayed %d events from %s: %d members, %d posts",
            applied,
            event_log.path,
            ledger._state.group.size,
            len(ledger._state.posts),
        )
        return ledger

    def refresh(self) -> int:
        """
        Fold records other writers appended to the event log since the last
        sync. Listeners receive them like local commits.

        Returns:
            Number of events applied (always 0 without an event log)
        """
        before = len(self)
        with self._writing():
            pass
        return len(self) - before

    # ========================================================================
    # WRITES
    # ========================================================================

    def join(self, commitment: int) -> MemberJoined:
        """
        Append commitment to the group.

        Raises:
            DuplicateMemberError: If duplicates are rejected and it already joined
        """
        validate_scalar("commitment", commitment)
        with self._writing():
            group = self._state.group
            if self._reject_duplicate_members and commitment in group:
                logger.warning("join rejected: duplicate_member")
                raise DuplicateMemberError("commitment already joined the group")

            new_group = group.add_member(commitment)
            event = MemberJoined(
                group_id=group.group_id,
                commitment=commitment,
                index=group.size,
                root=new_group.root,
            )
            self._commit(event)

        logger.info("member joined index=%d root=%s", event.index, short_hex(event.root))
        return event

    def post(self, proof: MembershipProof, content_ref: bytes) -> PostCreated:
        """
        Publish content_ref with a post-scoped proof.

        Raises:
            NullifierReusedError: If this identity already posted
            InvalidProofError: If the proof fails or is bound elsewhere
            StaleRootError: If the proof was built against an older root
        """
        ref = validate_content_ref(content_ref)
        self._require_proof(proof)
        key = post_nullifier_key(proof.nullifier)

        try:
            self._check_unused(key)
            self._check_proof(proof, post_message(ref), POST_SCOPE)
            with self._writing():
                self._check_unused(key)
                self._check_current_root(proof)
                event = PostCreated(
                    content_ref=ref,
                    timestamp=int(self._clock()),
                    nullifier=proof.nullifier,
                )
                self._commit(event)
        except (NullifierReusedError, InvalidProofError) as exc:
            logger.warning("post rejected: %s", _error_kind(exc))
            raise

        logger.info(
            "post accepted ref=%s nullifier=%s", ref.hex()[:12], short_hex(proof.nullifier)
        )
        return event

    def vote(self, proof: MembershipProof, content_ref: bytes, upvote: bool) -> VoteCast:
        """
        Vote on content_ref with a vote-scoped proof.

        The expected message binds the direction, so a captured upvote
        proof cannot be submitted as a downvote.

        Raises:
            NullifierReusedError: If this identity already voted on content_ref
            InvalidProofError: If the proof fails or is bound elsewhere
            StaleRootError: If the proof was built against an older root
        """
        ref = validate_content_ref(content_ref)
        if not isinstance(upvote, bool):
            raise TypeError("upvote must be bool")
        self._require_proof(proof)
        key = vote_nullifier_key(ref, proof.nullifier)

        try:
            self._check_unused(key)
            self._check_proof(proof, vote_message(ref, upvote), vote_scope(ref))
            with self._writing():
                self._check_unused(key)
                self._check_current_root(proof)
                event = VoteCast(content_ref=ref, upvote=upvote, nullifier=proof.nullifier)
                self._commit(event)
        except (NullifierReusedError, InvalidProofError) as exc:
            logger.warning("vote rejected: %s", _error_kind(exc))
            raise

        logger.info(
            "vote accepted ref=%s up=%s nullifier=%s",
            ref.hex()[:12],
            upvote,
            short_hex(proof.nullifier),
        )
        return event

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def backend(self) -> ProofBackend:
        return self._backend

    @property
    def group_id(self) -> int:
        return self._state.group.group_id

    @property
    def group(self) -> Group:
        """Current roster snapshot (immutable)."""
        return self._state.group

    @property
    def root(self) -> int:
        return self._state.group.root

    @property
    def members(self) -> Tuple[int, ...]:
        return self._state.group.members

    def has_member(self, commitment: int) -> bool:
        return commitment in self._state.group

    def votes_for(self, content_ref: bytes) -> int:
        """Current tally for content_ref; 0 if nobody voted."""
        ref = validate_content_ref(content_ref)
        with self._lock:
            return self._state.tallies.get(ref, 0)

    def get_post(self, content_ref: bytes) -> Optional[Post]:
        ref = validate_content_ref(content_ref)
        with self._lock:
            return self._state.posts.get(ref)

    def posts(self) -> List[Post]:
        """Posts in first-publication order."""
        with self._lock:
            return list(self._state.posts.values())

    def is_nullifier_used(
        self, kind: ActionKind, disambiguator: bytes, nullifier: int
    ) -> bool:
        key = nullifier_key(kind, disambiguator, nullifier)
        with self._lock:
            return key in self._state.used_nullifiers

    def events(self, since: int = 0) -> List[LedgerEvent]:
        """Committed events from position `since` onward."""
        if since < 0:
            raise ValueError("since must be non-negative")
        with self._lock:
            return list(self._state.history[since:])

    def __len__(self) -> int:
        with self._lock:
            return len(self._state.history)

    # ========================================================================
    # SUBSCRIPTION
    # ========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Deliver every future event to listener, in commit order.

        Returns:
            Callable that removes the listener
        """
        if not callable(listener):
            raise TypeError("listener must be callable")
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @staticmethod
    def _require_proof(proof: MembershipProof) -> None:
        if not isinstance(proof, MembershipProof):
            raise TypeError("proof must be MembershipProof")

    def _check_unused(self, key: bytes) -> None:
        with self._lock:
            if key in self._state.used_nullifiers:
                raise NullifierReusedError("nullifier already used for this action")

    def _check_proof(self, proof: MembershipProof, message: int, scope: int) -> None:
        if proof.message != message:
            raise InvalidProofError("proof message does not match the action")
        if proof.scope != scope:
            raise InvalidProofError("proof scope does not match the action")
        if not MIN_TREE_DEPTH <= proof.depth <= MAX_TREE_DEPTH:
            raise InvalidProofError(f"proof depth {proof.depth} out of range")
        if not self._backend.verify(self.group_id, proof):
            raise InvalidProofError("proof verification failed")

    def _check_current_root(self, proof: MembershipProof) -> None:
        if proof.root != self._state.group.root:
            raise StaleRootError("proof was generated against a stale group root")

    @contextmanager
    def _writing(self) -> Iterator[None]:
        with self._lock:
            if self._event_log is None:
                yield
                return
            with self._event_log.lock():
                self._catch_up()
                yield

    def _catch_up(self) -> None:
        # Caller holds both locks
        for event, end in self._event_log.read_from(self._log_offset):
            apply_event(self._state, event)
            self._log_offset = end
            self._notify(event)

    def _commit(self, event: LedgerEvent) -> None:
        # Caller is inside _writing()
        if self._event_log is not None:
            self._log_offset = self._event_log.append(event)
        apply_event(self._state, event)
        self._notify(event)

    def _notify(self, event: LedgerEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("ledger listener failed on %s", event.kind)


def _error_kind(exc: Exception) -> str:
    if isinstance(exc, StaleRootError):
        return "stale_root"
    if isinstance(exc, InvalidProofError):
        return "invalid_proof"
    if isinstance(exc, NullifierReusedError):
        return "nullifier_reused"
    return type(exc).__name__
