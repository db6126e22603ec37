"""
Ledger events and the state fold.

apply_event() is the single state transition: the live ledger commits every
accepted action through it, and replay() rebuilds a ledger by folding a
recorded event stream through the same function.
"""

from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Set, Tuple, Union

import cbor2

from .exceptions import EventLogError
from .group import Group
from .scopes import post_nullifier_key, vote_nullifier_key
from .types import (
    ref_to_hex,
    scalar_to_hex,
    validate_content_ref,
    validate_scalar,
)

_RECORD_HEADER_BYTES = 4
MAX_EVENT_RECORD_BYTES = 64 * 1024


# ============================================================================
# EVENTS
# ============================================================================


@dataclass(frozen=True)
class MemberJoined:
    group_id: int
    commitment: int
    index: int
    root: int

    kind = "member_joined"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.kind,
            "group_id": self.group_id,
            "commitment": scalar_to_hex(self.commitment),
            "index": self.index,
            "root": scalar_to_hex(self.root),
        }


@dataclass(frozen=True)
class PostCreated:
    content_ref: bytes
    timestamp: int
    nullifier: int

    kind = "post_created"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.kind,
            "content_ref": ref_to_hex(self.content_ref),
            "timestamp": self.timestamp,
            "nullifier": scalar_to_hex(self.nullifier),
        }


@dataclass(frozen=True)
class VoteCast:
    content_ref: bytes
    upvote: bool
    nullifier: int

    kind = "vote_cast"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.kind,
            "content_ref": ref_to_hex(self.content_ref),
            "upvote": self.upvote,
            "nullifier": scalar_to_hex(self.nullifier),
        }


LedgerEvent = Union[MemberJoined, PostCreated, VoteCast]


@dataclass(frozen=True)
class Post:
    """A published post; immutable apart from its derived tally."""

    ref: bytes
    created_at: int


# ============================================================================
# STATE + FOLD
# ============================================================================


@dataclass
class LedgerState:
    """Everything the ledger owns, mutated only through apply_event()."""

    group: Group
    used_nullifiers: Set[bytes] = field(default_factory=set)
    posts: Dict[bytes, Post] = field(default_factory=dict)
    tallies: Dict[bytes, int] = field(default_factory=dict)
    history: List[LedgerEvent] = field(default_factory=list)

    @classmethod
    def initial(cls, group_id: int) -> "LedgerState":
        return cls(group=Group.create(group_id))


def apply_event(state: LedgerState, event: LedgerEvent) -> None:
    """
    Apply one event to state.

    All checks run before any mutation, so a rejected event leaves state
    untouched.

    Raises:
        EventLogError: If the event is inconsistent with state
    """
    if isinstance(event, MemberJoined):
        group = state.group
        if event.group_id != group.group_id:
            raise EventLogError(
                f"event for group {event.group_id}, ledger holds group {group.group_id}"
            )
        if event.index != group.size:
            raise EventLogError(
                f"member index {event.index} does not follow roster size {group.size}"
            )
        try:
            new_group = group.add_member(event.commitment)
        except (TypeError, ValueError) as exc:
            raise EventLogError(f"cannot add member {event.index}: {exc}") from exc
        if new_group.root != event.root:
            raise EventLogError(f"root mismatch after join at index {event.index}")
        state.group = new_group

    elif isinstance(event, PostCreated):
        key = post_nullifier_key(event.nullifier)
        if key in state.used_nullifiers:
            raise EventLogError("post nullifier recorded twice")
        state.used_nullifiers.add(key)
        # Re-posting a ref keeps the first createdAt
        if event.content_ref not in state.posts:
            state.posts[event.content_ref] = Post(event.content_ref, event.timestamp)

    elif isinstance(event, VoteCast):
        key = vote_nullifier_key(event.content_ref, event.nullifier)
        if key in state.used_nullifiers:
            raise EventLogError("vote nullifier recorded twice")
        state.used_nullifiers.add(key)
        delta = 1 if event.upvote else -1
        state.tallies[event.content_ref] = state.tallies.get(event.content_ref, 0) + delta

    else:
        raise EventLogError(f"unknown event type {type(event).__name__}")

    state.history.append(event)


def fold_events(group_id: int, events: Iterable[LedgerEvent]) -> LedgerState:
    """Fold an ordered event stream into a fresh state."""
    state = LedgerState.initial(group_id)
    for event in events:
        apply_event(state, event)
    return state


# ============================================================================
# ENCODING
# ============================================================================


def event_to_cbor_obj(event: LedgerEvent) -> Dict[str, Any]:
    if isinstance(event, MemberJoined):
        return {
            "k": event.kind,
            "g": event.group_id,
            "c": event.commitment,
            "i": event.index,
            "r": event.root,
        }
    if isinstance(event, PostCreated):
        return {
            "k": event.kind,
            "ref": event.content_ref,
            "ts": event.timestamp,
            "n": event.nullifier,
        }
    if isinstance(event, VoteCast):
        return {
            "k": event.kind,
            "ref": event.content_ref,
            "up": event.upvote,
            "n": event.nullifier,
        }
    raise TypeError(f"unknown event type {type(event).__name__}")


def _require_int(obj: Dict[str, Any], key: str) -> int:
    value = obj.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"event field {key!r} must be int")
    return value


def event_from_cbor_obj(obj: Any) -> LedgerEvent:
    """
    Rebuild an event from a decoded CBOR map.

    Raises:
        ValueError: If the map is not a valid event
    """
    if not isinstance(obj, dict):
        raise ValueError("event must be a map")

    kind = obj.get("k")
    try:
        if kind == MemberJoined.kind:
            index = _require_int(obj, "i")
            if index < 0:
                raise ValueError("member index must be non-negative")
            return MemberJoined(
                group_id=validate_scalar("group_id", _require_int(obj, "g")),
                commitment=validate_scalar("commitment", _require_int(obj, "c")),
                index=index,
                root=validate_scalar("root", _require_int(obj, "r")),
            )
        if kind == PostCreated.kind:
            return PostCreated(
                content_ref=validate_content_ref(obj.get("ref")),
                timestamp=_require_int(obj, "ts"),
                nullifier=validate_scalar("nullifier", _require_int(obj, "n")),
            )
        if kind == VoteCast.kind:
            upvote = obj.get("up")
            if not isinstance(upvote, bool):
                raise ValueError("event field 'up' must be bool")
            return VoteCast(
                content_ref=validate_content_ref(obj.get("ref")),
                upvote=upvote,
                nullifier=validate_scalar("nullifier", _require_int(obj, "n")),
            )
    except TypeError as exc:
        raise ValueError(str(exc)) from exc

    raise ValueError(f"unknown event kind {kind!r}")


def encode_event(event: LedgerEvent) -> bytes:
    return cbor2.dumps(event_to_cbor_obj(event))


def decode_event(data: bytes) -> LedgerEvent:
    try:
        obj = cbor2.loads(data)
    except (cbor2.CBORError, ValueError, TypeError) as exc:
        raise ValueError(f"invalid event encoding: {exc}") from exc
    return event_from_cbor_obj(obj)


# ============================================================================
# EVENT LOG FILE
# ============================================================================


class EventLogFile:
    """
    Append-only file of length-prefixed CBOR event records.

    Each record is a 4-byte big-endian length followed by the encoded event.
    Several processes may share one log: writers hold lock() while they
    catch up with records appended by others and commit their own.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def lock(self) -> Iterator[None]:
        """Hold an exclusive advisory lock on the log (blocks until acquired)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open("a") as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def append(self, event: LedgerEvent) -> int:
        """Append one record; returns the end offset of the log."""
        record = encode_event(event)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("ab") as fh:
            fh.write(len(record).to_bytes(_RECORD_HEADER_BYTES, "big"))
            fh.write(record)
            fh.flush()
            os.fsync(fh.fileno())
            return fh.tell()

    def __iter__(self) -> Iterator[LedgerEvent]:
        return self.read()

    def read(self) -> Iterator[LedgerEvent]:
        """
        Yield events in recorded order.

        Raises:
            EventLogError: On truncated, oversized or undecodable records
        """
        for event, _ in self.read_from(0):
            yield event

    def read_from(self, offset: int) -> Iterator[Tuple[LedgerEvent, int]]:
        """Yield (event, end offset) for every record starting at offset."""
        if not self.path.exists():
            return

        with self.path.open("rb") as fh:
            fh.seek(offset)
            position = offset
            while True:
                header = fh.read(_RECORD_HEADER_BYTES)
                if not header:
                    return
                if len(header) != _RECORD_HEADER_BYTES:
                    raise EventLogError(f"truncated record header at offset {position}")

                length = int.from_bytes(header, "big")
                if length > MAX_EVENT_RECORD_BYTES:
                    raise EventLogError(f"oversized record at offset {position}")

                record = fh.read(length)
                if len(record) != length:
                    raise EventLogError(f"truncated record at offset {position}")

                try:
                    event = decode_event(record)
                except ValueError as exc:
                    raise EventLogError(
                        f"undecodable record at offset {position}: {exc}"
                    ) from exc

                position += _RECORD_HEADER_BYTES + length
                yield event, position
