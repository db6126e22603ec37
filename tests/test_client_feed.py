"""
Client flows: upload, prove, submit, and the derived feed.
"""

import hashlib
import json

import pytest
import trio

from anon_social_poc.action_protocol.backends.mock_adapter import MockProofBackend
from anon_social_poc.action_protocol.codec import from_ref, to_ref
from anon_social_poc.action_protocol.exceptions import (
    ContentUnavailableError,
    NotAMemberError,
    NullifierReusedError,
)
from anon_social_poc.action_protocol.identity import derive_identity
from anon_social_poc.action_protocol.ledger import ActionLedger
from anon_social_poc.client import AnonSocialClient, build_feed
from anon_social_poc.content_store import (
    DirectoryContentStore,
    InMemoryContentStore,
    PostBody,
    identifier_for,
)


class Clock:
    def __init__(self, start: int = 1000):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def ledger(clock):
    return ActionLedger(MockProofBackend(), clock=clock)


@pytest.fixture
def store():
    return InMemoryContentStore()


def _client(ledger, store, name: bytes, clock) -> AnonSocialClient:
    return AnonSocialClient(ledger, ledger.backend, store, derive_identity(name), clock=clock)


def test_ensure_joined_once(ledger, store, clock) -> None:
    alice = _client(ledger, store, b"alice", clock)
    assert alice.is_member is False
    event = alice.ensure_joined()
    assert event.index == 0
    assert alice.ensure_joined() is None
    assert alice.is_member is True
    assert ledger.group.size == 1


def test_publish_and_vote(ledger, store, clock) -> None:
    alice = _client(ledger, store, b"alice", clock)
    bob = _client(ledger, store, b"bob", clock)
    alice.ensure_joined()
    bob.ensure_joined()

    event = alice.publish("first!")
    assert alice.has_posted() is True
    assert bob.has_posted() is False
    assert json.loads(store.get(from_ref(event.content_ref)))["text"] == "first!"

    with pytest.raises(NullifierReusedError):
        alice.publish("second")

    bob.vote(event.content_ref, upvote=True)
    assert bob.has_voted(event.content_ref) is True
    assert alice.has_voted(event.content_ref) is False
    assert ledger.votes_for(event.content_ref) == 1


def test_non_member_cannot_publish(ledger, store, clock) -> None:
    with pytest.raises(NotAMemberError):
        _client(ledger, store, b"mallory", clock).publish("hi")
    assert ledger.posts() == []


def test_post_length_limit(ledger, store, clock) -> None:
    alice = AnonSocialClient(
        ledger, ledger.backend, store, derive_identity(b"alice"), max_post_chars=5
    )
    alice.ensure_joined()
    with pytest.raises(ValueError, match="exceeds 5"):
        alice.publish("too long")


def test_feed_newest_first_with_tallies(ledger, store, clock) -> None:
    clients = [_client(ledger, store, name, clock) for name in (b"a", b"b", b"c")]
    for client in clients:
        client.ensure_joined()

    clock.now = 100
    old = clients[0].publish("old")
    clock.now = 300
    new = clients[1].publish("new")
    tied = clients[2].publish("tied")

    clients[0].vote(old.content_ref, True)
    clients[1].vote(old.content_ref, True)
    clients[2].vote(new.content_ref, False)

    feed = clients[0].feed()
    assert [item.text for item in feed] == ["tied", "new", "old"]
    assert [item.votes for item in feed] == [0, -1, 2]
    assert feed[2].identifier == from_ref(old.content_ref)
    assert feed[0].content_ref == tied.content_ref


def test_feed_skips_missing_content(ledger, store, clock) -> None:
    alice = _client(ledger, store, b"alice", clock)
    alice.ensure_joined()
    event = alice.publish("kept")

    # A post whose body lives in someone else's store
    bob = AnonSocialClient(
        ledger, ledger.backend, InMemoryContentStore(), derive_identity(b"bob"), clock=clock
    )
    bob.ensure_joined()
    bob.publish("elsewhere")

    assert [item.content_ref for item in alice.feed()] == [event.content_ref]


def test_feed_needs_no_identity(ledger, store, clock) -> None:
    alice = _client(ledger, store, b"alice", clock)
    alice.ensure_joined()
    event = alice.publish("readable by anyone")

    items = build_feed(ledger, store)
    assert [item.content_ref for item in items] == [event.content_ref]
    assert items == alice.feed()
    assert ledger.group.size == 1


def test_async_variants(ledger, store, clock) -> None:
    alice = _client(ledger, store, b"alice", clock)
    alice.ensure_joined()

    async def main():
        event = await alice.publish_async("from a worker thread")
        await alice.vote_async(event.content_ref, False)
        return event

    event = trio.run(main)
    assert ledger.votes_for(event.content_ref) == -1


# ============================================================================
# CONTENT STORES
# ============================================================================


def test_identifier_matches_sha256_reference() -> None:
    data = b"some bytes"
    assert to_ref(identifier_for(data)) == hashlib.sha256(data).digest()


def test_memory_store_accepts_modern_identifiers(store) -> None:
    identifier = store.put(b"payload")
    modern = from_ref(to_ref(identifier), form="modern")
    assert store.get(modern) == b"payload"
    assert store.get(from_ref(bytes([1]) * 32)) is None
    assert len(store) == 1


def test_directory_store(tmp_path) -> None:
    store = DirectoryContentStore(tmp_path / "content")
    identifier = store.put(b"on disk")
    assert store.put(b"on disk") == identifier
    assert store.get(identifier) == b"on disk"
    assert store.get(from_ref(bytes([2]) * 32)) is None


def test_directory_store_detects_corruption(tmp_path) -> None:
    store = DirectoryContentStore(tmp_path)
    identifier = store.put(b"original")
    (tmp_path / identifier).write_bytes(b"tampered")
    assert store.get(identifier) is None


def test_directory_store_write_failure(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    store = DirectoryContentStore(blocker / "content")
    with pytest.raises(ContentUnavailableError):
        store.put(b"data")


def test_store_rejects_non_bytes(store, tmp_path) -> None:
    with pytest.raises(TypeError):
        store.put("text")
    with pytest.raises(TypeError):
        DirectoryContentStore(tmp_path).put("text")


def test_post_body_document() -> None:
    body = PostBody(text="hi", created_at=5)
    doc = json.loads(body.to_bytes())
    assert doc == {"text": "hi", "createdAt": 5, "version": "1"}
    assert PostBody.from_bytes(body.to_bytes()) == body


@pytest.mark.parametrize(
    "data",
    [b"\xff", b"[]", b'{"createdAt": 1}', b'{"text": "x", "createdAt": "soon"}'],
)
def test_post_body_rejects_bad_documents(data) -> None:
    with pytest.raises(ValueError):
        PostBody.from_bytes(data)
