"""
End-to-end scenario with the linkable ring backend.

One group, real membership proofs, a post, a replayed post, and votes in
both directions from different members.
"""

import hashlib

import pytest

from anon_social_poc.action_protocol import (
    ActionLedger,
    EventLogFile,
    InvalidProofError,
    LinkableRingBackend,
    NullifierReusedError,
    POST_SCOPE,
    StaleRootError,
    derive_identity,
    post_message,
    vote_message,
    vote_scope,
)
from anon_social_poc.action_protocol.events import PostCreated


@pytest.fixture(scope="module")
def backend():
    return LinkableRingBackend()


def test_post_then_votes(backend) -> None:
    print("\n" + "=" * 70)
    print("SCENARIO: anonymous post and votes")
    print("=" * 70)

    m1, m2, m3 = (derive_identity(name) for name in (b"m1", b"m2", b"m3"))
    ledger = ActionLedger(backend)
    for member in (m1, m2, m3):
        ledger.join(member.commitment)

    ref = hashlib.sha256(b"abc").digest()

    proof1 = backend.prove(m1, ledger.group, POST_SCOPE, post_message(ref))
    event = ledger.post(proof1, ref)
    assert isinstance(event, PostCreated)
    print("✓ Post accepted")

    with pytest.raises(NullifierReusedError):
        ledger.post(proof1, ref)
    print("✓ Replayed post rejected")

    proof2 = backend.prove(m2, ledger.group, vote_scope(ref), vote_message(ref, True))
    ledger.vote(proof2, ref, True)
    assert ledger.votes_for(ref) == 1

    proof3 = backend.prove(m3, ledger.group, vote_scope(ref), vote_message(ref, False))
    ledger.vote(proof3, ref, False)
    assert ledger.votes_for(ref) == 0
    print("✓ Votes tallied")


def test_poster_is_not_identified(backend) -> None:
    members = [derive_identity(f"anon-{i}".encode()) for i in range(4)]
    ledger = ActionLedger(backend)
    for member in members:
        ledger.join(member.commitment)

    ref = hashlib.sha256(b"who wrote this").digest()
    event = ledger.post(backend.prove(members[2], ledger.group, POST_SCOPE, post_message(ref)), ref)

    # The recorded event carries only the nullifier; no commitment appears
    assert event.nullifier not in ledger.members
    assert set(event.to_dict()) == {"event", "content_ref", "timestamp", "nullifier"}


def test_join_between_prove_and_submit(backend) -> None:
    a, b = derive_identity(b"a"), derive_identity(b"b")
    ledger = ActionLedger(backend)
    ledger.join(a.commitment)

    ref = hashlib.sha256(b"race").digest()
    early = backend.prove(a, ledger.group, POST_SCOPE, post_message(ref))
    ledger.join(b.commitment)

    with pytest.raises(StaleRootError):
        ledger.post(early, ref)
    assert not ledger.posts()

    fresh = backend.prove(a, ledger.group, POST_SCOPE, post_message(ref))
    ledger.post(fresh, ref)
    assert ledger.get_post(ref) is not None


def test_proof_from_other_group_rejected(backend) -> None:
    a = derive_identity(b"a")
    home = ActionLedger(backend, group_id=1)
    away = ActionLedger(backend, group_id=2)
    home.join(a.commitment)
    away.join(a.commitment)

    ref = hashlib.sha256(b"cross-group").digest()
    proof = backend.prove(a, home.group, POST_SCOPE, post_message(ref))
    with pytest.raises(InvalidProofError):
        away.post(proof, ref)


def test_state_survives_restart(tmp_path, backend) -> None:
    members = [derive_identity(f"restart-{i}".encode()) for i in range(2)]
    path = tmp_path / "events.log"
    ledger = ActionLedger.from_event_log(EventLogFile(path), backend)
    for member in members:
        ledger.join(member.commitment)
    ref = hashlib.sha256(b"persist").digest()
    ledger.post(backend.prove(members[0], ledger.group, POST_SCOPE, post_message(ref)), ref)

    restarted = ActionLedger.from_event_log(EventLogFile(path), backend)
    assert restarted.root == ledger.root
    assert restarted.get_post(ref) == ledger.get_post(ref)

    # Existing members keep proving against the restored roster
    with pytest.raises(NullifierReusedError):
        restarted.post(
            backend.prove(members[0], restarted.group, POST_SCOPE, post_message(ref)), ref
        )
    proof = backend.prove(members[1], restarted.group, vote_scope(ref), vote_message(ref, True))
    restarted.vote(proof, ref, True)
    assert restarted.votes_for(ref) == 1
