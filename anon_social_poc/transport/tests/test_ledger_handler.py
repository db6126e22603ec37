import dataclasses
import hashlib

import cbor2
import pytest

from anon_social_poc.action_protocol.backends.mock_adapter import MockProofBackend
from anon_social_poc.action_protocol.events import event_from_cbor_obj
from anon_social_poc.action_protocol.exceptions import (
    DuplicateMemberError,
    InvalidProofError,
    NullifierReusedError,
    StaleRootError,
)
from anon_social_poc.action_protocol.identity import derive_identity
from anon_social_poc.action_protocol.ledger import ActionLedger
from anon_social_poc.action_protocol.scopes import (
    POST_SCOPE,
    post_message,
    vote_message,
    vote_scope,
)
from anon_social_poc.transport.constants import MSG_V
from anon_social_poc.transport.errors import SchemaError
from anon_social_poc.transport.handler import error_kind_for, handle_request_bytes
from anon_social_poc.transport.messages import (
    LedgerRequest,
    decode_response,
    encode_request,
)

REF = hashlib.sha256(b"handler-post").digest()


@pytest.fixture
def backend():
    return MockProofBackend()


@pytest.fixture
def alice():
    return derive_identity(b"alice")


@pytest.fixture
def ledger(backend, alice):
    ledger = ActionLedger(backend, clock=lambda: 1234)
    ledger.join(alice.commitment)
    return ledger


def _call(ledger, **fields):
    blob = encode_request(LedgerRequest(msg_v=MSG_V, **fields))
    return decode_response(handle_request_bytes(blob, ledger))


def test_join_over_wire(ledger) -> None:
    resp = _call(ledger, op="join", commitment=derive_identity(b"bob").commitment)
    assert resp.ok is True
    event = event_from_cbor_obj(resp.result["event"])
    assert event.index == 1
    assert event.root == ledger.root


def test_post_and_duplicate(backend, ledger, alice) -> None:
    proof = backend.prove(alice, ledger.group, POST_SCOPE, post_message(REF))
    resp = _call(ledger, op="post", proof=proof, content_ref=REF)
    assert resp.ok is True
    assert event_from_cbor_obj(resp.result["event"]).timestamp == 1234

    again = _call(ledger, op="post", proof=proof, content_ref=REF)
    assert again.ok is False
    assert again.err == "nullifier_reused"
    assert again.result == {}


def test_vote_and_tally(backend, ledger, alice) -> None:
    proof = backend.prove(alice, ledger.group, vote_scope(REF), vote_message(REF, False))
    assert _call(ledger, op="vote", proof=proof, content_ref=REF, upvote=False).ok
    resp = _call(ledger, op="votes_for", content_ref=REF)
    assert resp.result == {"tally": -1}


def test_invalid_and_stale_proofs(backend, ledger, alice) -> None:
    proof = backend.prove(alice, ledger.group, POST_SCOPE, post_message(REF))
    forged = dataclasses.replace(proof, message=proof.message + 1)
    assert _call(ledger, op="post", proof=forged, content_ref=REF).err == "invalid_proof"

    ledger.join(derive_identity(b"bob").commitment)
    assert _call(ledger, op="post", proof=proof, content_ref=REF).err == "stale_root"


def test_duplicate_member_kind(backend, alice) -> None:
    ledger = ActionLedger(backend, reject_duplicate_members=True)
    ledger.join(alice.commitment)
    resp = _call(ledger, op="join", commitment=alice.commitment)
    assert resp.err == "duplicate_member"


def test_events_paging(ledger) -> None:
    for name in (b"bob", b"carol", b"dave"):
        ledger.join(derive_identity(name).commitment)

    first = _call(ledger, op="events", since=0, limit=3)
    assert len(first.result["events"]) == 3
    assert first.result["next"] == 3

    rest = _call(ledger, op="events", since=3, limit=3)
    assert len(rest.result["events"]) == 1
    assert rest.result["next"] == 4


def test_group_snapshot(ledger, alice) -> None:
    resp = _call(ledger, op="group")
    assert resp.result["members"] == [alice.commitment]
    assert resp.result["root"] == ledger.root
    assert resp.result["depth"] == 1
    assert resp.result["size"] == 1


def test_garbage_never_raises(ledger) -> None:
    for blob in (b"", b"\xff", cbor2.dumps({"op": "post"}), cbor2.dumps("x")):
        resp = decode_response(handle_request_bytes(blob, ledger))
        assert resp.ok is False
        assert resp.err == "malformed_request"


def test_internal_errors_are_masked(ledger, monkeypatch) -> None:
    def explode(commitment):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(ledger, "join", explode)
    resp = _call(ledger, op="join", commitment=5)
    assert resp.err == "internal_error"
    assert "disk" not in resp.detail


@pytest.mark.parametrize(
    "exc,kind",
    [
        (StaleRootError("x"), "stale_root"),
        (InvalidProofError("x"), "invalid_proof"),
        (NullifierReusedError("x"), "nullifier_reused"),
        (DuplicateMemberError("x"), "duplicate_member"),
        (SchemaError("x"), "malformed_request"),
        (ValueError("x"), "malformed_request"),
        (KeyError("x"), "internal_error"),
    ],
)
def test_error_kind_mapping(exc, kind) -> None:
    assert error_kind_for(exc) == kind
