import dataclasses

import cbor2
import pytest

from anon_social_poc.action_protocol.backends.mock_adapter import MockProofBackend
from anon_social_poc.action_protocol.exceptions import NotAMemberError
from anon_social_poc.action_protocol.group import Group
from anon_social_poc.action_protocol.identity import derive_identity
from anon_social_poc.action_protocol.scopes import POST_SCOPE


@pytest.fixture
def backend():
    return MockProofBackend()


@pytest.fixture
def alice():
    return derive_identity(b"alice")


@pytest.fixture
def group(alice):
    return Group.from_members(3, [alice.commitment, derive_identity(b"bob").commitment])


def test_prove_and_verify(backend, alice, group) -> None:
    proof = backend.prove(alice, group, POST_SCOPE, 99)
    assert backend.verify(group.group_id, proof) is True
    assert proof.nullifier == backend.compute_nullifier(alice, POST_SCOPE)
    assert cbor2.loads(proof.payload)["adapter"] == "mock"


def test_proofs_are_deterministic(backend, alice, group) -> None:
    assert backend.prove(alice, group, POST_SCOPE, 99) == backend.prove(
        alice, group, POST_SCOPE, 99
    )


@pytest.mark.parametrize("field", ["root", "nullifier", "message", "scope", "depth"])
def test_public_fields_are_bound(backend, alice, group, field) -> None:
    proof = backend.prove(alice, group, POST_SCOPE, 99)
    tampered = dataclasses.replace(proof, **{field: getattr(proof, field) + 1})
    assert backend.verify(group.group_id, tampered) is False


def test_wrong_group_rejected(backend, alice, group) -> None:
    proof = backend.prove(alice, group, POST_SCOPE, 99)
    assert backend.verify(group.group_id + 1, proof) is False


@pytest.mark.parametrize(
    "payload",
    [b"", b"\xff", cbor2.dumps({"v": 1, "adapter": "ring", "b": b""}), cbor2.dumps({"v": 1})],
)
def test_malformed_payload_rejected(backend, alice, group, payload) -> None:
    proof = backend.prove(alice, group, POST_SCOPE, 99)
    assert backend.verify(group.group_id, dataclasses.replace(proof, payload=payload)) is False


def test_non_member_cannot_prove(backend, group) -> None:
    with pytest.raises(NotAMemberError):
        backend.prove(derive_identity(b"mallory"), group, POST_SCOPE, 99)


def test_backend_info_marks_mock(backend) -> None:
    assert backend.get_backend_info()["security"] == "mock_only"
