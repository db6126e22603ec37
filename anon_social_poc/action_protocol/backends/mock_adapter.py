from __future__ import annotations

from typing import Any, Dict

import cbor2

from ..config import DOMAIN_SEPARATORS, MAX_TREE_DEPTH, MIN_TREE_DEPTH, PROOF_VERSION
from ..exceptions import NotAMemberError
from ..group import Group
from ..identity import Identity
from ..interfaces import ProofBackend
from ..security import constant_time_compare, hash_parts, hash_parts_to_int
from ..types import MembershipProof


def _u256(value: int) -> bytes:
    return value.to_bytes(32, "big")


class MockProofBackend(ProofBackend):
    """
    Transcript-binding backend for fast tests.

    Notes:
    - The payload is a hash over the public fields, so tampering with any
      field is detected.
    - It does NOT provide anonymity or membership soundness: anyone can
      build a payload that verifies. Never use it to guard a real ledger.
    """

    _BACKEND_NAME = "MockProofBackend"
    _BACKEND_VERSION = "0.1.0"

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    def compute_nullifier(self, identity: Identity, scope: int) -> int:
        return hash_parts_to_int(
            DOMAIN_SEPARATORS["mock_binding"],
            b"nullifier",
            _u256(identity.secret),
            _u256(scope),
        )

    @staticmethod
    def _binding(
        group_id: int, depth: int, root: int, scope: int, message: int, nullifier: int
    ) -> bytes:
        return hash_parts(
            DOMAIN_SEPARATORS["mock_binding"],
            b"binding",
            _u256(group_id),
            depth.to_bytes(4, "big"),
            _u256(root),
            _u256(scope),
            _u256(message),
            _u256(nullifier),
        )

    def prove(
        self, identity: Identity, group: Group, scope: int, message: int
    ) -> MembershipProof:
        if not isinstance(identity, Identity):
            raise TypeError("identity must be Identity")
        if not isinstance(group, Group):
            raise TypeError("group must be Group")
        if identity.commitment not in group:
            raise NotAMemberError("identity commitment is not a member of the group")

        nullifier = self.compute_nullifier(identity, scope)
        binding = self._binding(
            group.group_id, group.depth, group.root, scope, message, nullifier
        )
        payload = cbor2.dumps({"v": PROOF_VERSION, "adapter": "mock", "b": binding})
        return MembershipProof(
            depth=group.depth,
            root=group.root,
            nullifier=nullifier,
            message=message,
            scope=scope,
            payload=payload,
        )

    def verify(self, group_id: int, proof: MembershipProof) -> bool:
        try:
            if not isinstance(proof, MembershipProof):
                return False
            if not MIN_TREE_DEPTH <= proof.depth <= MAX_TREE_DEPTH:
                return False

            obj = cbor2.loads(proof.payload)
            if not isinstance(obj, dict):
                return False
            if obj.get("v") != PROOF_VERSION or obj.get("adapter") != "mock":
                return False
            binding = obj.get("b")
            if not isinstance(binding, bytes):
                return False

            expected = self._binding(
                group_id, proof.depth, proof.root, proof.scope, proof.message,
                proof.nullifier,
            )
            return constant_time_compare(binding, expected)
        except Exception:
            return False

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "adapter": "mock",
            "security": "mock_only",
        }
