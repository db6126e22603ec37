"""
⚠️ DRAFT — requires crypto review before production use

Scope-linkable ring signature backend (LSAG, Liu-Wei-Wong) over edwards25519.

Every member commitment P_i = x_i·G is a ring public key. For a scope with
base point H_s = hash_to_point(scope), the signer publishes the key image
I = x·H_s as the nullifier: deterministic per (secret, scope) and
unlinkable to P_i without x.

Proof payload (CBOR, versioned):
    {"v": 1, "ring": [P_0 .. P_{n-1}], "c0": c_0, "s": [s_i for signers]}

"ring" is the full roster in insertion order so the verifier can recompute
the group root. Members whose commitment is not a valid subgroup point
cannot sign and are skipped identically by prover and verifier.

The transcript binds (group_id, depth, root, scope, message, nullifier), so
changing any public field after generation breaks the challenge ring.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Tuple

import cbor2

from ..config import (
    DOMAIN_SEPARATORS,
    MAX_RING_SIZE,
    MAX_TREE_DEPTH,
    MIN_TREE_DEPTH,
    POINT_SIZE_BYTES,
    PROOF_VERSION,
)
from ..curve import (
    CurveParameters,
    base_mul,
    decode_element,
    encode_element,
    get_cached_curve_params,
    hash_to_point,
    is_valid_point,
    point_add,
    point_mul,
    scalar_from_bytes,
    scalar_to_bytes,
)
from ..exceptions import NotAMemberError, ProofGenerationError
from ..group import Group
from ..identity import Identity
from ..interfaces import ProofBackend
from ..merkle import roster_root, tree_depth
from ..security import (
    RandomnessSource,
    constant_time_compare,
    fiat_shamir_challenge,
    hash_parts,
)
from ..types import MembershipProof

logger = logging.getLogger(__name__)


def _u256(value: int) -> bytes:
    return value.to_bytes(32, "big")


def scope_base(scope: int) -> bytes:
    """H_s: per-scope base point for key images."""
    return hash_to_point(DOMAIN_SEPARATORS["nullifier_base"], _u256(scope))


def transcript_digest(
    group_id: int, depth: int, root: int, scope: int, message: int, nullifier: int
) -> bytes:
    return hash_parts(
        DOMAIN_SEPARATORS["ring_transcript"],
        _u256(group_id),
        depth.to_bytes(4, "big"),
        _u256(root),
        _u256(scope),
        _u256(message),
        _u256(nullifier),
    )


def _challenge(transcript: bytes, left: bytes, right: bytes) -> int:
    return fiat_shamir_challenge(
        DOMAIN_SEPARATORS["ring_challenge"], transcript, left, right
    )


def _ring_step(
    s: int, c: int, public_key: bytes, base: bytes, key_image: bytes
) -> Tuple[bytes, bytes]:
    # L = s·G + c·P,  R = s·H_s + c·I
    left = point_add(base_mul(s), point_mul(c, public_key))
    right = point_add(point_mul(s, base), point_mul(c, key_image))
    return left, right


def _signer_keys(ring: List[bytes]) -> List[bytes]:
    return [point for point in ring if is_valid_point(point)]


class LinkableRingBackend(ProofBackend):
    """
    Linkable ring signature membership proofs.

    Proof size and cost are linear in the group size, capped at
    MAX_RING_SIZE members.

    Example:
        >>> backend = LinkableRingBackend()
        >>> proof = backend.prove(identity, group, POST_SCOPE, post_message(ref))
        >>> backend.verify(group.group_id, proof)
        True
    """

    _BACKEND_NAME = "LinkableRing(LSAG)/edwards25519"
    _BACKEND_VERSION = "0.1.0"

    def __init__(self) -> None:
        self.params: CurveParameters = get_cached_curve_params()
        self.rng = RandomnessSource()

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    def compute_nullifier(self, identity: Identity, scope: int) -> int:
        return encode_element(point_mul(identity.secret, scope_base(scope)))

    def prove(
        self, identity: Identity, group: Group, scope: int, message: int
    ) -> MembershipProof:
        if not isinstance(identity, Identity):
            raise TypeError("identity must be Identity")
        if not isinstance(group, Group):
            raise TypeError("group must be Group")

        if group.index_of(identity.commitment) is None:
            raise NotAMemberError("identity commitment is not a member of the group")
        if group.size > MAX_RING_SIZE:
            raise ProofGenerationError(
                f"group of {group.size} members exceeds ring limit {MAX_RING_SIZE}"
            )

        started = time.perf_counter()
        try:
            proof = self._sign(identity, group, scope, message)
        except (RuntimeError, ValueError, TypeError) as exc:
            raise ProofGenerationError(f"ring proof generation failed: {exc}") from exc

        logger.debug(
            "ring proof over %d members built in %.1f ms",
            group.size,
            (time.perf_counter() - started) * 1000,
        )
        return proof

    def _sign(
        self, identity: Identity, group: Group, scope: int, message: int
    ) -> MembershipProof:
        x = identity.secret
        own_key = base_mul(x)
        if encode_element(own_key) != identity.commitment:
            raise ProofGenerationError("identity secret does not match its commitment")

        ring = [decode_element(member) for member in group.members]
        signers = _signer_keys(ring)
        pi = signers.index(own_key)
        n = len(signers)

        base = scope_base(scope)
        key_image = point_mul(x, base)
        nullifier = encode_element(key_image)
        transcript = transcript_digest(
            group.group_id, group.depth, group.root, scope, message, nullifier
        )

        challenges = [0] * n
        responses = [0] * n

        alpha = self.rng.get_nonzero_scalar_mod_order()
        challenges[(pi + 1) % n] = _challenge(
            transcript, base_mul(alpha), point_mul(alpha, base)
        )

        i = (pi + 1) % n
        while i != pi:
            responses[i] = self.rng.get_random_scalar_mod_order()
            left, right = _ring_step(
                responses[i], challenges[i], signers[i], base, key_image
            )
            challenges[(i + 1) % n] = _challenge(transcript, left, right)
            i = (i + 1) % n

        responses[pi] = (alpha - challenges[pi] * x) % self.params.order

        payload = cbor2.dumps(
            {
                "v": PROOF_VERSION,
                "ring": ring,
                "c0": scalar_to_bytes(challenges[0]),
                "s": [scalar_to_bytes(s) for s in responses],
            }
        )
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
            return self._verify(group_id, proof)
        except Exception:
            return False

    def _verify(self, group_id: int, proof: MembershipProof) -> bool:
        if not isinstance(proof, MembershipProof):
            return False
        if not MIN_TREE_DEPTH <= proof.depth <= MAX_TREE_DEPTH:
            return False

        obj = cbor2.loads(proof.payload)
        if not isinstance(obj, dict) or obj.get("v") != PROOF_VERSION:
            return False

        ring = obj.get("ring")
        c0_bytes = obj.get("c0")
        encoded_responses = obj.get("s")
        if not isinstance(ring, list) or not 1 <= len(ring) <= MAX_RING_SIZE:
            return False
        if not all(
            isinstance(p, bytes) and len(p) == POINT_SIZE_BYTES for p in ring
        ):
            return False
        if not isinstance(c0_bytes, bytes) or not isinstance(encoded_responses, list):
            return False

        members = [int.from_bytes(p, "big") for p in ring]
        if roster_root(members) != proof.root:
            return False
        if tree_depth(len(members)) != proof.depth:
            return False

        signers = _signer_keys(ring)
        if not signers or len(encoded_responses) != len(signers):
            return False

        key_image = decode_element(proof.nullifier)
        if not is_valid_point(key_image):
            return False

        c0 = scalar_from_bytes(c0_bytes)
        responses = [scalar_from_bytes(s) for s in encoded_responses]

        base = scope_base(proof.scope)
        transcript = transcript_digest(
            group_id, proof.depth, proof.root, proof.scope, proof.message,
            proof.nullifier,
        )

        c = c0
        for public_key, s in zip(signers, responses):
            left, right = _ring_step(s, c, public_key, base, key_image)
            c = _challenge(transcript, left, right)

        return constant_time_compare(scalar_to_bytes(c), c0_bytes)

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "curve": self.params.curve_name,
            "scheme": "LSAG key images as scope nullifiers",
            "max_ring_size": MAX_RING_SIZE,
            "security": "draft_requires_review",
        }
