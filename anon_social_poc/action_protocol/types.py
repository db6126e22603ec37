"""
⚠️ DRAFT — requires crypto review before production use

Common types for anonymous group actions.

This module provides:
1. Scalar / ContentRef - public value aliases and their validators
2. MembershipProof - the proof record a ledger checks, with CBOR serialization
"""

from dataclasses import dataclass
from typing import Any, Dict

import cbor2

from .config import CONTENT_REF_BYTES, MAX_PROOF_PAYLOAD_BYTES, PROOF_VERSION

# Public protocol values (commitments, roots, nullifiers, scopes, messages)
Scalar = int
SCALAR_BITS = 256

# 32-byte content reference
ContentRef = bytes


def validate_scalar(name: str, value: Any) -> int:
    """Check that value is an int in [0, 2**256)."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value < 0 or value.bit_length() > SCALAR_BITS:
        raise ValueError(f"{name} must be in [0, 2**{SCALAR_BITS})")
    return value


def validate_content_ref(value: Any) -> bytes:
    """Check that value is exactly 32 bytes."""
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError(f"content_ref must be bytes, got {type(value).__name__}")
    if len(value) != CONTENT_REF_BYTES:
        raise ValueError(
            f"content_ref must be {CONTENT_REF_BYTES} bytes, got {len(value)}"
        )
    return bytes(value)


def ref_to_hex(ref: bytes) -> str:
    return "0x" + validate_content_ref(ref).hex()


def ref_from_hex(text: str) -> bytes:
    """Parse a 64-digit hex content reference (``0x`` prefix optional)."""
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError(f"invalid hex content reference: {exc}") from exc
    return validate_content_ref(raw)


def scalar_to_hex(value: int) -> str:
    return f"0x{value:064x}"


def short_hex(value: int) -> str:
    """First 12 hex digits, for logs and tables."""
    return f"{value:064x}"[:12]


# ============================================================================
# MEMBERSHIP PROOF
# ============================================================================


@dataclass(frozen=True)
class MembershipProof:
    """
    Proof that some member of a group performed an action.

    Attributes:
        depth: Merkle depth of the group the proof was built against
        root: Group root the proof was built against
        nullifier: F(secret, scope), deterministic per identity and scope
        message: Action payload bound into the proof
        scope: Action context bound into the proof
        payload: Backend-specific proof blob (opaque to the ledger)

    Serialization:
        CBOR map with a version field, as the ledger wire surface carries it.
    """

    depth: int
    root: int
    nullifier: int
    message: int
    scope: int
    payload: bytes

    def __post_init__(self):
        if not isinstance(self.depth, int) or isinstance(self.depth, bool):
            raise TypeError("depth must be int")
        if self.depth < 0:
            raise ValueError("depth must be non-negative")
        validate_scalar("root", self.root)
        validate_scalar("nullifier", self.nullifier)
        validate_scalar("message", self.message)
        validate_scalar("scope", self.scope)
        if not isinstance(self.payload, bytes):
            raise TypeError("payload must be bytes")
        if len(self.payload) > MAX_PROOF_PAYLOAD_BYTES:
            raise ValueError("payload exceeds maximum size")

    def serialize(self) -> bytes:
        """Serialize proof to CBOR bytes."""
        return cbor2.dumps(self.to_cbor_obj())

    def to_cbor_obj(self) -> Dict[str, Any]:
        return {
            "v": PROOF_VERSION,
            "d": self.depth,
            "r": self.root,
            "n": self.nullifier,
            "m": self.message,
            "s": self.scope,
            "p": self.payload,
        }

    @classmethod
    def from_cbor_obj(cls, obj: Any) -> "MembershipProof":
        """
        Rebuild a proof from a decoded CBOR map.

        Raises:
            ValueError: If version is unsupported or fields are missing/invalid
        """
        if not isinstance(obj, dict):
            raise ValueError("Invalid proof format: expected map")

        version = obj.get("v")
        if version != PROOF_VERSION:
            raise ValueError(
                f"Unsupported proof version: {version} (expected {PROOF_VERSION})"
            )

        missing = [key for key in ("d", "r", "n", "m", "s", "p") if key not in obj]
        if missing:
            raise ValueError(f"Invalid proof format: missing fields {missing}")

        try:
            return cls(
                depth=obj["d"],
                root=obj["r"],
                nullifier=obj["n"],
                message=obj["m"],
                scope=obj["s"],
                payload=obj["p"],
            )
        except TypeError as exc:
            raise ValueError(f"Invalid proof format: {exc}") from exc

    @classmethod
    def deserialize(cls, data: bytes) -> "MembershipProof":
        """
        Deserialize proof from CBOR bytes.

        Raises:
            ValueError: If the bytes are not a valid proof encoding
        """
        try:
            obj = cbor2.loads(data)
        except (cbor2.CBORError, ValueError, TypeError) as exc:
            raise ValueError(f"Failed to deserialize proof: {exc}") from exc
        return cls.from_cbor_obj(obj)

    def to_dict(self) -> dict:
        """JSON-compatible view; scalars as 0x-hex, payload size only."""
        return {
            "depth": self.depth,
            "root": scalar_to_hex(self.root),
            "nullifier": scalar_to_hex(self.nullifier),
            "message": scalar_to_hex(self.message),
            "scope": scalar_to_hex(self.scope),
            "payload_bytes": len(self.payload),
        }
