"""
⚠️ DRAFT — requires crypto review before production use

edwards25519 group arithmetic over PyNaCl's libsodium core bindings.

Points are 32-byte canonical encodings on the prime-order subgroup;
scalars are Python ints reduced modulo GROUP_ORDER and passed to libsodium
as 32-byte little-endian strings. Public protocol values (commitments,
nullifiers) carry points as `Scalar` ints via encode_element().

Security Requirements:
    1. hash_to_point must not reveal a discrete log relative to G
       (Elligator 2 via crypto_core_ed25519_from_uniform)
    2. Points received from peers must be checked with is_valid_point
    3. libsodium rejects identity results, so zero scalars short-circuit
       to IDENTITY_POINT here
"""

from dataclasses import dataclass
import hashlib
import threading
from typing import Optional

from nacl import bindings as sodium

from .config import CURVE_NAME, GROUP_ORDER, POINT_SIZE_BYTES, SCALAR_SIZE_BYTES
from .exceptions import ConfigurationError
from .security import encode_length_prefixed


# ============================================================================
# CURVE SETUP
# ============================================================================


@dataclass(frozen=True)
class CurveParameters:
    """
    Group parameters for the ring proof backend.

    Attributes:
        curve_name: Curve name ("edwards25519")
        order: Prime subgroup order L
        G: Standard base point (32-byte encoding)
        point_bytes: Encoded point size
        scalar_bytes: Encoded scalar size
    """

    curve_name: str
    order: int
    G: bytes
    point_bytes: int = POINT_SIZE_BYTES
    scalar_bytes: int = SCALAR_SIZE_BYTES


def setup_curve() -> CurveParameters:
    """
    Check libsodium capabilities and build curve parameters.

    Raises:
        ConfigurationError: If libsodium was built without ed25519 core ops
    """
    if not getattr(sodium, "has_crypto_core_ed25519", False):
        raise ConfigurationError(
            "libsodium build lacks crypto_core_ed25519 (minimal build?)"
        )
    if not getattr(sodium, "has_crypto_scalarmult_ed25519", False):
        raise ConfigurationError(
            "libsodium build lacks crypto_scalarmult_ed25519 (minimal build?)"
        )

    base = sodium.crypto_scalarmult_ed25519_base_noclamp(scalar_to_bytes(1))
    return CurveParameters(curve_name=CURVE_NAME, order=GROUP_ORDER, G=base)


_CACHED_PARAMS: Optional[CurveParameters] = None
_CACHE_LOCK = threading.Lock()


def get_cached_curve_params() -> CurveParameters:
    """Return process-wide curve parameters, built once."""
    global _CACHED_PARAMS
    if _CACHED_PARAMS is None:
        with _CACHE_LOCK:
            if _CACHED_PARAMS is None:
                _CACHED_PARAMS = setup_curve()
    return _CACHED_PARAMS


# ============================================================================
# SCALARS
# ============================================================================


def scalar_to_bytes(value: int) -> bytes:
    """Encode a scalar as 32 little-endian bytes (reduced mod L)."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"scalar must be int, got {type(value)}")
    return (value % GROUP_ORDER).to_bytes(SCALAR_SIZE_BYTES, "little")


def scalar_from_bytes(data: bytes) -> int:
    """Decode 32 little-endian bytes into a canonical scalar."""
    if not isinstance(data, (bytes, bytearray)) or len(data) != SCALAR_SIZE_BYTES:
        raise ValueError("scalar encoding must be 32 bytes")
    value = int.from_bytes(data, "little")
    if value >= GROUP_ORDER:
        raise ValueError("scalar encoding is not reduced")
    return value


# ============================================================================
# POINTS
# ============================================================================

# Neutral element (0, 1)
IDENTITY_POINT = b"\x01" + bytes(POINT_SIZE_BYTES - 1)


def is_valid_point(point: bytes) -> bool:
    """True for a canonical, main-subgroup, non-small-order point."""
    if not isinstance(point, (bytes, bytearray)) or len(point) != POINT_SIZE_BYTES:
        return False
    return sodium.crypto_core_ed25519_is_valid_point(bytes(point))


def base_mul(scalar: int) -> bytes:
    """scalar * G"""
    if scalar % GROUP_ORDER == 0:
        return IDENTITY_POINT
    return sodium.crypto_scalarmult_ed25519_base_noclamp(scalar_to_bytes(scalar))


def point_mul(scalar: int, point: bytes) -> bytes:
    """scalar * point (point must be a valid main-subgroup point)"""
    if scalar % GROUP_ORDER == 0:
        return IDENTITY_POINT
    return sodium.crypto_scalarmult_ed25519_noclamp(scalar_to_bytes(scalar), point)


def point_add(p: bytes, q: bytes) -> bytes:
    """p + q"""
    return sodium.crypto_core_ed25519_add(p, q)


def hash_to_point(domain_sep: bytes, *parts: bytes) -> bytes:
    """
    Hash parts to a main-subgroup point with unknown discrete log.

    Uses SHA-256 over the length-prefixed transcript as the 32-byte
    Elligator 2 input.
    """
    uniform = hashlib.sha256(encode_length_prefixed((domain_sep,) + parts)).digest()
    return sodium.crypto_core_ed25519_from_uniform(uniform)


# ============================================================================
# PUBLIC ENCODING
# ============================================================================


def encode_element(point: bytes) -> int:
    """Represent a 32-byte point as a public Scalar value."""
    if not isinstance(point, (bytes, bytearray)) or len(point) != POINT_SIZE_BYTES:
        raise ValueError("point encoding must be 32 bytes")
    return int.from_bytes(point, "big")


def decode_element(value: int) -> bytes:
    """
    Inverse of encode_element.

    Raises:
        ValueError: If the value cannot be a 32-byte encoding
    """
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError("element must be a non-negative int")
    if value.bit_length() > 8 * POINT_SIZE_BYTES:
        raise ValueError("element does not fit in 32 bytes")
    return value.to_bytes(POINT_SIZE_BYTES, "big")
