"""
⚠️ DRAFT — requires crypto review before production use

Security utilities for cryptographic operations.

This is a PROTOTYPE implementation for testing and validation.
DO NOT use in production without security audit.
"""

import os
import secrets
import hashlib
import hmac
from typing import Optional

from .config import GROUP_ORDER, HASH_FUNCTION


# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Prevents catastrophic nonce reuse if the process forks between two
    ring proofs.

    Example:
        >>> rng = RandomnessSource()
        >>> scalar = rng.get_nonzero_scalar_mod_order()
    """

    def __init__(self):
        """Initialize randomness source with fork detection."""
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def get_random_scalar(self, max_value: int) -> int:
        """
        Get random scalar in [0, max_value).

        Args:
            max_value: Upper bound (exclusive)

        Returns:
            Random scalar in [0, max_value)
        """
        if os.getpid() != self._pid:
            self.__init__()
        return self._rng.randrange(0, max_value)

    def get_random_bytes(self, n: int) -> bytes:
        """Get n cryptographically secure random bytes."""
        if os.getpid() != self._pid:
            self.__init__()
        return secrets.token_bytes(n)

    def get_random_scalar_mod_order(self) -> int:
        """Get random scalar in [0, GROUP_ORDER)."""
        return self.get_random_scalar(GROUP_ORDER)

    def get_nonzero_scalar_mod_order(self) -> int:
        """Get random scalar in [1, GROUP_ORDER)."""
        value = self.get_random_scalar_mod_order()
        while value == 0:
            value = self.get_random_scalar_mod_order()
        return value


# ============================================================================
# HASH FUNCTIONS
# ============================================================================


def _new_hash():
    return hashlib.sha3_256() if HASH_FUNCTION == "SHA3-256" else hashlib.sha256()


def encode_length_prefixed(parts) -> bytes:
    """
    Concatenate parts as (len || data) records.

    Length prefixes keep ("ab", "c") and ("a", "bc") from colliding.
    """
    out = bytearray()
    for part in parts:
        if not isinstance(part, (bytes, bytearray)):
            raise TypeError(f"hash parts must be bytes, got {type(part)}")
        out.extend(len(part).to_bytes(4, "big"))
        out.extend(part)
    return bytes(out)


def hash_parts(domain_sep: bytes, *parts: bytes) -> bytes:
    """
    Hash a domain separator and parts with length-prefixed encoding.

    Args:
        domain_sep: Domain separator (must be non-empty)
        *parts: Byte strings to bind (may be empty strings)

    Returns:
        32-byte digest
    """
    if not isinstance(domain_sep, bytes) or not domain_sep:
        raise ValueError("Domain separator cannot be empty")
    h = _new_hash()
    h.update(encode_length_prefixed((domain_sep,) + parts))
    return h.digest()


def hash_parts_to_int(domain_sep: bytes, *parts: bytes) -> int:
    """Same as hash_parts, read as a big-endian 256-bit integer."""
    return int.from_bytes(hash_parts(domain_sep, *parts), "big")


def hash_to_scalar(
    data: bytes, max_value: int, domain_sep: Optional[bytes] = None
) -> int:
    """
    Hash data to scalar in [0, max_value) with domain separation.

    Args:
        data: Data to hash (must be non-empty)
        max_value: Maximum value (exclusive, must be > 1)
        domain_sep: Optional domain separator

    Returns:
        Scalar in [0, max_value)

    Raises:
        ValueError: If inputs are invalid
        TypeError: If inputs are wrong type
    """
    if not isinstance(data, bytes):
        raise TypeError(f"data must be bytes, got {type(data)}")

    if not data:
        raise ValueError("Data cannot be empty")

    if max_value <= 1:
        raise ValueError(f"max_value must be > 1, got {max_value}")

    if domain_sep:
        if not isinstance(domain_sep, bytes):
            raise TypeError(f"domain_sep must be bytes, got {type(domain_sep)}")
        data = domain_sep + data

    # 512-bit digest keeps the modulo bias negligible for 256-bit orders
    digest = hashlib.sha512(data).digest()
    return int.from_bytes(digest, "big") % max_value


def fiat_shamir_challenge(domain_sep: bytes, *parts: bytes) -> int:
    """
    Generate deterministic Fiat-Shamir challenge with domain separation.

    Uses length-prefixed encoding over SHA-512 and reduces modulo the
    group order.

    Args:
        domain_sep: Domain separator (must be non-empty)
        *parts: Transcript parts (commitments, public inputs)

    Returns:
        Challenge scalar in [0, GROUP_ORDER)

    Raises:
        ValueError: If the domain separator is empty
    """
    if not isinstance(domain_sep, bytes) or not domain_sep:
        raise ValueError("Domain separator cannot be empty")

    h = hashlib.sha512()
    h.update(encode_length_prefixed((domain_sep,) + parts))
    return int.from_bytes(h.digest(), "big") % GROUP_ORDER


# ============================================================================
# CONSTANT-TIME OPERATIONS
# ============================================================================


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Constant-time comparison to prevent timing attacks.

    Args:
        a: First byte string
        b: Second byte string

    Returns:
        True if a == b, False otherwise
    """
    return hmac.compare_digest(a, b)
