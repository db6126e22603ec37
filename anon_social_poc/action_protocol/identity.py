"""
⚠️ DRAFT — requires crypto review before production use

Deterministic identity derivation.

An identity is a secret scalar x and its public commitment x·G. The secret
comes from an external secret (a wallet signature over
IDENTITY_SIGN_MESSAGE); re-deriving from the same bytes yields the same
identity.
"""

from dataclasses import dataclass, field

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .config import DOMAIN_SEPARATORS, GROUP_ORDER
from .curve import base_mul, encode_element

# 64 bytes reduced mod L keeps the bias negligible
_SECRET_KDF_BYTES = 64


@dataclass(frozen=True)
class Identity:
    """
    Actor identity. Never transmitted, logged or serialized.

    Attributes:
        secret: Identity scalar in [1, L)
        commitment: Public commitment (encoded point secret·G)
    """

    secret: int = field(repr=False, compare=False)
    commitment: int


def _secret_scalar(secret: bytes) -> int:
    kdf = HKDF(
        algorithm=hashes.SHA512(),
        length=_SECRET_KDF_BYTES,
        salt=None,
        info=DOMAIN_SEPARATORS["identity_secret"],
    )
    return int.from_bytes(kdf.derive(secret), "big") % GROUP_ORDER


def derive_identity(secret: bytes) -> Identity:
    """
    Derive an identity from external secret bytes.

    Args:
        secret: Non-empty secret bytes

    Returns:
        Identity with a deterministic commitment

    Raises:
        TypeError: If secret is not bytes
        ValueError: If secret is empty
    """
    if not isinstance(secret, (bytes, bytearray)):
        raise TypeError(f"secret must be bytes, got {type(secret).__name__}")
    if not secret:
        raise ValueError("secret cannot be empty")

    x = _secret_scalar(bytes(secret))
    if x == 0:
        raise ValueError("secret derives to the zero scalar")

    return Identity(secret=x, commitment=encode_element(base_mul(x)))


def derive_identity_from_signature(signature: str) -> Identity:
    """
    Derive an identity from a hex wallet signature (``0x`` prefix optional).

    Raises:
        TypeError: If signature is not a string
        ValueError: If signature is empty or not hex
    """
    if not isinstance(signature, str):
        raise TypeError(f"signature must be str, got {type(signature).__name__}")
    text = signature[2:] if signature.startswith(("0x", "0X")) else signature
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise ValueError(f"signature is not valid hex: {exc}") from exc
    return derive_identity(raw)
