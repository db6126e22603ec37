"""
Content identifier <-> 32-byte content reference codec.

Two identifier forms are accepted:

- Legacy (CIDv0): base58btc of ``0x12 0x20 || sha2-256 digest``.
- Modern (CIDv1): multibase ``b`` + unpadded lowercase base32 of the varints
  ``version, codec, hash_fn, digest_len`` followed by the digest.

The reference stored on the ledger is the bare 32-byte digest; the tags
are dropped and rebuilt as the legacy form by from_ref().
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Optional

import base58

from .config import CONTENT_REF_BYTES
from .exceptions import MalformedIdentifierError

SHA2_256 = 0x12
CID_VERSION = 1
LEGACY_PREFIX = bytes([SHA2_256, CONTENT_REF_BYTES])

CONTENT_CODECS = {
    "raw": 0x55,
    "dag-pb": 0x70,
    "dag-cbor": 0x71,
    "dag-json": 0x0129,
}
_CODEC_NAMES = {code: name for name, code in CONTENT_CODECS.items()}

_MAX_VARINT_BYTES = 9
_ZERO_REF = bytes(CONTENT_REF_BYTES)


@dataclass(frozen=True)
class ParsedIdentifier:
    """Decoded fields of a content identifier."""

    form: str
    version: int
    codec: str
    hash_fn: int
    digest: bytes


# ============================================================================
# VARINTS (unsigned LEB128, minimal encoding)
# ============================================================================


def _encode_uvarint(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint must be non-negative")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_uvarint(data: bytes, offset: int) -> tuple[int, int]:
    value = 0
    shift = 0
    for i in range(_MAX_VARINT_BYTES):
        pos = offset + i
        if pos >= len(data):
            raise MalformedIdentifierError("truncated varint")
        byte = data[pos]
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if byte == 0 and i > 0:
                raise MalformedIdentifierError("non-minimal varint")
            return value, pos + 1
        shift += 7
    raise MalformedIdentifierError("varint too long")


# ============================================================================
# PARSING
# ============================================================================


def _parse_legacy(identifier: str) -> ParsedIdentifier:
    try:
        raw = base58.b58decode(identifier)
    except ValueError as exc:
        raise MalformedIdentifierError(f"invalid base58 identifier: {exc}") from exc

    if len(raw) < len(LEGACY_PREFIX) or raw[:1] != LEGACY_PREFIX[:1]:
        raise MalformedIdentifierError("unsupported multihash function")
    if raw[1:2] != LEGACY_PREFIX[1:2]:
        raise MalformedIdentifierError("digest length tag must be 32")

    digest = raw[len(LEGACY_PREFIX):]
    if len(digest) != CONTENT_REF_BYTES:
        raise MalformedIdentifierError(
            f"digest must be {CONTENT_REF_BYTES} bytes, got {len(digest)}"
        )
    return ParsedIdentifier(
        form="legacy", version=0, codec="dag-pb", hash_fn=SHA2_256, digest=digest
    )


def _decode_base32(body: str) -> bytes:
    if not body:
        raise MalformedIdentifierError("empty base32 body")
    if body != body.lower() and body != body.upper():
        raise MalformedIdentifierError("mixed-case base32 body")
    padded = body.upper() + "=" * (-len(body) % 8)
    try:
        raw = base64.b32decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise MalformedIdentifierError(f"invalid base32 identifier: {exc}") from exc

    canonical = base64.b32encode(raw).decode("ascii").rstrip("=")
    if canonical != body.upper():
        raise MalformedIdentifierError("non-canonical base32 encoding")
    return raw


def _parse_modern(identifier: str) -> ParsedIdentifier:
    raw = _decode_base32(identifier[1:])

    version, offset = _read_uvarint(raw, 0)
    if version != CID_VERSION:
        raise MalformedIdentifierError(f"unsupported identifier version {version}")

    codec, offset = _read_uvarint(raw, offset)
    if codec not in _CODEC_NAMES:
        raise MalformedIdentifierError(f"unsupported content codec 0x{codec:x}")

    hash_fn, offset = _read_uvarint(raw, offset)
    if hash_fn != SHA2_256:
        raise MalformedIdentifierError(f"unsupported multihash function 0x{hash_fn:x}")

    digest_len, offset = _read_uvarint(raw, offset)
    if digest_len != CONTENT_REF_BYTES:
        raise MalformedIdentifierError(
            f"digest length tag must be {CONTENT_REF_BYTES}, got {digest_len}"
        )

    digest = raw[offset:]
    if len(digest) != CONTENT_REF_BYTES:
        raise MalformedIdentifierError(
            f"digest must be {CONTENT_REF_BYTES} bytes, got {len(digest)}"
        )
    return ParsedIdentifier(
        form="modern",
        version=version,
        codec=_CODEC_NAMES[codec],
        hash_fn=hash_fn,
        digest=digest,
    )


def parse_identifier(identifier: str) -> ParsedIdentifier:
    """
    Decode a content identifier into its tagged fields.

    Raises:
        MalformedIdentifierError: If the identifier violates its grammar
    """
    if not isinstance(identifier, str):
        raise MalformedIdentifierError(
            f"identifier must be str, got {type(identifier).__name__}"
        )
    if not identifier:
        raise MalformedIdentifierError("identifier cannot be empty")

    if identifier[0] in ("b", "B"):
        return _parse_modern(identifier)
    return _parse_legacy(identifier)


# ============================================================================
# PUBLIC CODEC
# ============================================================================


def to_ref(identifier: str) -> bytes:
    """
    Extract the 32-byte content reference from an identifier.

    Example:
        >>> ref = to_ref("QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG")
        >>> len(ref)
        32
    """
    return parse_identifier(identifier).digest


def from_ref(
    ref: bytes, *, form: str = "legacy", codec: str = "dag-pb"
) -> Optional[str]:
    """
    Rebuild an identifier from a content reference.

    Args:
        ref: 32-byte content reference
        form: "legacy" (canonical) or "modern"
        codec: Content codec name for the modern form

    Returns:
        Identifier string, or None for the all-zero (unset) reference

    Raises:
        MalformedIdentifierError: If ref is not 32 bytes
        ValueError: If form or codec is unknown
    """
    if not isinstance(ref, (bytes, bytearray)) or len(ref) != CONTENT_REF_BYTES:
        raise MalformedIdentifierError(
            f"content reference must be {CONTENT_REF_BYTES} bytes"
        )
    ref = bytes(ref)
    if ref == _ZERO_REF:
        return None

    if form == "legacy":
        return base58.b58encode(LEGACY_PREFIX + ref).decode("ascii")

    if form == "modern":
        if codec not in CONTENT_CODECS:
            raise ValueError(
                f"Unknown codec {codec!r}. Valid options: "
                f"{', '.join(sorted(CONTENT_CODECS))}"
            )
        raw = (
            _encode_uvarint(CID_VERSION)
            + _encode_uvarint(CONTENT_CODECS[codec])
            + _encode_uvarint(SHA2_256)
            + _encode_uvarint(CONTENT_REF_BYTES)
            + ref
        )
        return "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")

    raise ValueError(f"Unknown identifier form {form!r}. Valid options: legacy, modern")


def is_valid_identifier(identifier: str) -> bool:
    try:
        parse_identifier(identifier)
    except MalformedIdentifierError:
        return False
    return True
