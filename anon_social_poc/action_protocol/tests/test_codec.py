"""
Unit tests for the content identifier codec.
"""

import base64
import hashlib

import base58
import pytest

from anon_social_poc.action_protocol.codec import (
    CONTENT_CODECS,
    from_ref,
    is_valid_identifier,
    parse_identifier,
    to_ref,
)
from anon_social_poc.action_protocol.exceptions import MalformedIdentifierError

REF = hashlib.sha256(b"hello anon board").digest()


def _modern(raw: bytes) -> str:
    return "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def test_legacy_form_has_qm_prefix() -> None:
    identifier = from_ref(REF)
    assert identifier.startswith("Qm")
    assert len(identifier) == 46
    assert to_ref(identifier) == REF


def test_modern_form_prefixes() -> None:
    assert from_ref(REF, form="modern").startswith("bafybei")
    assert from_ref(REF, form="modern", codec="raw").startswith("bafkrei")


def test_modern_and_legacy_share_reference() -> None:
    for codec in CONTENT_CODECS:
        assert to_ref(from_ref(REF, form="modern", codec=codec)) == REF


def test_known_identifier_pair() -> None:
    legacy = "QmbWqxBEKC3P8tqsKc98xmWNzrzDtRLMiMPL8wBuTGsMnR"
    modern = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"
    assert to_ref(legacy) == to_ref(modern)
    assert from_ref(to_ref(legacy)) == legacy
    assert from_ref(to_ref(legacy), form="modern") == modern


def test_parse_identifier_fields() -> None:
    parsed = parse_identifier(from_ref(REF, form="modern", codec="raw"))
    assert parsed.form == "modern"
    assert parsed.version == 1
    assert parsed.codec == "raw"
    assert parsed.hash_fn == 0x12
    assert parsed.digest == REF

    legacy = parse_identifier(from_ref(REF))
    assert legacy.form == "legacy"
    assert legacy.version == 0
    assert legacy.codec == "dag-pb"


def test_uppercase_modern_accepted() -> None:
    assert to_ref(from_ref(REF, form="modern").upper()) == REF


def test_mixed_case_modern_rejected() -> None:
    modern = from_ref(REF, form="modern")
    mixed = modern[:8] + modern[8:].upper()
    with pytest.raises(MalformedIdentifierError, match="mixed-case"):
        to_ref(mixed)


def test_zero_reference_is_unset() -> None:
    assert from_ref(bytes(32)) is None
    assert from_ref(bytes(32), form="modern") is None


@pytest.mark.parametrize("ref", [b"", bytes(31), bytes(33), "not-bytes"])
def test_from_ref_rejects_wrong_length(ref) -> None:
    with pytest.raises(MalformedIdentifierError):
        from_ref(ref)


def test_from_ref_rejects_unknown_form_and_codec() -> None:
    with pytest.raises(ValueError, match="Unknown identifier form"):
        from_ref(REF, form="v2")
    with pytest.raises(ValueError, match="Unknown codec"):
        from_ref(REF, form="modern", codec="git-raw")


@pytest.mark.parametrize("identifier", ["", "Qm", "QmNotBase58!!", "0OIl"])
def test_garbage_rejected(identifier: str) -> None:
    with pytest.raises(MalformedIdentifierError):
        to_ref(identifier)
    assert is_valid_identifier(identifier) is False


def test_non_string_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="must be str"):
        parse_identifier(REF)


def test_legacy_wrong_hash_function_rejected() -> None:
    identifier = base58.b58encode(bytes([0x11, 0x20]) + REF).decode("ascii")
    with pytest.raises(MalformedIdentifierError, match="multihash"):
        to_ref(identifier)


def test_legacy_wrong_length_tag_rejected() -> None:
    identifier = base58.b58encode(bytes([0x12, 0x1F]) + REF[:31]).decode("ascii")
    with pytest.raises(MalformedIdentifierError, match="length tag"):
        to_ref(identifier)


def test_legacy_trailing_bytes_rejected() -> None:
    identifier = base58.b58encode(bytes([0x12, 0x20]) + REF + b"\x00").decode("ascii")
    with pytest.raises(MalformedIdentifierError, match="digest must be 32"):
        to_ref(identifier)


def test_modern_unsupported_version_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="version"):
        to_ref(_modern(bytes([0x02, 0x70, 0x12, 0x20]) + REF))


def test_modern_unknown_codec_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="codec"):
        to_ref(_modern(bytes([0x01, 0x50, 0x12, 0x20]) + REF))


def test_modern_wrong_hash_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="multihash"):
        to_ref(_modern(bytes([0x01, 0x70, 0x13, 0x20]) + REF))


def test_modern_trailing_bytes_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="digest must be 32"):
        to_ref(_modern(bytes([0x01, 0x70, 0x12, 0x20]) + REF + b"\x01"))


def test_modern_non_minimal_varint_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="non-minimal"):
        to_ref(_modern(bytes([0x81, 0x00, 0x70, 0x12, 0x20]) + REF))


def test_modern_truncated_varint_rejected() -> None:
    with pytest.raises(MalformedIdentifierError, match="truncated"):
        to_ref(_modern(bytes([0x01, 0x80])))


def test_two_byte_codec_varint() -> None:
    identifier = from_ref(REF, form="modern", codec="dag-json")
    assert parse_identifier(identifier).codec == "dag-json"
