"""
⚠️ DRAFT — requires crypto review before production use

Protocol configuration for anonymous group actions.

This is a PROTOTYPE implementation for testing and validation.
DO NOT use in production without security audit.

Every value below is protocol-wide: two implementations only interoperate
when they agree on all of them.
"""

# ============================================================================
# CURVE SELECTION
# ============================================================================

# IMPLEMENTATION: edwards25519 via PyNaCl (libsodium core bindings)
# - Prime order subgroup L (cofactor 8 handled by libsodium main-subgroup checks)
# - crypto_core_ed25519_from_uniform gives a hash-to-point with unknown dlog
# - Binary wheels on every supported Python

CURVE_NAME = "edwards25519"
CURVE_LIBRARY = "PyNaCl"

# Order of the prime-order subgroup
GROUP_ORDER = 2**252 + 27742317777372353535851937790883648493
GROUP_ORDER_BITS = 253
POINT_SIZE_BYTES = 32
SCALAR_SIZE_BYTES = 32

# ============================================================================
# HASH FUNCTIONS
# ============================================================================

# Scope, message and nullifier-key hashing
HASH_FUNCTION = "SHA3-256"

DOMAIN_SEPARATOR_PREFIX = b"ANON_SOCIAL_V1_"

DOMAIN_SEPARATORS = {
    "identity_secret": DOMAIN_SEPARATOR_PREFIX + b"IDENTITY",
    "scope": DOMAIN_SEPARATOR_PREFIX + b"SCOPE",
    "message": DOMAIN_SEPARATOR_PREFIX + b"MESSAGE",
    "nullifier_base": DOMAIN_SEPARATOR_PREFIX + b"NULLIFIER_BASE",
    "nullifier_key": DOMAIN_SEPARATOR_PREFIX + b"NULLIFIER_KEY",
    "ring_transcript": DOMAIN_SEPARATOR_PREFIX + b"RING_TRANSCRIPT",
    "ring_challenge": DOMAIN_SEPARATOR_PREFIX + b"RING_CHALLENGE",
    "mock_binding": DOMAIN_SEPARATOR_PREFIX + b"MOCK_BINDING",
}

# ============================================================================
# ACTION SCOPES
# ============================================================================

# Public labels; POST_SCOPE and vote scopes are derived from these in scopes.py
POST_SCOPE_LABEL = b"anon-social-post"
VOTE_DOMAIN = b"anon-social-vote"

# Message a wallet signs; the signature is the identity secret
IDENTITY_SIGN_MESSAGE = (
    "Sign this message to generate your AnonSocial ZK identity.\n\n"
    "This signature is your private key; never share it."
)

# ============================================================================
# GROUP PARAMETERS
# ============================================================================

DEFAULT_GROUP_ID = 1
MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 32

# Empty group root (no leaf hashes to zero)
EMPTY_ROOT = 0

# ============================================================================
# PROOF SERIALIZATION
# ============================================================================

PROOF_VERSION = 1

# Ring proofs grow linearly with the group
MAX_RING_SIZE = 4096
MAX_PROOF_PAYLOAD_BYTES = 320 * 1024

# ============================================================================
# CONTENT
# ============================================================================

CONTENT_REF_BYTES = 32
MAX_POST_CHARS = 280
POST_BODY_VERSION = "1"

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate configuration parameters.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If configuration is invalid
    """
    assert CURVE_NAME == "edwards25519", "Invalid curve"
    assert CURVE_LIBRARY == "PyNaCl", "edwards25519 requires PyNaCl"
    assert GROUP_ORDER.bit_length() == GROUP_ORDER_BITS, "Group order mismatch"
    assert HASH_FUNCTION in ["SHA3-256", "SHA256"], "Invalid hash function"
    assert 1 <= MIN_TREE_DEPTH <= MAX_TREE_DEPTH <= 32, "Invalid tree depth bounds"
    assert POST_SCOPE_LABEL != VOTE_DOMAIN, "Post and vote scopes must differ"
    assert len(set(DOMAIN_SEPARATORS.values())) == len(DOMAIN_SEPARATORS), (
        "Domain separators must be unique"
    )
    assert CONTENT_REF_BYTES == 32, "Content refs are 32 bytes"

    return True


# Auto-validate on import
validate_config()
