"""Wire constants for the ledger request/response surface."""

from __future__ import annotations

from ..action_protocol.config import MAX_PROOF_PAYLOAD_BYTES

PROTOCOL_ID = "/anon-social/ledger/1.0.0"
MSG_V = 1

OPS = frozenset({"join", "post", "vote", "votes_for", "events", "group"})

ERR_MALFORMED_REQUEST = "malformed_request"
ERR_INVALID_PROOF = "invalid_proof"
ERR_STALE_ROOT = "stale_root"
ERR_NULLIFIER_REUSED = "nullifier_reused"
ERR_DUPLICATE_MEMBER = "duplicate_member"
ERR_INTERNAL = "internal_error"

ERROR_KINDS = frozenset(
    {
        ERR_MALFORMED_REQUEST,
        ERR_INVALID_PROOF,
        ERR_STALE_ROOT,
        ERR_NULLIFIER_REUSED,
        ERR_DUPLICATE_MEMBER,
        ERR_INTERNAL,
    }
)

MAX_DETAIL_CHARS = 256
MAX_EVENTS_PER_PAGE = 256
DEFAULT_EVENTS_PER_PAGE = 64

REQUEST_OVERHEAD_BYTES = 4096
REQUEST_MAX_BYTES = MAX_PROOF_PAYLOAD_BYTES + REQUEST_OVERHEAD_BYTES
# group responses carry the full roster
RESPONSE_MAX_BYTES = 512 * 1024
