"""Pure request/response handler for the ledger surface."""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..action_protocol.events import event_to_cbor_obj
from ..action_protocol.exceptions import (
    DuplicateMemberError,
    InvalidProofError,
    NullifierReusedError,
    StaleRootError,
)
from ..action_protocol.ledger import ActionLedger
from .constants import (
    ERR_DUPLICATE_MEMBER,
    ERR_INTERNAL,
    ERR_INVALID_PROOF,
    ERR_MALFORMED_REQUEST,
    ERR_NULLIFIER_REUSED,
    ERR_STALE_ROOT,
    MAX_DETAIL_CHARS,
    MSG_V,
)
from .errors import ProtocolError, SizeLimitError
from .messages import LedgerRequest, LedgerResponse, decode_request, encode_response

logger = logging.getLogger(__name__)


def _error_response(err: str, detail: str = "") -> LedgerResponse:
    return LedgerResponse(
        msg_v=MSG_V, ok=False, err=err, detail=detail[:MAX_DETAIL_CHARS]
    )


def error_kind_for(exc: BaseException) -> str:
    """Stable wire kind for a ledger or request failure."""
    # StaleRootError first: it is also an InvalidProofError
    if isinstance(exc, StaleRootError):
        return ERR_STALE_ROOT
    if isinstance(exc, InvalidProofError):
        return ERR_INVALID_PROOF
    if isinstance(exc, NullifierReusedError):
        return ERR_NULLIFIER_REUSED
    if isinstance(exc, DuplicateMemberError):
        return ERR_DUPLICATE_MEMBER
    if isinstance(exc, (ProtocolError, ValueError, TypeError)):
        return ERR_MALFORMED_REQUEST
    return ERR_INTERNAL


def dispatch(req: LedgerRequest, ledger: ActionLedger) -> Dict[str, Any]:
    """Run one validated request against the ledger and build its result map."""
    if req.op == "join":
        return {"event": event_to_cbor_obj(ledger.join(req.commitment))}

    if req.op == "post":
        return {"event": event_to_cbor_obj(ledger.post(req.proof, req.content_ref))}

    if req.op == "vote":
        event = ledger.vote(req.proof, req.content_ref, req.upvote)
        return {"event": event_to_cbor_obj(event)}

    if req.op == "votes_for":
        return {"tally": ledger.votes_for(req.content_ref)}

    if req.op == "events":
        page = ledger.events(req.since)[: req.limit]
        return {
            "events": [event_to_cbor_obj(e) for e in page],
            "next": req.since + len(page),
        }

    if req.op == "group":
        group = ledger.group
        return {
            "group_id": group.group_id,
            "root": group.root,
            "depth": group.depth,
            "size": group.size,
            "members": list(group.members),
        }

    raise ValueError(f"unsupported op {req.op!r}")


def handle_request_bytes(request_blob: bytes, ledger: ActionLedger) -> bytes:
    """Decode, dispatch and encode. Never raises."""
    try:
        req = decode_request(request_blob)
    except ProtocolError as exc:
        return encode_response(_error_response(ERR_MALFORMED_REQUEST, f"bad request: {exc}"))
    except Exception:
        return encode_response(
            _error_response(ERR_MALFORMED_REQUEST, "bad request: decode failed")
        )

    try:
        result = dispatch(req, ledger)
    except Exception as exc:
        kind = error_kind_for(exc)
        if kind == ERR_INTERNAL:
            logger.exception("ledger failed handling %s", req.op)
            return encode_response(_error_response(kind, "ledger error"))
        return encode_response(_error_response(kind, str(exc)))

    try:
        return encode_response(LedgerResponse(msg_v=MSG_V, ok=True, result=result))
    except SizeLimitError:
        return encode_response(_error_response(ERR_INTERNAL, "response too large"))
