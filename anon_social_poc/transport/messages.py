"""CBOR message schemas for the ledger request/response surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import cbor2

from ..action_protocol.config import CONTENT_REF_BYTES
from ..action_protocol.types import MembershipProof
from .constants import (
    ERROR_KINDS,
    MAX_DETAIL_CHARS,
    MAX_EVENTS_PER_PAGE,
    MSG_V,
    OPS,
    REQUEST_MAX_BYTES,
    RESPONSE_MAX_BYTES,
)
from .errors import SchemaError, SizeLimitError


def _require_int(value: Any, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise SchemaError(f"{name} must be an integer")
    return value


def _require_ref(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != CONTENT_REF_BYTES:
        raise SchemaError(f"content_ref must be {CONTENT_REF_BYTES} bytes")
    return bytes(value)


@dataclass(frozen=True)
class LedgerRequest:
    msg_v: int
    op: str
    commitment: Optional[int] = None
    proof: Optional[MembershipProof] = None
    content_ref: Optional[bytes] = None
    upvote: Optional[bool] = None
    since: Optional[int] = None
    limit: Optional[int] = None

    def validate(self) -> None:
        if self.msg_v != MSG_V:
            raise SchemaError("unsupported msg_v")
        if self.op not in OPS:
            raise SchemaError("unsupported op")

        if self.op == "join":
            commitment = _require_int(self.commitment, "commitment")
            if commitment < 0 or commitment.bit_length() > 256:
                raise SchemaError("commitment out of range")

        if self.op in ("post", "vote"):
            if not isinstance(self.proof, MembershipProof):
                raise SchemaError("proof required")

        if self.op in ("post", "vote", "votes_for"):
            _require_ref(self.content_ref)

        if self.op == "vote" and not isinstance(self.upvote, bool):
            raise SchemaError("upvote must be a boolean")

        if self.op == "events":
            since = _require_int(self.since, "since")
            limit = _require_int(self.limit, "limit")
            if since < 0:
                raise SchemaError("since must be >= 0")
            if not 1 <= limit <= MAX_EVENTS_PER_PAGE:
                raise SchemaError("limit out of bounds")


@dataclass(frozen=True)
class LedgerResponse:
    msg_v: int
    ok: bool
    err: Optional[str] = None
    detail: str = ""
    result: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if self.msg_v != MSG_V:
            raise SchemaError("unsupported msg_v")
        if not isinstance(self.ok, bool):
            raise SchemaError("ok must be a boolean")
        if not isinstance(self.detail, str):
            raise SchemaError("detail must be a string")
        if len(self.detail) > MAX_DETAIL_CHARS:
            raise SchemaError("detail too long")
        if not isinstance(self.result, dict):
            raise SchemaError("result must be a map")

        if self.ok:
            if self.err not in (None, ""):
                raise SchemaError("err must be empty when ok=True")
        else:
            if self.err not in ERROR_KINDS:
                raise SchemaError("err must be a known error kind when ok=False")
            if self.result:
                raise SchemaError("result must be empty when ok=False")


def encode_request(req: LedgerRequest) -> bytes:
    req.validate()
    payload: Dict[str, Any] = {"msg_v": req.msg_v, "op": req.op}
    if req.commitment is not None:
        payload["commitment"] = req.commitment
    if req.proof is not None:
        payload["proof"] = req.proof.to_cbor_obj()
    if req.content_ref is not None:
        payload["content_ref"] = bytes(req.content_ref)
    if req.upvote is not None:
        payload["upvote"] = req.upvote
    if req.since is not None:
        payload["since"] = req.since
    if req.limit is not None:
        payload["limit"] = req.limit

    blob = cbor2.dumps(payload)
    if len(blob) > REQUEST_MAX_BYTES:
        raise SizeLimitError("request too large")
    return blob


def decode_request(blob: bytes) -> LedgerRequest:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaError("request blob must be bytes")
    blob_bytes = bytes(blob)
    if len(blob_bytes) > REQUEST_MAX_BYTES:
        raise SizeLimitError("request too large")
    try:
        payload = cbor2.loads(blob_bytes)
    except (cbor2.CBORError, ValueError) as exc:
        raise SchemaError(f"request is not valid CBOR: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaError("request payload must be a dict")

    proof = None
    if payload.get("proof") is not None:
        try:
            proof = MembershipProof.from_cbor_obj(payload["proof"])
        except (TypeError, ValueError) as exc:
            raise SchemaError(f"invalid proof: {exc}") from exc

    req = LedgerRequest(
        msg_v=payload.get("msg_v", -1),
        op=payload.get("op", ""),
        commitment=payload.get("commitment"),
        proof=proof,
        content_ref=payload.get("content_ref"),
        upvote=payload.get("upvote"),
        since=payload.get("since"),
        limit=payload.get("limit"),
    )
    req.validate()
    return req


def encode_response(resp: LedgerResponse) -> bytes:
    resp.validate()
    payload = {
        "msg_v": resp.msg_v,
        "ok": resp.ok,
        "err": resp.err,
        "detail": resp.detail,
        "result": resp.result,
    }
    blob = cbor2.dumps(payload)
    if len(blob) > RESPONSE_MAX_BYTES:
        raise SizeLimitError("response too large")
    return blob


def decode_response(blob: bytes) -> LedgerResponse:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaError("response blob must be bytes")
    blob_bytes = bytes(blob)
    if len(blob_bytes) > RESPONSE_MAX_BYTES:
        raise SizeLimitError("response too large")
    try:
        payload = cbor2.loads(blob_bytes)
    except (cbor2.CBORError, ValueError) as exc:
        raise SchemaError(f"response is not valid CBOR: {exc}") from exc
    if not isinstance(payload, dict):
        raise SchemaError("response payload must be a dict")

    err = payload.get("err")
    if err is not None and not isinstance(err, str):
        raise SchemaError("err must be a string")

    resp = LedgerResponse(
        msg_v=payload.get("msg_v", -1),
        ok=payload.get("ok", False),
        err=err,
        detail=payload.get("detail", ""),
        result=payload.get("result", {}),
    )
    resp.validate()
    return resp
