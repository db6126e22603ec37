"""Length-prefixed stream framing with size limits and timeouts (trio)."""

from __future__ import annotations

import logging
import struct
from typing import Any, Dict, List, Optional

import trio

from ..action_protocol.events import LedgerEvent, event_from_cbor_obj
from ..action_protocol.exceptions import (
    DuplicateMemberError,
    InvalidProofError,
    NullifierReusedError,
    StaleRootError,
)
from ..action_protocol.ledger import ActionLedger
from ..action_protocol.types import MembershipProof
from .constants import (
    DEFAULT_EVENTS_PER_PAGE,
    ERR_DUPLICATE_MEMBER,
    ERR_INVALID_PROOF,
    ERR_MALFORMED_REQUEST,
    ERR_NULLIFIER_REUSED,
    ERR_STALE_ROOT,
    MSG_V,
    RESPONSE_MAX_BYTES,
)
from .errors import ProtocolError, RemoteError, SchemaError, SizeLimitError
from .handler import handle_request_bytes
from .messages import LedgerRequest, LedgerResponse, decode_response, encode_request

logger = logging.getLogger(__name__)

MAX_FRAME_BYTES = RESPONSE_MAX_BYTES
READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 5.0
# Ring verification is linear in the group size
HANDLER_TIMEOUT = 30.0
_HEADER = struct.Struct(">I")


async def read_exact(stream: Any, size: int, timeout: float) -> bytes:
    if size < 0:
        raise SchemaError("invalid read size")
    data = bytearray()
    with trio.fail_after(timeout):
        while len(data) < size:
            chunk = await stream.receive_some(size - len(data))
            if not chunk:
                raise SchemaError("unexpected EOF")
            data.extend(chunk)
    return bytes(data)


async def read_frame(
    stream: Any, max_bytes: int = MAX_FRAME_BYTES, timeout: float = READ_TIMEOUT
) -> bytes:
    header = await read_exact(stream, _HEADER.size, timeout)
    (length,) = _HEADER.unpack(header)
    if length > max_bytes:
        raise SizeLimitError("frame too large")
    return await read_exact(stream, length, timeout)


async def write_frame(
    stream: Any,
    payload: bytes,
    max_bytes: int = MAX_FRAME_BYTES,
    timeout: float = WRITE_TIMEOUT,
) -> None:
    if len(payload) > max_bytes:
        raise SizeLimitError("frame too large")
    with trio.fail_after(timeout):
        await stream.send_all(_HEADER.pack(len(payload)) + payload)


async def _read_first_byte(stream: Any) -> Optional[bytes]:
    # Idle connections may wait indefinitely between requests
    chunk = await stream.receive_some(1)
    return chunk or None


# ============================================================================
# SERVER
# ============================================================================


async def serve_ledger_stream(stream: Any, ledger: ActionLedger) -> None:
    """
    Answer framed requests on stream until the peer closes it.

    Ledger calls run in a worker thread so proof verification does not
    block the event loop.
    """
    try:
        while True:
            first = await _read_first_byte(stream)
            if first is None:
                return
            rest = await read_exact(stream, _HEADER.size - 1, READ_TIMEOUT)
            (length,) = _HEADER.unpack(first + rest)
            if length > MAX_FRAME_BYTES:
                raise SizeLimitError("frame too large")
            request_blob = await read_exact(stream, length, READ_TIMEOUT)

            # Not cancellable: a committed action must still get its response
            response_blob = await trio.to_thread.run_sync(
                handle_request_bytes, request_blob, ledger
            )
            await write_frame(stream, response_blob)
    except (ProtocolError, trio.TooSlowError) as exc:
        logger.warning("closing ledger stream: %s", exc)
    except (trio.BrokenResourceError, trio.ClosedResourceError):
        logger.debug("ledger stream closed by peer")
    finally:
        await stream.aclose()


# ============================================================================
# CLIENT
# ============================================================================

_ERROR_CLASSES = {
    ERR_STALE_ROOT: StaleRootError,
    ERR_INVALID_PROOF: InvalidProofError,
    ERR_NULLIFIER_REUSED: NullifierReusedError,
    ERR_DUPLICATE_MEMBER: DuplicateMemberError,
}


def raise_for_error(resp: LedgerResponse) -> None:
    """Re-raise a failed response as its taxonomy error."""
    if resp.ok:
        return
    exc_cls = _ERROR_CLASSES.get(resp.err)
    if exc_cls is not None:
        raise exc_cls(resp.detail)
    if resp.err == ERR_MALFORMED_REQUEST:
        raise SchemaError(resp.detail or resp.err)
    raise RemoteError(resp.err or "unknown", resp.detail)


class LedgerStreamClient:
    """
    Request/response client over one framed stream.

    Example:
        >>> client = LedgerStreamClient(stream)
        >>> event = await client.post(proof, ref)
    """

    def __init__(self, stream: Any, timeout: float = HANDLER_TIMEOUT + READ_TIMEOUT):
        self._stream = stream
        self._timeout = timeout
        self._lock = trio.Lock()

    async def request(self, req: LedgerRequest) -> LedgerResponse:
        blob = encode_request(req)
        async with self._lock:
            await write_frame(self._stream, blob)
            response_blob = await read_frame(self._stream, timeout=self._timeout)
        return decode_response(response_blob)

    async def _call(self, **fields) -> Dict[str, Any]:
        resp = await self.request(LedgerRequest(msg_v=MSG_V, **fields))
        raise_for_error(resp)
        return resp.result

    async def join(self, commitment: int) -> LedgerEvent:
        result = await self._call(op="join", commitment=commitment)
        return event_from_cbor_obj(result["event"])

    async def post(self, proof: MembershipProof, content_ref: bytes) -> LedgerEvent:
        result = await self._call(op="post", proof=proof, content_ref=content_ref)
        return event_from_cbor_obj(result["event"])

    async def vote(
        self, proof: MembershipProof, content_ref: bytes, upvote: bool
    ) -> LedgerEvent:
        result = await self._call(
            op="vote", proof=proof, content_ref=content_ref, upvote=upvote
        )
        return event_from_cbor_obj(result["event"])

    async def votes_for(self, content_ref: bytes) -> int:
        result = await self._call(op="votes_for", content_ref=content_ref)
        return result["tally"]

    async def events(
        self, since: int = 0, limit: int = DEFAULT_EVENTS_PER_PAGE
    ) -> tuple[List[LedgerEvent], int]:
        """One page of events and the index to poll from next."""
        result = await self._call(op="events", since=since, limit=limit)
        return [event_from_cbor_obj(e) for e in result["events"]], result["next"]

    async def group(self) -> Dict[str, Any]:
        return await self._call(op="group")

    async def aclose(self) -> None:
        await self._stream.aclose()
