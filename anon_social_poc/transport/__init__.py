"""Ledger request/response schemas and stream utilities."""

from .constants import ERROR_KINDS, MSG_V, PROTOCOL_ID
from .errors import ProtocolError, RemoteError, SchemaError, SizeLimitError
from .framing import LedgerStreamClient, raise_for_error, serve_ledger_stream
from .handler import handle_request_bytes
from .messages import (
    LedgerRequest,
    LedgerResponse,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)

__all__ = [
    "ERROR_KINDS",
    "MSG_V",
    "PROTOCOL_ID",
    "ProtocolError",
    "RemoteError",
    "SchemaError",
    "SizeLimitError",
    "LedgerRequest",
    "LedgerResponse",
    "LedgerStreamClient",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
    "handle_request_bytes",
    "raise_for_error",
    "serve_ledger_stream",
]
