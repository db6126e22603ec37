"""Wire protocol error types."""


class ProtocolError(Exception):
    """Base error for ledger wire protocol issues."""


class SchemaError(ProtocolError):
    """Raised when a message fails schema validation."""


class SizeLimitError(ProtocolError):
    """Raised when a message exceeds configured size limits."""


class RemoteError(ProtocolError):
    """The ledger answered with an error kind the client has no class for."""

    def __init__(self, kind: str, detail: str = ""):
        super().__init__(f"{kind}: {detail}" if detail else kind)
        self.kind = kind
        self.detail = detail
