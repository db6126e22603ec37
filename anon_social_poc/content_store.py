"""
Content storage collaborators.

The ledger never touches a content store: clients upload a post body, turn
the returned identifier into a content reference and submit that.
Identifiers are legacy (CIDv0) identifiers of the sha2-256 of the bytes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from .action_protocol.codec import from_ref, to_ref
from .action_protocol.config import MAX_POST_CHARS, POST_BODY_VERSION
from .action_protocol.exceptions import ContentUnavailableError

logger = logging.getLogger(__name__)


def identifier_for(data: bytes) -> str:
    """Content identifier of data (sha2-256, legacy form)."""
    return from_ref(hashlib.sha256(data).digest())


class ContentStore(Protocol):
    def put(self, data: bytes) -> str:
        """Store data and return its content identifier."""

    def get(self, identifier: str) -> Optional[bytes]:
        """Return stored bytes, or None if this store does not have them."""


class InMemoryContentStore:
    """Dict-backed store for tests and single-process use."""

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes) -> str:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("data must be bytes")
        data = bytes(data)
        identifier = identifier_for(data)
        with self._lock:
            self._blobs[identifier] = data
        return identifier

    def get(self, identifier: str) -> Optional[bytes]:
        # Normalizes modern identifiers to the stored legacy form
        key = from_ref(to_ref(identifier))
        with self._lock:
            return self._blobs.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class DirectoryContentStore:
    """
    One file per blob under a directory, named by content identifier.

    Raises:
        ContentUnavailableError: When the directory cannot be read or written
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, identifier: str) -> Path:
        return self.root / from_ref(to_ref(identifier))

    def put(self, data: bytes) -> str:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("data must be bytes")
        data = bytes(data)
        identifier = identifier_for(data)
        path = self.root / identifier
        if path.exists():
            return identifier

        tmp = path.with_suffix(".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as exc:
            raise ContentUnavailableError(f"cannot store {identifier}: {exc}") from exc
        return identifier

    def get(self, identifier: str) -> Optional[bytes]:
        path = self._path(identifier)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise ContentUnavailableError(f"cannot read {identifier}: {exc}") from exc

        if identifier_for(data) != path.name:
            logger.warning("content %s failed its digest check", path.name)
            return None
        return data


# ============================================================================
# POST BODIES
# ============================================================================


@dataclass(frozen=True)
class PostBody:
    """Stored post document: {"text", "createdAt", "version"} as JSON."""

    text: str
    created_at: int
    version: str = POST_BODY_VERSION

    def validate(self, max_chars: int = MAX_POST_CHARS) -> "PostBody":
        if not isinstance(self.text, str):
            raise TypeError("post text must be str")
        if not self.text.strip():
            raise ValueError("post text cannot be empty")
        if len(self.text) > max_chars:
            raise ValueError(f"post text exceeds {max_chars} characters")
        return self

    def to_bytes(self) -> bytes:
        doc = {"text": self.text, "createdAt": self.created_at, "version": self.version}
        return json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "PostBody":
        """
        Raises:
            ValueError: If data is not a post document
        """
        try:
            doc = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"invalid post body: {exc}") from exc
        if not isinstance(doc, dict) or not isinstance(doc.get("text"), str):
            raise ValueError("invalid post body: missing text")
        created_at = doc.get("createdAt", 0)
        if not isinstance(created_at, int) or isinstance(created_at, bool):
            raise ValueError("invalid post body: createdAt must be an integer")
        return cls(
            text=doc["text"],
            created_at=created_at,
            version=str(doc.get("version", POST_BODY_VERSION)),
        )
