"""
Proof backend interface.

WARNING: Backends differ in their security assumptions; only the ring
backend provides anonymity and soundness.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict

from .group import Group
from .identity import Identity
from .types import MembershipProof


class ProofBackend(ABC):
    """
    Produces and checks membership proofs bound to a scope and message.

    prove() raises on local precondition failures (NotAMemberError);
    verify() never raises and returns False for anything it cannot accept.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Human-readable backend name."""

    @property
    @abstractmethod
    def backend_version(self) -> str:
        """Backend implementation version."""

    @abstractmethod
    def compute_nullifier(self, identity: Identity, scope: int) -> int:
        """Deterministic nullifier F(identity.secret, scope)."""

    @abstractmethod
    def prove(
        self, identity: Identity, group: Group, scope: int, message: int
    ) -> MembershipProof:
        """
        Prove that identity.commitment is in group, bound to scope and message.

        Raises:
            NotAMemberError: If the commitment is not among group.members
            ProofGenerationError: If the proof cannot be built
        """

    @abstractmethod
    def verify(self, group_id: int, proof: MembershipProof) -> bool:
        """Check proof against its own root, nullifier, message and scope."""

    def get_backend_info(self) -> Dict[str, Any]:
        return {"name": self.backend_name, "version": self.backend_version}
