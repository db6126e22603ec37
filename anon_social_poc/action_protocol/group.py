"""
Append-only group roster with a Merkle membership root.

Groups are immutable values: add_member() returns a new snapshot, so a
reader holding a Group always sees members and root that belong together.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from .config import DEFAULT_GROUP_ID, EMPTY_ROOT, MAX_TREE_DEPTH
from .merkle import AuthPath, build_tree, commitment_leaf, compute_root, tree_depth, verify_path
from .types import validate_scalar


@dataclass(frozen=True)
class MerkleProof:
    """Authentication path for one roster leaf."""

    index: int
    commitment: int
    path: Tuple[Tuple[bytes, bool], ...]
    root: int


@dataclass(frozen=True)
class Group:
    """
    Snapshot of a group roster.

    Attributes:
        group_id: Group identifier
        members: Commitments in insertion order (duplicates allowed)
        root: Merkle root over members, EMPTY_ROOT when empty
    """

    group_id: int
    members: Tuple[int, ...] = ()
    root: int = EMPTY_ROOT
    _leaves: Tuple[bytes, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def create(cls, group_id: int = DEFAULT_GROUP_ID) -> "Group":
        """Empty group with the empty-group root."""
        validate_scalar("group_id", group_id)
        return cls(group_id=group_id)

    @classmethod
    def from_members(cls, group_id: int, members: Iterable[int]) -> "Group":
        return cls.create(group_id).add_members(members)

    def _with_leaves(self, members: Tuple[int, ...], leaves: Tuple[bytes, ...]) -> "Group":
        if tree_depth(len(members)) > MAX_TREE_DEPTH:
            raise ValueError(f"group cannot exceed depth {MAX_TREE_DEPTH}")
        root = int.from_bytes(compute_root(list(leaves)), "big") if leaves else EMPTY_ROOT
        return Group(group_id=self.group_id, members=members, root=root, _leaves=leaves)

    def add_member(self, commitment: int) -> "Group":
        """Return a new group with commitment appended and the root recomputed."""
        validate_scalar("commitment", commitment)
        return self._with_leaves(
            self.members + (commitment,), self._leaves + (commitment_leaf(commitment),)
        )

    def add_members(self, commitments: Iterable[int]) -> "Group":
        new = tuple(validate_scalar("commitment", c) for c in commitments)
        if not new:
            return self
        return self._with_leaves(
            self.members + new, self._leaves + tuple(commitment_leaf(c) for c in new)
        )

    @property
    def size(self) -> int:
        return len(self.members)

    def __len__(self) -> int:
        return len(self.members)

    @property
    def depth(self) -> int:
        return tree_depth(len(self.members))

    def __contains__(self, commitment: object) -> bool:
        return commitment in self.members

    def index_of(self, commitment: int) -> Optional[int]:
        """First index of commitment, or None if it never joined."""
        try:
            return self.members.index(commitment)
        except ValueError:
            return None

    def merkle_proof(self, index: int) -> MerkleProof:
        """
        Authentication path for the member at index.

        Raises:
            IndexError: If index is out of range
        """
        if not 0 <= index < len(self.members):
            raise IndexError(f"member index {index} out of range")
        _, paths = build_tree(list(self._leaves))
        path: AuthPath = paths[index]
        return MerkleProof(
            index=index,
            commitment=self.members[index],
            path=tuple(path),
            root=self.root,
        )


def verify_merkle_proof(proof: MerkleProof) -> bool:
    """Check an authentication path against the root it claims."""
    try:
        leaf = commitment_leaf(proof.commitment)
        root = proof.root.to_bytes(32, "big")
    except (AttributeError, OverflowError, TypeError):
        return False
    return verify_path(leaf, list(proof.path), root)
