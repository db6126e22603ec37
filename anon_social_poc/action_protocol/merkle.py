"""
Merkle tree utilities for the group roster.
Uses SHA-256 with domain separation for leaf/node hashing.

Leaves are member commitments (32-byte big-endian encodings) in insertion
order; odd levels are padded with EMPTY_NODE, so a roster never shares a
root with the same roster plus a copy of its last member.
"""

import hashlib
from typing import List, Tuple, Dict

from .config import EMPTY_ROOT, MIN_TREE_DEPTH, POINT_SIZE_BYTES

MERKLE_DOMAIN_SEPARATORS = {
    "merkle_leaf": b"MERKLE_LEAF_V1",
    "merkle_node": b"MERKLE_NODE_V1",
}

AuthPath = List[Tuple[bytes, bool]]

EMPTY_NODE = hashlib.sha256(b"MERKLE_EMPTY_V1").digest()


def hash_leaf(leaf_data: bytes) -> bytes:
    """
    Hash a Merkle tree leaf with domain separation.

    Args:
        leaf_data: Leaf content (serialized commitment)

    Returns:
        32-byte SHA-256 hash
    """
    return hashlib.sha256(MERKLE_DOMAIN_SEPARATORS["merkle_leaf"] + leaf_data).digest()


def hash_node(left: bytes, right: bytes) -> bytes:
    """
    Hash two Merkle node hashes.

    Note:
        Uses fixed left||right ordering (no sorting).
    """
    domain_sep = MERKLE_DOMAIN_SEPARATORS["merkle_node"]
    return hashlib.sha256(domain_sep + left + right).digest()


def commitment_leaf(commitment: int) -> bytes:
    """Leaf hash for a member commitment."""
    return hash_leaf(commitment.to_bytes(POINT_SIZE_BYTES, "big"))


def build_tree(leaves: List[bytes]) -> Tuple[bytes, Dict[int, AuthPath]]:
    """
    Build a Merkle tree and generate authentication paths.

    Args:
        leaves: List of leaf hashes (each 32 bytes)

    Returns:
        (root_hash, auth_paths)
        - root_hash: 32-byte Merkle root
        - auth_paths: Dict mapping leaf_index -> [(sibling, is_left), ...]

    Algorithm:
        - If odd number of nodes at any level, pad with EMPTY_NODE
        - Build tree bottom-up
        - Track sibling positions for authentication paths
    """
    if not leaves:
        raise ValueError("Cannot build tree with zero leaves")

    if len(leaves) == 1:
        return leaves[0], {0: []}

    auth_paths: Dict[int, AuthPath] = {i: [] for i in range(len(leaves))}

    current_level: List[Tuple[bytes, List[int]]] = [
        (leaf, [i]) for i, leaf in enumerate(leaves)
    ]

    while len(current_level) > 1:
        next_level: List[Tuple[bytes, List[int]]] = []

        for i in range(0, len(current_level), 2):
            left_hash, left_indices = current_level[i]

            if i + 1 < len(current_level):
                right_hash, right_indices = current_level[i + 1]
            else:
                right_hash, right_indices = EMPTY_NODE, []

            parent = hash_node(left_hash, right_hash)

            # Left child's sibling sits on the right (is_left=False) and vice versa
            for leaf_idx in left_indices:
                auth_paths[leaf_idx].append((right_hash, False))
            for leaf_idx in right_indices:
                auth_paths[leaf_idx].append((left_hash, True))

            next_level.append((parent, left_indices + right_indices))

        current_level = next_level

    return current_level[0][0], auth_paths


def compute_root(leaves: List[bytes]) -> bytes:
    """Root only, without tracking authentication paths."""
    if not leaves:
        raise ValueError("Cannot build tree with zero leaves")

    level = list(leaves)
    while len(level) > 1:
        if len(level) % 2:
            level.append(EMPTY_NODE)
        level = [hash_node(level[i], level[i + 1]) for i in range(0, len(level), 2)]
    return level[0]


def verify_path(leaf_hash: bytes, path: AuthPath, root: bytes) -> bool:
    """
    Verify a Merkle authentication path.

    Args:
        leaf_hash: Hash of the leaf (32 bytes)
        path: Authentication path [(sibling, is_left), ...]
        root: Expected root hash (32 bytes)

    Returns:
        True if path is valid, False otherwise
    """
    current = leaf_hash

    for sibling, is_left in path:
        if is_left:
            current = hash_node(sibling, current)
        else:
            current = hash_node(current, sibling)

    return current == root


def roster_root(commitments) -> int:
    """Group root (as a Scalar) over commitments in insertion order."""
    leaves = [commitment_leaf(c) for c in commitments]
    if not leaves:
        return EMPTY_ROOT
    return int.from_bytes(compute_root(leaves), "big")


def tree_depth(size: int) -> int:
    """Depth of a roster of `size` members (0 for an empty roster)."""
    if size < 0:
        raise ValueError("size must be non-negative")
    if size == 0:
        return 0
    return max(MIN_TREE_DEPTH, (size - 1).bit_length())
