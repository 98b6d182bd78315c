"""
Incremental binary Merkle tree for identity commitments.

Append-only, fixed depth, padded with a public zero value. Every node that
has been computed is cached per level, so inserting a leaf recomputes only the
``depth`` nodes on its path and Merkle paths are read straight from the cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_TREE_DEPTH, MAX_TREE_DEPTH, MIN_TREE_DEPTH
from .exceptions import TreeFullError
from .hashing import HashPrimitive, default_zero_value, require_field_element

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MerkleProof:
    """
    Authentication path for one leaf.

    Attributes:
        root: Root the path leads to
        leaf: Leaf value
        leaf_index: Position of the leaf
        siblings: Sibling node per level, bottom-up
        path_indices: 0 if the running node is a left child at that level, 1 if right
    """

    root: int
    leaf: int
    leaf_index: int
    siblings: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    @property
    def depth(self) -> int:
        return len(self.siblings)


def compute_zeroes(hasher: HashPrimitive, depth: int, zero_value: int) -> List[int]:
    """Return the empty-subtree value for each level, leaves first."""
    zeroes = [zero_value]
    for _ in range(depth):
        zeroes.append(hasher.hash2(zeroes[-1], zeroes[-1]))
    return zeroes


class IncrementalMerkleTree:
    """
    Append-only binary Merkle tree.

    Example:
        >>> from fair_referral_network.semaphore.hashing import Sha256FieldHash
        >>> tree = IncrementalMerkleTree(Sha256FieldHash(), depth=4)
        >>> root = tree.insert(1)
        >>> tree.root == root
        True
    """

    def __init__(
        self,
        hasher: HashPrimitive,
        depth: int = DEFAULT_TREE_DEPTH,
        zero_value: Optional[int] = None,
    ) -> None:
        if not isinstance(depth, int) or not MIN_TREE_DEPTH <= depth <= MAX_TREE_DEPTH:
            raise ValueError(
                f"depth must be between {MIN_TREE_DEPTH} and {MAX_TREE_DEPTH}"
            )
        if zero_value is None:
            zero_value = default_zero_value()
        require_field_element(zero_value, "zero_value")

        self.hasher = hasher
        self.depth = depth
        self.zero_value = zero_value
        self._zeroes = compute_zeroes(hasher, depth, zero_value)
        # _nodes[level][i] is the i-th computed node at that level
        self._nodes: List[List[int]] = [[] for _ in range(depth + 1)]
        self._root = self._zeroes[depth]

    @property
    def root(self) -> int:
        return self._root

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def next_leaf_index(self) -> int:
        return len(self._nodes[0])

    @property
    def leaves(self) -> List[int]:
        return self._nodes[0]

    @property
    def zeroes(self) -> Tuple[int, ...]:
        return tuple(self._zeroes)

    def current_root(self) -> int:
        return self._root

    def is_full(self) -> bool:
        return self.next_leaf_index >= self.capacity

    def __len__(self) -> int:
        return self.next_leaf_index

    def insert(self, leaf: int) -> int:
        """
        Append a leaf and return the new root.

        Raises:
            TreeFullError: If all ``2**depth`` slots are used
            ValueError: If leaf is not a field element
        """
        require_field_element(leaf, "leaf")
        index = self.next_leaf_index
        if index >= self.capacity:
            raise TreeFullError(
                f"tree of depth {self.depth} is full ({self.capacity} leaves)"
            )

        # Hash the whole path before touching the cache so a failing hash
        # primitive leaves the tree unchanged
        updates = []
        node = leaf
        position = index
        for level in range(self.depth):
            if position & 1:
                left, right = self._nodes[level][position - 1], node
            else:
                left, right = node, self._zeroes[level]
            node = self.hasher.hash2(left, right)
            position >>= 1
            updates.append((level + 1, position, node))

        self._nodes[0].append(leaf)
        for level, position, value in updates:
            parents = self._nodes[level]
            if position < len(parents):
                parents[position] = value
            else:
                parents.append(value)

        self._root = node
        logger.debug("Inserted leaf %d, root=%x", index, node)
        return node

    def extend(self, leaves: Iterable[int]) -> int:
        for leaf in leaves:
            self.insert(leaf)
        return self._root

    def index_of(self, leaf: int) -> int:
        """Return the index of leaf, or -1 if it was never inserted."""
        try:
            return self._nodes[0].index(leaf)
        except ValueError:
            return -1

    def create_proof(self, leaf_index: int) -> MerkleProof:
        """
        Build the authentication path for an inserted leaf.

        Raises:
            IndexError: If no leaf exists at leaf_index
        """
        if not isinstance(leaf_index, int) or not 0 <= leaf_index < self.next_leaf_index:
            raise IndexError(f"no leaf at index {leaf_index}")

        siblings: List[int] = []
        path_indices: List[int] = []
        index = leaf_index
        for level in range(self.depth):
            sibling_index = index ^ 1
            nodes = self._nodes[level]
            if sibling_index < len(nodes):
                siblings.append(nodes[sibling_index])
            else:
                siblings.append(self._zeroes[level])
            path_indices.append(index & 1)
            index >>= 1

        return MerkleProof(
            root=self._root,
            leaf=self._nodes[0][leaf_index],
            leaf_index=leaf_index,
            siblings=tuple(siblings),
            path_indices=tuple(path_indices),
        )

    def verify_proof(self, proof: MerkleProof) -> bool:
        return verify_proof(self.hasher, proof)


def verify_proof(hasher: HashPrimitive, proof: MerkleProof) -> bool:
    """
    Verify a Merkle authentication path against its root.

    Returns:
        True if hashing the leaf up the path yields proof.root
    """
    if len(proof.siblings) != len(proof.path_indices):
        return False

    node = proof.leaf
    for sibling, is_right in zip(proof.siblings, proof.path_indices):
        if is_right not in (0, 1):
            return False
        if is_right:
            node = hasher.hash2(sibling, node)
        else:
            node = hasher.hash2(node, sibling)

    return node == proof.root


def compute_root(
    hasher: HashPrimitive,
    leaves: Sequence[int],
    depth: int,
    zero_value: Optional[int] = None,
) -> int:
    """Recompute a root from the ordered leaf sequence alone."""
    tree = IncrementalMerkleTree(hasher, depth=depth, zero_value=zero_value)
    return tree.extend(leaves)
