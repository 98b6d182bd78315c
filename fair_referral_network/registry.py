"""
Network registry: who referred whom, bound to the commitment tree.

Every registered commitment has exactly one tree leaf and one referral edge,
created together by ``join``. Edges form a forest whose roots are genesis
members (no referrer).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from .semaphore.exceptions import (
    DuplicateMemberError,
    TreeFullError,
    UnknownReferrerError,
)
from .semaphore.hashing import require_field_element
from .semaphore.merkle import IncrementalMerkleTree

logger = logging.getLogger(__name__)

# Sentinel referrer for genesis members
GENESIS = None


@dataclass(frozen=True)
class ReferralEdge:
    """
    Immutable record created once per member at join time.

    Attributes:
        member: Member commitment
        referrer: Referrer commitment, or None for genesis members
        ordinal: Join order; equals the member's leaf index
        address: Optional payout address on the external ledger
    """

    member: int
    referrer: Optional[int]
    ordinal: int
    address: Optional[str] = None

    @property
    def is_genesis(self) -> bool:
        return self.referrer is GENESIS


class NetworkRegistry:
    """
    Binds commitments to referral-chain position and the Merkle tree.

    Genesis joins (no referrer) are accepted while the registry is empty
    (bootstrap) and, afterwards, only for commitments listed in
    ``genesis_referrers``.

    Example:
        >>> from fair_referral_network.semaphore.hashing import Sha256FieldHash
        >>> registry = NetworkRegistry(IncrementalMerkleTree(Sha256FieldHash(), 4))
        >>> registry.join(11)
        0
        >>> registry.join(12, referrer=11)
        1
        >>> registry.chain(12)
        [11]
    """

    def __init__(
        self,
        tree: IncrementalMerkleTree,
        genesis_referrers: Iterable[int] = (),
    ) -> None:
        self._tree = tree
        self._genesis_referrers = frozenset(
            require_field_element(c, "genesis referrer") for c in genesis_referrers
        )
        self._edges: Dict[int, ReferralEdge] = {}

    @property
    def tree(self) -> IncrementalMerkleTree:
        return self._tree

    @property
    def genesis_referrers(self) -> frozenset:
        return self._genesis_referrers

    def __len__(self) -> int:
        return len(self._edges)

    def __contains__(self, commitment: int) -> bool:
        return commitment in self._edges

    def is_member(self, commitment: int) -> bool:
        return commitment in self._edges

    def edge(self, commitment: int) -> ReferralEdge:
        """
        Raises:
            KeyError: If the commitment is not registered
        """
        return self._edges[commitment]

    def edges(self) -> Iterator[ReferralEdge]:
        """Edges in join order."""
        return iter(sorted(self._edges.values(), key=lambda e: e.ordinal))

    def referrer_of(self, commitment: int) -> Optional[int]:
        return self._edges[commitment].referrer

    def leaf_index_of(self, commitment: int) -> int:
        return self._edges[commitment].ordinal

    def address_of(self, commitment: int) -> Optional[str]:
        edge = self._edges.get(commitment)
        return edge.address if edge else None

    def can_join_as_genesis(self, commitment: int) -> bool:
        return not self._edges or commitment in self._genesis_referrers

    def join(
        self,
        commitment: int,
        referrer: Optional[int] = GENESIS,
        address: Optional[str] = None,
    ) -> int:
        """
        Register a commitment under its referrer and insert it into the tree.

        Returns:
            Leaf index of the new member

        Raises:
            ValueError: If a commitment is not a field element
            DuplicateMemberError: If the commitment is already registered
            UnknownReferrerError: If the referrer is not registered, or a
                genesis join is not permitted
            TreeFullError: If the tree has no free leaf
        """
        require_field_element(commitment, "commitment")
        if commitment in self._edges:
            raise DuplicateMemberError(f"commitment {commitment:#x} already joined")

        if referrer is GENESIS:
            if not self.can_join_as_genesis(commitment):
                raise UnknownReferrerError(
                    "genesis join is only allowed at bootstrap or for configured "
                    "root referrers"
                )
        else:
            require_field_element(referrer, "referrer")
            if referrer not in self._edges:
                raise UnknownReferrerError(f"referrer {referrer:#x} is not registered")

        if self._tree.is_full():
            raise TreeFullError(
                f"tree of depth {self._tree.depth} is full ({self._tree.capacity} leaves)"
            )

        leaf_index = self._tree.next_leaf_index
        self._tree.insert(commitment)
        self._edges[commitment] = ReferralEdge(
            member=commitment,
            referrer=referrer,
            ordinal=leaf_index,
            address=address,
        )
        logger.debug(
            "Registered member %d (%s)",
            leaf_index,
            "genesis" if referrer is GENESIS else "referred",
        )
        return leaf_index

    def chain(self, commitment: int, max_levels: Optional[int] = None) -> List[int]:
        """
        Referrers of ``commitment``, nearest first, up to the genesis member.

        Raises:
            KeyError: If the commitment is not registered
        """
        chain: List[int] = []
        current = self._edges[commitment].referrer
        while current is not GENESIS:
            if max_levels is not None and len(chain) >= max_levels:
                break
            chain.append(current)
            current = self._edges[current].referrer
        return chain
