"""
Abstract interface for membership proof backends.

The tree, the registry and the fee engine only ever talk to this interface,
so the concrete cryptographic backend can be swapped freely.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .exceptions import ProofGenerationError
from .hashing import HashPrimitive
from .identity import Identity
from .merkle import MerkleProof
from .merkle import verify_proof as verify_path
from .types import MembershipProof


class ProofBackend(ABC):
    """Capability interface: ``generate_proof`` / ``verify_proof``."""

    def __init__(self, hasher: HashPrimitive) -> None:
        self.hasher = hasher

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short registry name of the backend."""

    @property
    @abstractmethod
    def backend_version(self) -> str:
        """Backend implementation version."""

    @abstractmethod
    def generate_proof(
        self,
        identity: Identity,
        merkle_proof: MerkleProof,
        signal: bytes,
        external_nullifier: int,
    ) -> MembershipProof:
        """
        Prove membership of ``identity`` under ``merkle_proof.root``.

        Raises:
            ProofGenerationError: If the witness is inconsistent
        """

    @abstractmethod
    def verify_proof(self, proof: MembershipProof) -> bool:
        """Return True if the proof verifies. Never raises on bad input."""

    def _check_witness(
        self,
        identity: Identity,
        merkle_proof: MerkleProof,
        external_nullifier: int,
    ) -> int:
        """Prover-side checks; returns the nullifier hash."""
        if not isinstance(identity, Identity):
            raise TypeError("identity must be Identity")
        if not isinstance(merkle_proof, MerkleProof):
            raise TypeError("merkle_proof must be MerkleProof")
        if identity.commitment(self.hasher) != merkle_proof.leaf:
            raise ProofGenerationError("identity commitment does not match the leaf")
        if not verify_path(self.hasher, merkle_proof):
            raise ProofGenerationError("Merkle path verification failed (prover check)")
        try:
            return identity.nullifier_hash(self.hasher, external_nullifier)
        except (TypeError, ValueError) as exc:
            raise ProofGenerationError(str(exc)) from exc

    def batch_verify(self, proofs: List[MembershipProof]) -> bool:
        return all(self.verify_proof(proof) for proof in proofs)

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "hash": self.hasher.identifier,
        }
