"""Semaphore-style membership and nullifier protocol."""

from __future__ import annotations

from .factory import get_backend_type, get_proof_backend, set_backend_type
from .hashing import (
    HashPrimitive,
    PoseidonCliHash,
    Sha256FieldHash,
    derive_external_nullifier,
    get_hash,
    hash_signal,
)
from .identity import Identity
from .interfaces import ProofBackend
from .merkle import IncrementalMerkleTree, MerkleProof, compute_root
from .nullifiers import NullifierRecord
from .types import MembershipProof, ReferralSignal

__all__ = [
    "get_proof_backend",
    "get_backend_type",
    "set_backend_type",
    "HashPrimitive",
    "PoseidonCliHash",
    "Sha256FieldHash",
    "derive_external_nullifier",
    "get_hash",
    "hash_signal",
    "Identity",
    "ProofBackend",
    "IncrementalMerkleTree",
    "MerkleProof",
    "compute_root",
    "NullifierRecord",
    "MembershipProof",
    "ReferralSignal",
]
