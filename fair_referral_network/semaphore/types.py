"""
DRAFT - requires cryptographic review before production use.

Common types exchanged between provers and the verifier.

This module provides:
1. MembershipProof - the ephemeral claim artifact with CBOR serialization
2. ReferralSignal - the public payload a claim carries
"""

from dataclasses import dataclass
from typing import Any, Dict

try:
    import cbor2
except ImportError:
    raise ImportError(
        "cbor2 is required for proof serialization. "
        "Install with: pip install cbor2"
    )

from .config import (
    MAX_PROOF_SIZE_BYTES,
    MAX_SIGNAL_SIZE_BYTES,
    PROOF_VERSION,
    SIGNAL_VERSION,
)
from .exceptions import ProofInvalidError
from .hashing import hash_signal, is_field_element, require_field_element

# ============================================================================
# MEMBERSHIP PROOF
# ============================================================================


@dataclass(frozen=True)
class MembershipProof:
    """
    Zero-knowledge membership + nullifier proof.

    Public statement: "the holder of a leaf under ``merkle_root`` emits
    ``signal`` in scope ``external_nullifier`` with ``nullifier_hash``".
    The proof never carries the commitment or the leaf index.

    Attributes:
        merkle_root: Tree root the proof was generated against
        signal: Public payload bytes
        external_nullifier: Scope identifier (field element)
        nullifier_hash: hash(identity nullifier, external_nullifier)
        proof_bytes: Backend-specific proof encoding
        backend: Name of the backend that produced the proof

    Example:
        >>> proof = MembershipProof(
        ...     merkle_root=1, signal=b"s", external_nullifier=2,
        ...     nullifier_hash=3, proof_bytes=b"p", backend="mock")
        >>> MembershipProof.deserialize(proof.serialize()) == proof
        True
    """

    merkle_root: int
    signal: bytes
    external_nullifier: int
    nullifier_hash: int
    proof_bytes: bytes
    backend: str

    @property
    def signal_hash(self) -> int:
        return hash_signal(self.signal)

    def public_signals(self) -> tuple:
        """Public inputs in membership circuit order."""
        return (
            self.merkle_root,
            self.nullifier_hash,
            self.signal_hash,
            self.external_nullifier,
        )

    def validate(self) -> None:
        """
        Structural validation (not cryptographic verification).

        Raises:
            ProofInvalidError: If a field is malformed
        """
        for label in ("merkle_root", "external_nullifier", "nullifier_hash"):
            if not is_field_element(getattr(self, label)):
                raise ProofInvalidError(f"{label} is not a field element")
        if not isinstance(self.signal, bytes):
            raise ProofInvalidError("signal must be bytes")
        if len(self.signal) > MAX_SIGNAL_SIZE_BYTES:
            raise ProofInvalidError("signal too large")
        if not isinstance(self.proof_bytes, bytes) or not self.proof_bytes:
            raise ProofInvalidError("proof_bytes must be non-empty bytes")
        if len(self.proof_bytes) > MAX_PROOF_SIZE_BYTES:
            raise ProofInvalidError("proof_bytes too large")
        if not isinstance(self.backend, str) or not self.backend:
            raise ProofInvalidError("backend must be a non-empty string")

    # ========================================================================
    # SERIALIZATION (CBOR)
    # ========================================================================

    def serialize(self) -> bytes:
        data = {
            "v": PROOF_VERSION,
            "r": self.merkle_root,
            "s": self.signal,
            "x": self.external_nullifier,
            "n": self.nullifier_hash,
            "p": self.proof_bytes,
            "b": self.backend,
        }
        return cbor2.dumps(data, canonical=True)

    @classmethod
    def deserialize(cls, data: bytes) -> "MembershipProof":
        """
        Deserialize proof from CBOR bytes.

        Raises:
            ProofInvalidError: If data is malformed or the version is unsupported
        """
        try:
            obj = cbor2.loads(data)
        except Exception as e:
            raise ProofInvalidError(f"Failed to deserialize proof: {e}") from e

        if not isinstance(obj, dict):
            raise ProofInvalidError("Invalid proof format: expected a map")

        version = obj.get("v")
        if version != PROOF_VERSION:
            raise ProofInvalidError(
                f"Unsupported proof version: {version} (expected {PROOF_VERSION})"
            )

        required = ("r", "s", "x", "n", "p", "b")
        if any(key not in obj for key in required):
            raise ProofInvalidError("Invalid proof format: missing required fields")

        proof = cls(
            merkle_root=obj["r"],
            signal=obj["s"],
            external_nullifier=obj["x"],
            nullifier_hash=obj["n"],
            proof_bytes=obj["p"],
            backend=obj["b"],
        )
        proof.validate()
        return proof

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible view; field elements as hex."""
        return {
            "merkle_root": hex(self.merkle_root),
            "signal": self.signal.hex(),
            "external_nullifier": hex(self.external_nullifier),
            "nullifier_hash": hex(self.nullifier_hash),
            "proof": self.proof_bytes.hex(),
            "backend": self.backend,
        }


# ============================================================================
# REFERRAL SIGNAL
# ============================================================================


@dataclass(frozen=True)
class ReferralSignal:
    """
    Claim payload: which member's referral chain is paid, how much, for what.

    Attributes:
        member: Commitment of the acting member
        value: Total claimable value (smallest ledger unit)
        event: Claim scope; the external nullifier is derived from it
    """

    member: int
    value: int
    event: str

    def __post_init__(self) -> None:
        require_field_element(self.member, "member")
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError("value must be int")
        if self.value < 0:
            raise ValueError("value must be non-negative")
        if not isinstance(self.event, str) or not self.event:
            raise ValueError("event must be a non-empty string")
        size = len(self.encode())
        if size > MAX_SIGNAL_SIZE_BYTES:
            raise ValueError(
                f"encoded signal is {size} bytes (max {MAX_SIGNAL_SIZE_BYTES})"
            )

    def encode(self) -> bytes:
        return cbor2.dumps(
            {"v": SIGNAL_VERSION, "m": self.member, "a": self.value, "e": self.event},
            canonical=True,
        )

    @classmethod
    def decode(cls, data: bytes) -> "ReferralSignal":
        """
        Raises:
            ProofInvalidError: If the signal is not a referral signal
        """
        try:
            obj = cbor2.loads(data)
        except Exception as e:
            raise ProofInvalidError(f"Failed to decode signal: {e}") from e
        if not isinstance(obj, dict) or obj.get("v") != SIGNAL_VERSION:
            raise ProofInvalidError("Unsupported signal format")
        try:
            return cls(member=obj["m"], value=obj["a"], event=obj["e"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProofInvalidError(f"Invalid signal: {e}") from e
