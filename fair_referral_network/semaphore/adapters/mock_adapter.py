from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import cbor2

from ..config import DOMAIN_SEPARATORS
from ..hashing import HashPrimitive, field_to_bytes
from ..identity import Identity
from ..interfaces import ProofBackend
from ..merkle import MerkleProof
from ..security import RandomnessSource, constant_time_compare, keyed_tag
from ..types import MembershipProof

logger = logging.getLogger(__name__)


class MockProofBackend(ProofBackend):
    """
    Designated-verifier simulation of the Semaphore prover.

    Notes:
    - The witness is fully checked at proving time (leaf matches the identity
      commitment, path reaches the root, nullifier hash is derived from the
      identity), then the public statement is sealed with an HMAC tag.
    - Only holders of the backend key can produce or check proofs, so prover
      and verifier must share the instance (or the key).
    - The tag hides which leaf was used, but this is NOT a zero-knowledge
      proof system and gives no security against the key holder.
    """

    _BACKEND_NAME = "mock"
    _BACKEND_VERSION = "0.1.0"
    _KEY_LEN = 32
    _TAG_LEN = 32

    def __init__(self, hasher: HashPrimitive, key: Optional[bytes] = None) -> None:
        super().__init__(hasher)
        if key is None:
            key = RandomnessSource().get_random_bytes(self._KEY_LEN)
        if not isinstance(key, bytes) or len(key) != self._KEY_LEN:
            raise ValueError(f"key must be {self._KEY_LEN} bytes")
        self._key = key

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    def _statement_tag(self, proof: MembershipProof) -> bytes:
        return keyed_tag(
            self._key,
            DOMAIN_SEPARATORS["mock_statement"],
            self.hasher.identifier.encode("utf-8"),
            *(field_to_bytes(value) for value in proof.public_signals()),
        )

    def generate_proof(
        self,
        identity: Identity,
        merkle_proof: MerkleProof,
        signal: bytes,
        external_nullifier: int,
    ) -> MembershipProof:
        if not isinstance(signal, bytes):
            raise TypeError("signal must be bytes")
        nullifier_hash = self._check_witness(identity, merkle_proof, external_nullifier)

        unsealed = MembershipProof(
            merkle_root=merkle_proof.root,
            signal=signal,
            external_nullifier=external_nullifier,
            nullifier_hash=nullifier_hash,
            proof_bytes=b"\x00",
            backend=self.backend_name,
        )
        proof_bytes = cbor2.dumps(
            {"adapter": "mock", "v": 1, "tag": self._statement_tag(unsealed)},
            canonical=True,
        )
        return MembershipProof(
            merkle_root=unsealed.merkle_root,
            signal=unsealed.signal,
            external_nullifier=unsealed.external_nullifier,
            nullifier_hash=unsealed.nullifier_hash,
            proof_bytes=proof_bytes,
            backend=self.backend_name,
        )

    def verify_proof(self, proof: MembershipProof) -> bool:
        try:
            if not isinstance(proof, MembershipProof):
                return False
            if proof.backend != self.backend_name:
                return False
            proof.validate()

            payload = cbor2.loads(proof.proof_bytes)
            if not isinstance(payload, dict):
                return False
            if payload.get("adapter") != "mock" or payload.get("v") != 1:
                return False
            tag = payload.get("tag")
            if not isinstance(tag, bytes) or len(tag) != self._TAG_LEN:
                return False

            return constant_time_compare(tag, self._statement_tag(proof))
        except Exception:
            logger.debug("Mock proof failed to parse", exc_info=True)
            return False

    def get_backend_info(self) -> Dict[str, Any]:
        info = super().get_backend_info()
        info.update(
            {
                "adapter": "mock",
                "features": ["membership", "nullifier", "batch_verify"],
                "security": "mock_only",
            }
        )
        return info
