"""
Groth16 backend driving the referral membership circuit through the snarkjs CLI.

Proving runs ``snarkjs groth16 fullprove`` on the circuit witness; verifying
runs ``snarkjs groth16 verify`` against the verification key.

The circuit is not the stock Semaphore v2 circuit. It must be compiled against
the same formulas this package uses:

- leaf: ``hash(trapdoor, nullifier)``
- nullifierHash: ``hash(nullifier, externalNullifier)``
- root: the leaf folded up ``siblings`` / ``pathIndices`` with ``hash(left, right)``

with public outputs ``[root, nullifierHash, signalHash, externalNullifier]``.
Both sides must also use the same Poseidon primitive, otherwise every proof
fails the public-signal check in ``generate_proof``.
"""

from __future__ import annotations

import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import cbor2

from ..config import DEFAULT_TREE_DEPTH
from ..exceptions import ConfigurationError, ProofGenerationError
from ..hashing import HashPrimitive, hash_signal
from ..identity import Identity
from ..interfaces import ProofBackend
from ..merkle import MerkleProof
from ..types import MembershipProof
from .assets import AssetsResolver

logger = logging.getLogger(__name__)

DEFAULT_PROVER_TIMEOUT = 120
DEFAULT_VERIFIER_TIMEOUT = 30


class Groth16Backend(ProofBackend):
    """Membership proofs from the referral circuit via an external ``snarkjs``."""

    _BACKEND_NAME = "groth16"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        hasher: HashPrimitive,
        assets: Optional[AssetsResolver] = None,
        depth: int = DEFAULT_TREE_DEPTH,
        snarkjs: str = "snarkjs",
        prover_timeout: float = DEFAULT_PROVER_TIMEOUT,
        verifier_timeout: float = DEFAULT_VERIFIER_TIMEOUT,
    ) -> None:
        super().__init__(hasher)
        self.assets = assets or AssetsResolver()
        self.depth = depth
        self.snarkjs = snarkjs
        self.prover_timeout = prover_timeout
        self.verifier_timeout = verifier_timeout
        if not hasher.name.startswith("poseidon"):
            logger.warning(
                "Groth16 backend configured with %s; the membership circuit "
                "expects Poseidon",
                hasher.identifier,
            )

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    def generate_proof(
        self,
        identity: Identity,
        merkle_proof: MerkleProof,
        signal: bytes,
        external_nullifier: int,
    ) -> MembershipProof:
        if not isinstance(signal, bytes):
            raise TypeError("signal must be bytes")
        if merkle_proof.depth != self.depth:
            raise ProofGenerationError(
                f"Merkle path depth {merkle_proof.depth} does not match "
                f"circuit depth {self.depth}"
            )
        nullifier_hash = self._check_witness(identity, merkle_proof, external_nullifier)
        try:
            paths = self.assets.resolve_prover(self.depth)
        except ConfigurationError as exc:
            raise ProofGenerationError(str(exc)) from exc

        signal_hash = hash_signal(signal)
        circuit_input = {
            "nullifier": str(identity.nullifier),
            "trapdoor": str(identity.trapdoor),
            "pathIndices": [str(i) for i in merkle_proof.path_indices],
            "siblings": [str(s) for s in merkle_proof.siblings],
            "signalHash": str(signal_hash),
            "externalNullifier": str(external_nullifier),
        }

        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp = Path(tmp_dir)
            input_path = tmp / "input.json"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            input_path.write_text(json.dumps(circuit_input), encoding="utf-8")
            try:
                self._run_snarkjs(
                    [
                        "groth16",
                        "fullprove",
                        str(input_path),
                        str(paths.wasm_path),
                        str(paths.zkey_path),
                        str(proof_path),
                        str(public_path),
                    ],
                    timeout=self.prover_timeout,
                )
                groth16_proof = json.loads(proof_path.read_text(encoding="utf-8"))
                public_signals = json.loads(public_path.read_text(encoding="utf-8"))
            except (OSError, RuntimeError, ValueError) as exc:
                raise ProofGenerationError(f"snarkjs proving failed: {exc}") from exc

        expected = [
            str(merkle_proof.root),
            str(nullifier_hash),
            str(signal_hash),
            str(external_nullifier),
        ]
        if [str(value) for value in public_signals] != expected:
            raise ProofGenerationError(
                "circuit public signals do not match the statement; "
                "check that the hash primitive matches the circuit"
            )

        proof_bytes = cbor2.dumps(
            {"adapter": "groth16", "v": 1, "proof": groth16_proof}, canonical=True
        )
        return MembershipProof(
            merkle_root=merkle_proof.root,
            signal=signal,
            external_nullifier=external_nullifier,
            nullifier_hash=nullifier_hash,
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
            if payload.get("adapter") != "groth16" or payload.get("v") != 1:
                return False
            groth16_proof = payload.get("proof")
            if not isinstance(groth16_proof, dict):
                return False

            vkey_path = self.assets.resolve_verifier(self.depth)
            with tempfile.TemporaryDirectory() as tmp_dir:
                tmp = Path(tmp_dir)
                proof_path = tmp / "proof.json"
                public_path = tmp / "public.json"
                proof_path.write_text(json.dumps(groth16_proof), encoding="utf-8")
                public_path.write_text(
                    json.dumps([str(v) for v in proof.public_signals()]),
                    encoding="utf-8",
                )
                result = self._run_snarkjs(
                    ["groth16", "verify", str(vkey_path), str(public_path), str(proof_path)],
                    timeout=self.verifier_timeout,
                )
            return "OK" in result
        except Exception:
            logger.debug("Groth16 verification errored", exc_info=True)
            return False

    def _run_snarkjs(self, args: list, *, timeout: float) -> str:
        command = [self.snarkjs] + args
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise RuntimeError(f"snarkjs not found: {self.snarkjs}") from exc
        except subprocess.TimeoutExpired as exc:
            raise RuntimeError("snarkjs timed out") from exc
        if result.returncode != 0:
            stderr = result.stderr.strip() or result.stdout.strip() or "unknown error"
            raise RuntimeError(f"snarkjs failed: {stderr}")
        return result.stdout

    def get_backend_info(self) -> Dict[str, Any]:
        info = super().get_backend_info()
        info.update(
            {
                "adapter": "groth16",
                "depth": self.depth,
                "assets_dir": str(self.assets.base_dir),
                "features": ["membership", "nullifier"],
                "security": "groth16",
            }
        )
        return info
