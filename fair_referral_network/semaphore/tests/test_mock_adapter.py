from __future__ import annotations

import dataclasses

import cbor2
import pytest

from ..adapters.mock_adapter import MockProofBackend
from ..exceptions import ProofGenerationError
from ..hashing import Sha256FieldHash, derive_external_nullifier
from ..identity import Identity
from ..merkle import IncrementalMerkleTree

SCOPE = derive_external_nullifier("order-1")


@pytest.fixture
def hasher():
    return Sha256FieldHash()


@pytest.fixture
def members(hasher):
    identities = [Identity.from_seed(name) for name in ("alice", "bob", "carol")]
    tree = IncrementalMerkleTree(hasher, depth=4)
    for identity in identities:
        tree.insert(identity.commitment(hasher))
    return tree, identities


def _prove(backend, tree, identity, signal=b"claim", scope=SCOPE):
    index = tree.index_of(identity.commitment(backend.hasher))
    return backend.generate_proof(identity, tree.create_proof(index), signal, scope)


def test_generate_and_verify(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    proof = _prove(backend, tree, identities[1])

    assert proof.backend == "mock"
    assert proof.merkle_root == tree.root
    assert proof.nullifier_hash == identities[1].nullifier_hash(hasher, SCOPE)
    assert backend.verify_proof(proof) is True

    payload = cbor2.loads(proof.proof_bytes)
    assert payload["adapter"] == "mock"
    assert payload["v"] == 1


def test_proof_does_not_carry_commitment(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    commitment = identities[0].commitment(hasher)
    data = _prove(backend, tree, identities[0]).serialize()
    assert commitment.to_bytes(32, "big") not in data


@pytest.mark.parametrize(
    "field_name, value",
    [
        ("signal", b"other claim"),
        ("nullifier_hash", 12345),
        ("merkle_root", 67890),
        ("external_nullifier", derive_external_nullifier("order-2")),
    ],
)
def test_tampered_public_input_fails(hasher, members, field_name, value):
    tree, identities = members
    backend = MockProofBackend(hasher)
    proof = _prove(backend, tree, identities[0])
    tampered = dataclasses.replace(proof, **{field_name: value})
    assert backend.verify_proof(tampered) is False


def test_malformed_proof_bytes_fail(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    proof = _prove(backend, tree, identities[0])

    assert backend.verify_proof(dataclasses.replace(proof, proof_bytes=b"\xff")) is False
    assert (
        backend.verify_proof(
            dataclasses.replace(proof, proof_bytes=cbor2.dumps({"adapter": "mock"}))
        )
        is False
    )
    assert backend.verify_proof(dataclasses.replace(proof, backend="groth16")) is False
    assert backend.verify_proof("not a proof") is False


def test_other_key_cannot_verify(hasher, members):
    tree, identities = members
    key = b"k" * 32
    prover = MockProofBackend(hasher, key=key)
    proof = _prove(prover, tree, identities[0])

    assert MockProofBackend(hasher, key=key).verify_proof(proof) is True
    assert MockProofBackend(hasher, key=b"x" * 32).verify_proof(proof) is False


def test_invalid_key_length_rejected(hasher):
    with pytest.raises(ValueError, match="32 bytes"):
        MockProofBackend(hasher, key=b"short")


def test_wrong_identity_cannot_prove(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    path = tree.create_proof(0)
    with pytest.raises(ProofGenerationError, match="does not match the leaf"):
        backend.generate_proof(identities[1], path, b"claim", SCOPE)


def test_outsider_cannot_prove(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    outsider = Identity.from_seed("mallory")
    forged_path = dataclasses.replace(
        tree.create_proof(0), leaf=outsider.commitment(hasher)
    )
    with pytest.raises(ProofGenerationError, match="Merkle path"):
        backend.generate_proof(outsider, forged_path, b"claim", SCOPE)


def test_nullifier_links_only_within_scope(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    first = _prove(backend, tree, identities[2], signal=b"a")
    second = _prove(backend, tree, identities[2], signal=b"b")
    other_scope = _prove(
        backend, tree, identities[2], scope=derive_external_nullifier("order-2")
    )

    assert first.nullifier_hash == second.nullifier_hash
    assert first.nullifier_hash != other_scope.nullifier_hash


def test_batch_verify(hasher, members):
    tree, identities = members
    backend = MockProofBackend(hasher)
    proofs = [_prove(backend, tree, identity) for identity in identities]
    assert backend.batch_verify(proofs) is True
    proofs.append(dataclasses.replace(proofs[0], signal=b"forged"))
    assert backend.batch_verify(proofs) is False


def test_backend_info(hasher):
    info = MockProofBackend(hasher).get_backend_info()
    assert info["name"] == "mock"
    assert info["security"] == "mock_only"
    assert info["hash"] == "sha256-field:v1"
