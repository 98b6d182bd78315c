"""
DRAFT - requires cryptographic review before production use.

Unit tests for Semaphore-style identities.
"""

import pytest

from ..hashing import Sha256FieldHash, derive_external_nullifier, is_field_element
from ..identity import Identity


@pytest.fixture
def hasher():
    return Sha256FieldHash()


def test_from_seed_is_deterministic(hasher):
    first = Identity.from_seed("alice")
    second = Identity.from_seed(b"alice")
    assert first == second
    assert first.commitment(hasher) == second.commitment(hasher)


def test_distinct_seeds_give_distinct_commitments(hasher):
    assert Identity.from_seed("alice").commitment(hasher) != Identity.from_seed(
        "bob"
    ).commitment(hasher)


def test_from_seed_rejects_empty():
    with pytest.raises(ValueError):
        Identity.from_seed("")


def test_generate_produces_field_secrets():
    identity = Identity.generate()
    assert is_field_element(identity.trapdoor)
    assert is_field_element(identity.nullifier)
    assert identity.trapdoor != 0 and identity.nullifier != 0
    assert Identity.generate() != identity


def test_zero_secret_rejected():
    with pytest.raises(ValueError, match="non-zero"):
        Identity(trapdoor=0, nullifier=1)


def test_repr_hides_secrets():
    identity = Identity.from_seed("alice")
    text = repr(identity)
    assert str(identity.trapdoor) not in text
    assert hex(identity.nullifier) not in text


def test_commitment_matches_hash_of_secrets(hasher):
    identity = Identity(trapdoor=5, nullifier=7)
    assert identity.commitment(hasher) == hasher.hash((5, 7))


def test_nullifier_hash_depends_on_scope_only(hasher):
    identity = Identity.from_seed("alice")
    scope_a = derive_external_nullifier("order-1")
    scope_b = derive_external_nullifier("order-2")

    assert identity.nullifier_hash(hasher, scope_a) == identity.nullifier_hash(
        hasher, scope_a
    )
    assert identity.nullifier_hash(hasher, scope_a) != identity.nullifier_hash(
        hasher, scope_b
    )
    # Independent of the trapdoor
    other = Identity(trapdoor=identity.trapdoor + 1, nullifier=identity.nullifier)
    assert other.nullifier_hash(hasher, scope_a) == identity.nullifier_hash(
        hasher, scope_a
    )


def test_string_export_restores_identity():
    identity = Identity.from_seed("alice")
    assert Identity.from_string(identity.to_string()) == identity


def test_from_string_rejects_garbage():
    with pytest.raises(ValueError, match="invalid identity"):
        Identity.from_string("not json")
    with pytest.raises(ValueError, match="invalid identity"):
        Identity.from_string('["0x1"]')
