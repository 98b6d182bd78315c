"""
DRAFT - requires cryptographic review before production use.

Semaphore-style identities.

An identity is a pair of secrets ``(trapdoor, nullifier)``. Only its
commitment ``hash(trapdoor, nullifier)`` ever leaves the owner's agent.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Optional

from .config import DOMAIN_SEPARATORS, SNARK_SCALAR_FIELD
from .hashing import HashPrimitive, require_field_element
from .security import RandomnessSource


@dataclass(frozen=True, repr=False)
class Identity:
    """
    Secret identity of a network member.

    Attributes:
        trapdoor: Secret field element
        nullifier: Secret field element used for nullifier hashes

    Example:
        >>> from fair_referral_network.semaphore.hashing import Sha256FieldHash
        >>> identity = Identity.from_seed("correct horse battery staple")
        >>> hasher = Sha256FieldHash()
        >>> identity.commitment(hasher) == identity.commitment(hasher)
        True
    """

    trapdoor: int
    nullifier: int

    def __post_init__(self) -> None:
        require_field_element(self.trapdoor, "trapdoor")
        require_field_element(self.nullifier, "nullifier")
        if self.trapdoor == 0 or self.nullifier == 0:
            raise ValueError("identity secrets must be non-zero")

    def __repr__(self) -> str:
        return "Identity(<secret>)"

    @classmethod
    def generate(cls, rng: Optional[RandomnessSource] = None) -> "Identity":
        rng = rng or RandomnessSource()
        return cls(
            trapdoor=rng.get_random_field_element(),
            nullifier=rng.get_random_field_element(),
        )

    @classmethod
    def from_seed(cls, seed: str | bytes) -> "Identity":
        """Derive an identity deterministically from a secret seed."""
        if isinstance(seed, str):
            seed = seed.encode("utf-8")
        if not seed:
            raise ValueError("seed cannot be empty")
        domain = DOMAIN_SEPARATORS["identity_seed"]
        return cls(
            trapdoor=_derive_secret(domain + b"trapdoor", seed),
            nullifier=_derive_secret(domain + b"nullifier", seed),
        )

    def commitment(self, hasher: HashPrimitive) -> int:
        return hasher.hash((self.trapdoor, self.nullifier))

    def nullifier_hash(self, hasher: HashPrimitive, external_nullifier: int) -> int:
        require_field_element(external_nullifier, "external_nullifier")
        return hasher.hash((self.nullifier, external_nullifier))

    def to_string(self) -> str:
        """Export secrets as a JSON string (keep it private)."""
        return json.dumps([hex(self.trapdoor), hex(self.nullifier)])

    @classmethod
    def from_string(cls, value: str) -> "Identity":
        try:
            trapdoor_hex, nullifier_hex = json.loads(value)
            return cls(trapdoor=int(trapdoor_hex, 16), nullifier=int(nullifier_hex, 16))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"invalid identity string: {exc}") from exc


def _derive_secret(domain: bytes, seed: bytes) -> int:
    digest = hashlib.sha512(domain + seed).digest()
    value = int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD
    # A zero secret is astronomically unlikely; map it away anyway
    return value or 1
