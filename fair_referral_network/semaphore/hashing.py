"""
DRAFT - requires cryptographic review before production use.

Hash primitives over the BN254 scalar field.

The tree, identity commitments and nullifier hashes all go through a single
``HashPrimitive``. Provers and verifiers must agree on it bit-for-bit, so every
primitive carries an ``identifier`` (``name:version``) that is persisted next
to the state it produced.

Two primitives are provided:
- ``Sha256FieldHash``: domain-separated SHA-256 reduced into the field.
  Self-contained; used by default and by the mock proof backend.
- ``PoseidonCliHash``: Poseidon computed by an external binary. Required when
  proofs come from the Groth16 membership circuit.
"""

from __future__ import annotations

import hashlib
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Sequence, Type

from .config import (
    DEFAULT_HASH,
    DOMAIN_SEPARATORS,
    FIELD_ELEMENT_BYTES,
    SNARK_SCALAR_FIELD,
    ZERO_VALUE_SEED,
)
from .exceptions import ConfigurationError, HashMismatchError

DEFAULT_POSEIDON_TIMEOUT = 5


def is_field_element(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and (
        0 <= value < SNARK_SCALAR_FIELD
    )


def require_field_element(value: int, label: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{label} must be int, got {type(value).__name__}")
    if not 0 <= value < SNARK_SCALAR_FIELD:
        raise ValueError(f"{label} is outside the scalar field")
    return value


def field_to_bytes(value: int) -> bytes:
    return value.to_bytes(FIELD_ELEMENT_BYTES, "big")


def sha256_to_field(data: bytes) -> int:
    """
    Map arbitrary bytes into the field the way Semaphore maps signals.

    The digest is shifted right by 8 bits so it is always below the modulus,
    no reduction bias involved.
    """
    return int.from_bytes(hashlib.sha256(data).digest(), "big") >> 8


def hash_signal(signal: bytes | str) -> int:
    if isinstance(signal, str):
        signal = signal.encode("utf-8")
    if not isinstance(signal, (bytes, bytearray)):
        raise TypeError("signal must be bytes or str")
    return sha256_to_field(bytes(signal))


def derive_external_nullifier(scope: str | bytes) -> int:
    """
    Derive the external nullifier for a claim scope (e.g. an event name).

    Example:
        >>> derive_external_nullifier("signup-bonus") == derive_external_nullifier(
        ...     b"signup-bonus")
        True
    """
    if isinstance(scope, str):
        scope = scope.encode("utf-8")
    if not isinstance(scope, (bytes, bytearray)) or not scope:
        raise ValueError("scope must be non-empty str or bytes")
    return sha256_to_field(bytes(scope))


def default_zero_value() -> int:
    return sha256_to_field(ZERO_VALUE_SEED)


class HashPrimitive(ABC):
    """Black-box ``hash(field[]) -> field`` with a pinned identifier."""

    name: str = ""
    version: int = 0

    @property
    def identifier(self) -> str:
        return f"{self.name}:v{self.version}"

    @abstractmethod
    def hash(self, inputs: Sequence[int]) -> int:
        """Hash a non-empty sequence of field elements into one field element."""

    def hash2(self, left: int, right: int) -> int:
        return self.hash((left, right))

    def check_identifier(self, expected: str) -> None:
        if expected != self.identifier:
            raise HashMismatchError(
                f"hash primitive mismatch: state uses {expected!r}, "
                f"runtime provides {self.identifier!r}"
            )

    @staticmethod
    def _validate_inputs(inputs: Sequence[int]) -> None:
        if not inputs:
            raise ValueError("hash requires at least one input")
        for idx, value in enumerate(inputs):
            require_field_element(value, f"inputs[{idx}]")


class Sha256FieldHash(HashPrimitive):
    """
    Domain-separated SHA-256 into the BN254 scalar field.

    Encoding: ``sha256(DST || arity || x_0 || ... || x_n) mod p`` with every
    input as a 32-byte big-endian integer. The arity byte keeps
    ``hash(a, b)`` and ``hash(a || b)``-style collisions apart.
    """

    name = "sha256-field"
    version = 1

    def hash(self, inputs: Sequence[int]) -> int:
        self._validate_inputs(inputs)
        if len(inputs) > 255:
            raise ValueError("arity must be <= 255")
        payload = bytearray(DOMAIN_SEPARATORS["field_hash"])
        payload.append(len(inputs))
        for value in inputs:
            payload.extend(field_to_bytes(value))
        digest = hashlib.sha256(bytes(payload)).digest()
        return int.from_bytes(digest, "big") % SNARK_SCALAR_FIELD


class PoseidonCliHash(HashPrimitive):
    """
    Poseidon over BN254 computed by an external command-line binary.

    The binary is called as ``<bin> <hex_0> ... <hex_n>`` and must print the
    result as hex on stdout. Its location comes from ``POSEIDON_HASH_BIN``.
    """

    name = "poseidon-cli"
    version = 1

    def __init__(
        self, binary: str | None = None, timeout: float = DEFAULT_POSEIDON_TIMEOUT
    ) -> None:
        self.binary = binary or os.getenv("POSEIDON_HASH_BIN", "poseidon_hash")
        self.timeout = timeout

    def hash(self, inputs: Sequence[int]) -> int:
        self._validate_inputs(inputs)
        command = [self.binary] + [field_to_bytes(v).hex() for v in inputs]
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise ConfigurationError(
                f"poseidon binary not found: {self.binary}"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise ConfigurationError("poseidon binary timed out") from exc

        if result.returncode != 0:
            stderr = result.stderr.strip() or "unknown error"
            raise ConfigurationError(f"poseidon binary failed: {stderr}")

        output = result.stdout.strip()
        if output.startswith("0x"):
            output = output[2:]
        try:
            value = int(output, 16)
        except ValueError as exc:
            raise ConfigurationError(
                f"poseidon binary returned non-hex output: {output!r}"
            ) from exc
        return require_field_element(value, "poseidon output")


HASH_REGISTRY: Dict[str, Type[HashPrimitive]] = {
    "sha256-field:v1": Sha256FieldHash,
    "poseidon-cli:v1": PoseidonCliHash,
}


def get_hash(identifier: str = DEFAULT_HASH) -> HashPrimitive:
    """
    Return a hash primitive by its pinned identifier.

    Raises:
        ConfigurationError: If the identifier is not registered.
    """
    try:
        hash_cls = HASH_REGISTRY[identifier]
    except KeyError:
        valid = ", ".join(sorted(HASH_REGISTRY))
        raise ConfigurationError(
            f"Unknown hash primitive {identifier!r}. Valid options: {valid}"
        ) from None
    return hash_cls()
