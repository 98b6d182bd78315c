"""
Backend factory for membership proof systems.

Backend names resolve in one precedence chain: ``override`` argument,
``prefer`` argument, in-memory override (``set_backend_type``), the
``FAIR_REFERRAL_PROOF_BACKEND`` environment variable, then ``mock``. Every
source is checked against ``BACKEND_REGISTRY``.

WARNING: the mock backend is a designated-verifier simulation for tests and
single-process deployments; it must not be used where the prover and the
verifier do not trust each other.
"""

from __future__ import annotations

import importlib
import os
from typing import Any, Final

from .hashing import HashPrimitive, get_hash
from .interfaces import ProofBackend

BACKEND_REGISTRY: Final[dict[str, str]] = {
    "mock": "fair_referral_network.semaphore.adapters.mock_adapter.MockProofBackend",
    "groth16": "fair_referral_network.semaphore.snark.backend.Groth16Backend",
}
BACKEND_ENV_VAR: Final[str] = "FAIR_REFERRAL_PROOF_BACKEND"
DEFAULT_BACKEND: Final[str] = "mock"

_backend_override: str | None = None


def _format_valid_options() -> str:
    return ", ".join(sorted(BACKEND_REGISTRY.keys()))


def _normalize_backend_name(value: str | None, *, source: str) -> str | None:
    if value is None or value == "":
        return None

    if not isinstance(value, str) or value not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name from {source}: {value!r}. "
            f"Valid options: {_format_valid_options()}"
        )

    return value


def _load_backend_class(backend_name: str) -> type[ProofBackend]:
    import_path = BACKEND_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")
    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import backend module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        backend_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Backend class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(backend_cls, type) or not issubclass(backend_cls, ProofBackend):
        raise TypeError(f"{import_path!r} does not implement ProofBackend")

    return backend_cls


def set_backend_type(value: str | None) -> None:
    """
    Set the process-wide backend override, or clear it with None.

    Raises:
        ValueError: If the name is not registered.
    """
    global _backend_override
    _backend_override = _normalize_backend_name(value, source="set_backend_type")


def get_backend_type() -> str:
    """Backend selected without per-call arguments: override, env, default."""
    if _backend_override is not None:
        return _backend_override

    resolved_env = _normalize_backend_name(
        os.getenv(BACKEND_ENV_VAR), source=BACKEND_ENV_VAR
    )
    if resolved_env is not None:
        return resolved_env

    return DEFAULT_BACKEND


def resolve_backend_name(
    *, prefer: str | None = None, override: str | None = None
) -> str:
    resolved_override = _normalize_backend_name(override, source="override")
    if resolved_override is not None:
        return resolved_override

    resolved_prefer = _normalize_backend_name(prefer, source="prefer")
    if resolved_prefer is not None:
        return resolved_prefer

    return get_backend_type()


def get_proof_backend(
    hasher: HashPrimitive | None = None,
    *,
    prefer: str | None = None,
    override: str | None = None,
    **options: Any,
) -> ProofBackend:
    """
    Return a proof backend instance for the resolved backend name.

    Args:
        hasher: Hash primitive shared with the tree (default: pinned default).
        prefer: Optional backend name hint.
        override: Optional backend name override (testing only).
        **options: Extra keyword arguments for the backend constructor.

    Raises:
        ValueError: If a backend name is invalid.
        ImportError: If the backend class cannot be imported.
        TypeError: If the backend class does not implement ProofBackend.
    """
    backend_name = resolve_backend_name(prefer=prefer, override=override)
    backend_cls = _load_backend_class(backend_name)
    return backend_cls(hasher or get_hash(), **options)
