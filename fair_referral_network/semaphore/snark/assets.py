"""Resolver for membership circuit artifacts used by the Groth16 backend."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import ConfigurationError

ASSETS_ENV_VAR = "FAIR_REFERRAL_SNARK_ASSETS"
DEFAULT_ASSETS_DIR = "circuits/membership"

WASM_NAME = "membership.wasm"
ZKEY_NAME = "membership.zkey"
VKEY_NAME = "membership.vkey.json"


@dataclass(frozen=True)
class CircuitPaths:
    wasm_path: Path
    zkey_path: Path
    vkey_path: Path


class AssetsResolver:
    """
    Locate circuit artifacts for a tree depth.

    Layout: ``<base>/depth-<D>/{membership.wasm, membership.zkey,
    membership.vkey.json}``.
    """

    def __init__(self, base_dir: Path | str | None = None) -> None:
        if base_dir is None:
            base_dir = os.getenv(ASSETS_ENV_VAR, DEFAULT_ASSETS_DIR)
        self._base_dir = Path(base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def depth_dir(self, depth: int) -> Path:
        return self._base_dir / f"depth-{depth}"

    def resolve_prover(self, depth: int) -> CircuitPaths:
        base = self.depth_dir(depth)
        return CircuitPaths(
            wasm_path=self._require(base / WASM_NAME, "wasm"),
            zkey_path=self._require(base / ZKEY_NAME, "zkey"),
            vkey_path=self._require(base / VKEY_NAME, "verification key"),
        )

    def resolve_verifier(self, depth: int) -> Path:
        return self._require(self.depth_dir(depth) / VKEY_NAME, "verification key")

    @staticmethod
    def _require(path: Path, label: str) -> Path:
        if not path.is_file():
            raise ConfigurationError(f"missing {label} artifact: {path}")
        return path
