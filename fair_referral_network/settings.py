"""
Network parameters, fixed at initialization.

Parameters come from CLI options or a YAML file such as::

    depth: 20
    fees: [3000, 1000]
    root_history_size: 30
    genesis_referrers: ["0x2a"]
    hash: sha256-field:v1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .fees import FeeSchedule
from .semaphore.config import (
    DEFAULT_HASH,
    DEFAULT_ROOT_HISTORY_SIZE,
    DEFAULT_TREE_DEPTH,
    MAX_TREE_DEPTH,
    MIN_TREE_DEPTH,
)
from .semaphore.exceptions import ConfigurationError
from .semaphore.hashing import HASH_REGISTRY, is_field_element


def _is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_field_element(value: Any, label: str) -> int:
    """Accept ints, decimal strings and 0x-prefixed hex strings."""
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            raise ConfigurationError(f"{label} is not an integer: {text!r}") from None
    if not is_field_element(value):
        raise ConfigurationError(f"{label} is not a field element")
    return value


@dataclass(frozen=True)
class NetworkConfig:
    fee_schedule: FeeSchedule
    depth: int = DEFAULT_TREE_DEPTH
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
    genesis_referrers: Tuple[int, ...] = field(default_factory=tuple)
    hash_id: str = DEFAULT_HASH
    zero_value: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.fee_schedule, FeeSchedule):
            raise ConfigurationError("fee_schedule must be a FeeSchedule")
        if not _is_plain_int(self.depth) or not MIN_TREE_DEPTH <= self.depth <= MAX_TREE_DEPTH:
            raise ConfigurationError(
                f"depth must be between {MIN_TREE_DEPTH} and {MAX_TREE_DEPTH}"
            )
        if not _is_plain_int(self.root_history_size) or self.root_history_size < 1:
            raise ConfigurationError("root_history_size must be >= 1")
        if self.hash_id not in HASH_REGISTRY:
            raise ConfigurationError(f"unknown hash primitive {self.hash_id!r}")
        for commitment in self.genesis_referrers:
            if not is_field_element(commitment):
                raise ConfigurationError("genesis referrers must be field elements")
        if self.zero_value is not None and not is_field_element(self.zero_value):
            raise ConfigurationError("zero_value must be a field element")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("network config must be a mapping")
        unknown = set(data) - {
            "depth", "fees", "root_history_size", "genesis_referrers", "hash", "zero_value",
        }
        if unknown:
            raise ConfigurationError(f"unknown config keys: {sorted(unknown)}")
        if "fees" not in data:
            raise ConfigurationError("fees is required")

        zero_value = data.get("zero_value")
        return cls(
            fee_schedule=FeeSchedule.from_list(data["fees"] or []),
            depth=data.get("depth", DEFAULT_TREE_DEPTH),
            root_history_size=data.get("root_history_size", DEFAULT_ROOT_HISTORY_SIZE),
            genesis_referrers=tuple(
                parse_field_element(v, "genesis referrer")
                for v in data.get("genesis_referrers") or ()
            ),
            hash_id=data.get("hash", DEFAULT_HASH),
            zero_value=(
                None if zero_value is None else parse_field_element(zero_value, "zero_value")
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "depth": self.depth,
            "fees": self.fee_schedule.to_list(),
            "root_history_size": self.root_history_size,
            "genesis_referrers": [hex(c) for c in self.genesis_referrers],
            "hash": self.hash_id,
            "zero_value": None if self.zero_value is None else hex(self.zero_value),
        }


def load_network_config(path: Path | str) -> NetworkConfig:
    """
    Load network parameters from a YAML file.

    Raises:
        ConfigurationError: If the file is unreadable or invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read network config {path}: {exc}") from exc
    return NetworkConfig.from_dict(data or {})
