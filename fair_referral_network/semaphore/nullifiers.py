"""
Nullifier bookkeeping.

Spent nullifier hashes are kept per scope (external nullifier): the same
identity can claim once per scope, and claims in distinct scopes never
collide. The record only grows.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Set, Tuple

from .exceptions import NullifierReusedError
from .hashing import require_field_element


class NullifierRecord:
    """
    Set of spent nullifier hashes keyed by scope.

    Example:
        >>> record = NullifierRecord()
        >>> record.spend(7, 42)
        >>> record.is_spent(7, 42), record.is_spent(8, 42)
        (True, False)
    """

    def __init__(self) -> None:
        self._spent: Dict[int, Set[int]] = {}

    def is_spent(self, external_nullifier: int, nullifier_hash: int) -> bool:
        return nullifier_hash in self._spent.get(external_nullifier, ())

    def check_unspent(self, external_nullifier: int, nullifier_hash: int) -> None:
        """
        Raises:
            NullifierReusedError: If the nullifier hash was already spent
        """
        if self.is_spent(external_nullifier, nullifier_hash):
            raise NullifierReusedError(
                f"nullifier {nullifier_hash:#x} already used in scope "
                f"{external_nullifier:#x}"
            )

    def spend(self, external_nullifier: int, nullifier_hash: int) -> None:
        require_field_element(external_nullifier, "external_nullifier")
        require_field_element(nullifier_hash, "nullifier_hash")
        self.check_unspent(external_nullifier, nullifier_hash)
        self._spent.setdefault(external_nullifier, set()).add(nullifier_hash)

    def scopes(self) -> Tuple[int, ...]:
        return tuple(self._spent)

    def count(self, external_nullifier: int | None = None) -> int:
        if external_nullifier is not None:
            return len(self._spent.get(external_nullifier, ()))
        return sum(len(spent) for spent in self._spent.values())

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[Tuple[int, int]]:
        for scope, spent in self._spent.items():
            for nullifier_hash in sorted(spent):
                yield scope, nullifier_hash

    @classmethod
    def from_items(cls, items: Iterable[Tuple[int, int]]) -> "NullifierRecord":
        record = cls()
        for scope, nullifier_hash in items:
            record.spend(scope, nullifier_hash)
        return record
