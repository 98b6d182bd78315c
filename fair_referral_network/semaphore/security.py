"""
DRAFT - requires cryptographic review before production use.

Security utilities: fork-safe randomness, keyed tags and constant-time
comparison.
"""

import hashlib
import hmac
import os
import secrets

from .config import SNARK_SCALAR_FIELD


# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Prevents catastrophic randomness reuse if process forks.

    Example:
        >>> rng = RandomnessSource()
        >>> value = rng.get_random_field_element()
        >>> 0 < value
        True
    """

    def __init__(self):
        """Initialize randomness source with fork detection."""
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _check_fork(self) -> None:
        if os.getpid() != self._pid:
            self.__init__()

    def get_random_scalar(self, max_value: int) -> int:
        """
        Get random scalar in [1, max_value).

        Zero is excluded: every caller uses the result as a secret.
        """
        if max_value <= 2:
            raise ValueError(f"max_value must be > 2, got {max_value}")
        self._check_fork()
        return self._rng.randrange(1, max_value)

    def get_random_bytes(self, n: int) -> bytes:
        self._check_fork()
        return secrets.token_bytes(n)

    def get_random_field_element(self) -> int:
        return self.get_random_scalar(SNARK_SCALAR_FIELD)


# ============================================================================
# KEYED TAGS
# ============================================================================


def keyed_tag(key: bytes, domain_sep: bytes, *parts: bytes) -> bytes:
    """
    HMAC-SHA256 over length-prefixed parts.

    Length prefixes keep ``(b"ab", b"c")`` and ``(b"a", b"bc")`` distinct.

    Raises:
        ValueError: If key or domain separator is empty
    """
    if not isinstance(key, bytes) or len(key) < 16:
        raise ValueError("key must be at least 16 bytes")
    if not domain_sep:
        raise ValueError("Domain separator cannot be empty")

    mac = hmac.new(key, digestmod=hashlib.sha256)
    for part in (domain_sep,) + parts:
        if not isinstance(part, bytes):
            raise TypeError(f"tag parts must be bytes, got {type(part)}")
        mac.update(len(part).to_bytes(4, "big"))
        mac.update(part)
    return mac.digest()


# ============================================================================
# CONSTANT-TIME OPERATIONS
# ============================================================================


def constant_time_compare(a: bytes, b: bytes) -> bool:
    """
    Constant-time comparison to prevent timing attacks.

    Returns:
        True if a == b, False otherwise
    """
    return hmac.compare_digest(a, b)
