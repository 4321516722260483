"""
Hashing utilities.
"""

import hashlib


def sha256_string(content: str) -> str:
    """Compute SHA256 hash of a string."""
    return hashlib.sha256(content.encode()).hexdigest()


def short_hash(content: str, length: int = 8) -> str:
    """
    Return the first ``length`` hex characters of the SHA256 of a string.

    Example:
        >>> len(short_hash("shop/checkout"))
        8
    """
    return sha256_string(content)[:length]
