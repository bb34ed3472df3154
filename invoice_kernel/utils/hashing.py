"""
Canonical serialization and hashing utilities.

Fingerprints must be reproducible from the same payload, so every hashed
structure goes through ``canonicalize_json`` first: sorted keys, compact
separators, and one fixed rendering for Decimal, datetime and UUID values.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable
from uuid import UUID

from invoice_kernel.exceptions import HashUnavailableError

HASH_ALGORITHM = "sha256"

# Returns a fresh hashlib-style object exposing update() and hexdigest().
HasherFactory = Callable[[], Any]


def json_default(obj: Any) -> Any:
    """
    Serialize the types ``json`` does not handle natively.

    Decimals are rendered at full precision with trailing zeros removed,
    so ``Decimal("22.60")`` and ``Decimal("22.6")`` hash identically.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        normalized = obj.normalize()
        # normalize() turns 100 into 1E+2; keep plain notation
        return format(normalized, "f")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to its canonical JSON string.

    - Keys are sorted alphabetically
    - No whitespace
    - Non-ASCII text kept as-is (hashed as UTF-8)
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=json_default,
    )


def default_hasher() -> Any:
    """Obtain a SHA-256 hasher from hashlib."""
    return hashlib.new(HASH_ALGORITHM)


def hash_payload(payload: dict, hasher_factory: HasherFactory | None = None) -> str:
    """
    Compute the SHA-256 hash of a payload's canonical JSON.

    Args:
        payload: Dictionary payload to hash.
        hasher_factory: Source of the hash object. Defaults to hashlib.

    Returns:
        Lowercase hex digest (64 characters).

    Raises:
        HashUnavailableError: If the hash primitive cannot be obtained or
            fails while digesting.
        UnicodeEncodeError: If the payload holds text UTF-8 cannot encode.
            Raised as is; the hash primitive is not at fault.
    """
    data = canonicalize_json(payload).encode("utf-8")
    factory = hasher_factory or default_hasher
    try:
        hasher = factory()
        hasher.update(data)
        digest = hasher.hexdigest()
    except (ValueError, TypeError, AttributeError, NotImplementedError, OSError) as exc:
        raise HashUnavailableError(HASH_ALGORITHM, str(exc) or type(exc).__name__) from exc
    return digest.lower()
