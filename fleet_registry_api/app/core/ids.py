"""
Record identifiers.

Identifiers are 24 lowercase hex characters: a four byte creation
timestamp followed by eight random bytes.  Values arriving from
clients or from older documents may carry surrounding whitespace or
upper-case digits, so every lookup goes through ``normalize_id``.
"""

import re
import secrets
import time
from typing import Any, Optional

from .errors import InvalidReference

_ID_RE = re.compile(r"^[0-9a-f]{24}$")


def new_id() -> str:
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{secrets.token_hex(8)}"


def normalize_id(value: Any) -> Optional[str]:
    """Return the canonical form of ``value`` or ``None`` if malformed."""
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    if not _ID_RE.match(candidate):
        return None
    return candidate


def require_id(value: Any, label: str = "id") -> str:
    """Like ``normalize_id`` but raise ``InvalidReference`` instead of returning ``None``."""
    canonical = normalize_id(value)
    if canonical is None:
        raise InvalidReference(f"Invalid {label}: {value!r}")
    return canonical
