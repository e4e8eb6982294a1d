"""Local message id synthesis for rows the provider gave no id for."""

from __future__ import annotations

import secrets
import time

SUFFIX_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
SUFFIX_LENGTH = 9


def generate_message_id(prefix: str = "outgoing") -> str:
    """Return `{prefix}_{epoch_ms}_{random}`; 9 random base-36 chars per millisecond."""
    suffix = "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"
