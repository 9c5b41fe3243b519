"""Utility helpers for library keys and display strings."""

from __future__ import annotations

import re
from datetime import datetime, timezone
import secrets

KEY_ALPHABET = "23456789ABCDEFGHIJKLMNPQRSTUVWXYZ"
KEY_LENGTH = 8
KEY_PATTERN = re.compile(rf"^[{KEY_ALPHABET}]{{{KEY_LENGTH}}}$")


def generate_key() -> str:
    """Create a random library key (8 characters, no ambiguous 0/1/O)."""
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))


def is_valid_key(value: str) -> bool:
    return bool(value) and KEY_PATTERN.match(value) is not None


def truncate_title(title: str, max_length: int = 40) -> str:
    """Shorten a title for one-line progress output."""
    if len(title) <= max_length:
        return title
    return title[:max_length] + "..."


def utcnow() -> datetime:
    """Timezone-aware current UTC time for record timestamps."""
    return datetime.now(timezone.utc)
