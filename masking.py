"""Redaction of secrets embedded in command text."""

from __future__ import annotations

import re

MASK = "******"

_QUOTED_OR_BARE = r"""('[^']*'|"[^"]*"|\S+)"""

_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # --password secret, --token=secret, --access-key secret
    (
        re.compile(
            r"(--(?:password|passwd|token|secret|access[_-]?key|secret[_-]?key)(?:=|\s+))" + _QUOTED_OR_BARE,
            re.IGNORECASE,
        ),
        r"\1" + MASK,
    ),
    # -psecret attached to a mysql-family client; "-p" followed by a space is left alone
    (
        re.compile(r"(\b(?:mysql\w*|mariadb\w*|obclient)\b[^|;&\n]*?(?<!\S)-p)(?=[^\s-])" + _QUOTED_OR_BARE),
        r"\1" + MASK,
    ),
    # ALTER USER ... IDENTIFIED BY 'secret'
    (re.compile(r"(identified\s+by\s+)" + _QUOTED_OR_BARE, re.IGNORECASE), r"\1" + MASK),
    # password=secret, token: secret, access_key=...
    (
        re.compile(
            r"((?<![\w-])\w*?(?:password|passwd|pwd|secret|token|access[_-]?key|secret[_-]?key)\s*[=:]\s*)"
            + _QUOTED_OR_BARE,
            re.IGNORECASE,
        ),
        r"\1" + MASK,
    ),
]


def mask(text: str) -> str:
    """Replace password-like values in ``text`` with a fixed placeholder."""
    if not text:
        return text
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text
