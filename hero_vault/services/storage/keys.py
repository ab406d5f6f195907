"""
Document key normalization.

Remote document keys cannot contain `.`, `$`, `#`, `[` or `]`, so each one
is replaced with a placeholder.

KNOWN LIMITATION: the mapping is lossy. `a.b@x.com` and `a_b@x.com` both
become `a_b@x_com`. Collisions are detected at bind time by comparing the
stored email with the submitted one; they are never silently merged.
"""

import re


ILLEGAL_KEY_CHARACTERS = ".$#[]"

_ILLEGAL_KEY_PATTERN = re.compile(r"[.$#\[\]]")


def normalize_email(email: str, placeholder: str = "_") -> str:
    """Map an email to the key its player document is stored under."""
    if not email:
        raise ValueError("Email cannot be empty")
    return _ILLEGAL_KEY_PATTERN.sub(placeholder, email)
