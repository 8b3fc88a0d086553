"""
Generated Identifiers

Random usernames and codes for users, schools and classes. Both carry
enough entropy that collisions are rare; callers that insert them still
retry on unique violations.
"""

import re
import secrets

# No 0/O or 1/I/L so codes can be read aloud or copied by hand
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
USERNAME_SUFFIX_BYTES = 3  # 6 hex characters
USERNAME_MAX_LENGTH = 100

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9_]+")
_WHITESPACE = re.compile(r"\s+")


def slugify_name(name: str) -> str:
    """
    Lowercase a display name and collapse whitespace into underscores.

    Example: "Green Hill Academy" -> "green_hill_academy"
    """
    slug = _WHITESPACE.sub("_", name.strip().lower())
    slug = _NON_SLUG_CHARS.sub("", slug)
    return slug or "user"


def generate_username(name: str, max_length: int = USERNAME_MAX_LENGTH) -> str:
    """
    Generate a username from a display name plus a random hex suffix.

    The slug is cut so the whole username is at most ``max_length``.

    Example: "Green Hill" -> "green_hill_4f9a2c"
    """
    suffix = secrets.token_hex(USERNAME_SUFFIX_BYTES)
    slug = slugify_name(name)[: max_length - len(suffix) - 1]
    return f"{slug}_{suffix}"


def generate_code(length: int = CODE_LENGTH) -> str:
    """Generate a random uppercase code from an unambiguous alphabet."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
