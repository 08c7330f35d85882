"""Verification code generation.

Codes are drawn with ``secrets`` from an alphabet without look-alike
characters (no 0/O, 1/I/L) and grouped for reading aloud, e.g.
``K7QM-2HXR-PA9D-WZ4T``. Each character carries just under 5 bits.
"""

import secrets


VERIFICATION_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
GROUP_SIZE = 4


def generate_verification_code(groups: int = 4) -> str:
    """Generate a random verification code of ``groups`` groups."""
    if groups < 1:
        raise ValueError("groups must be at least 1")
    return "-".join(
        "".join(secrets.choice(VERIFICATION_ALPHABET) for _ in range(GROUP_SIZE))
        for _ in range(groups)
    )


def normalize_verification_code(code: str) -> str:
    """Canonical form of a user-typed code (case, spaces and dashes ignored)."""
    compact = "".join(ch for ch in code.upper() if ch.isalnum())
    return "-".join(
        compact[i : i + GROUP_SIZE] for i in range(0, len(compact), GROUP_SIZE)
    )
