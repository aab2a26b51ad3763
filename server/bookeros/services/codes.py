"""Ticket code generators."""

import re
import secrets

# Ambiguous glyphs (0/O, 1/I/L) are left out so codes can be read aloud.
ALPHANUMERIC_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
ALPHANUMERIC_GROUPS = 4
ALPHANUMERIC_GROUP_SIZE = 4

_ALPHANUMERIC_PATTERN = re.compile(
    rf"^[{ALPHANUMERIC_ALPHABET}]{{{ALPHANUMERIC_GROUP_SIZE}}}"
    rf"(-[{ALPHANUMERIC_ALPHABET}]{{{ALPHANUMERIC_GROUP_SIZE}}}){{{ALPHANUMERIC_GROUPS - 1}}}$"
)


def generate_qr_token() -> str:
    """Return an opaque, URL-safe token used as the QR payload key."""
    return secrets.token_urlsafe(24)


def generate_alphanumeric_code() -> str:
    """
    Return a human-typable backup code in ``XXXX-XXXX-XXXX-XXXX`` form.

    Uniqueness is enforced by the ``bookings.alphanumeric_code`` unique
    constraint, not here. With 31**16 combinations a collision is
    improbable but possible; the insert then fails with IntegrityError.
    """
    groups = [
        "".join(secrets.choice(ALPHANUMERIC_ALPHABET) for _ in range(ALPHANUMERIC_GROUP_SIZE))
        for _ in range(ALPHANUMERIC_GROUPS)
    ]
    return "-".join(groups)


def normalize_alphanumeric_code(code: str) -> str:
    return code.strip().upper()


def is_valid_alphanumeric_code(code: str) -> bool:
    """Check the code format before hitting the database."""
    return bool(_ALPHANUMERIC_PATTERN.match(normalize_alphanumeric_code(code)))


def generate_resolution_token() -> str:
    """One-time token for the public reschedule resolution link."""
    return secrets.token_urlsafe(32)


def generate_referral_code(username: str) -> str:
    prefix = re.sub(r"[^A-Z0-9]", "", username.upper())[:6] or "REF"
    suffix = "".join(secrets.choice(ALPHANUMERIC_ALPHABET) for _ in range(6))
    return f"{prefix}-{suffix}"
