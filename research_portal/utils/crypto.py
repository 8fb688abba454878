"""
Crypto utilities — bcrypt password hashing.

Password hashes are bcrypt ($2b$, 12 rounds). Any other stored format is
rejected.
"""

import bcrypt


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt (12 rounds)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not password_hash.startswith(("$2b$", "$2a$")):
        return False
    return bcrypt.checkpw(
        plain_password.encode("utf-8"),
        password_hash.encode("utf-8"),
    )
