"""
Crypto utilities — bcrypt password hashing.

Only the hash is ever stored; ``User.to_dict`` never serializes it.
"""

import bcrypt

DEFAULT_ROUNDS = 12


def hash_password(plain_password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Hash a plain-text password with bcrypt (12 rounds unless overridden)."""
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False
