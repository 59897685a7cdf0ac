import hashlib
import secrets
from typing import Any

HASH_SCHEME = "pbkdf2_sha256"
HASH_ITERATIONS = 100_000


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, HASH_ITERATIONS)
    return f"{HASH_SCHEME}${HASH_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        scheme, iterations, salt_hex, expected = stored_hash.split("$", 3)
        salt = bytes.fromhex(salt_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return secrets.compare_digest(digest.hex(), expected)


def public_user(row: dict[str, Any]) -> dict[str, Any]:
    """User row without the stored password hash."""
    return {key: value for key, value in row.items() if key != "passwordHash"}
