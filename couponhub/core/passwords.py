import base64
import hashlib
import hmac
import os

PASSWORD_SCHEME = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 200_000


def _derive(password: str, salt: str, iterations: int) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations)
    return base64.urlsafe_b64encode(digest).decode("utf-8")


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    salt = base64.urlsafe_b64encode(os.urandom(16)).decode("utf-8")
    return f"{PASSWORD_SCHEME}${iterations}${salt}${_derive(password, salt, iterations)}"


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        scheme, iterations_raw, salt, encoded = password_hash.split("$", 3)
        iterations = int(iterations_raw)
    except ValueError:
        return False
    if scheme != PASSWORD_SCHEME or iterations < 1:
        return False
    return hmac.compare_digest(_derive(password, salt, iterations), encoded)
