import secrets

CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CAMPAIGN_CODE_LENGTH = 12
COUPON_CODE_LENGTH = 12
FORM_LINK_TOKEN_LENGTH = 16


def generate_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_code(value: str, length: int | None = None) -> bool:
    if length is not None and len(value) != length:
        return False
    return bool(value) and all(char in CODE_ALPHABET for char in value)
