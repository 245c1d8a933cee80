from collections.abc import Sequence
from typing import Any


def error_body(message: str, *, code: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if code:
        body["code"] = code
    return body


def validation_message(errors: Sequence[Any]) -> str:
    """First request-validation problem as `field: message`."""
    if not errors:
        return "Validation failed"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = str(first.get("msg", "Invalid value"))
    return f"{'.'.join(location)}: {message}" if location else message
