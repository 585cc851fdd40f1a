"""eWeLink cloud error codes."""

from typing import Optional

ERROR_MESSAGES = {
    400: "Parameter error",
    401: "Wrong account or password",
    402: "Email inactivated",
    403: "Forbidden",
    404: "Device does not exist",
    406: "Authentication failed",
    503: "Service Temporarily Unavailable or Device is offline",
}

AUTHENTICATION_ERRORS = {401, 402, 406}
TRANSIENT_ERRORS = {503}
REGION_REDIRECT = 301


def error_message(code: int, msg: Optional[str] = None) -> str:
    return msg or ERROR_MESSAGES.get(code, f"Unknown error {code}")
