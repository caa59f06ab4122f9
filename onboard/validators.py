"""Input-boundary validators.

Each validator returns an error message, or None when the value is accepted.
Prompts re-ask until the validator passes, so nothing invalid reaches the
gateway resolver.
"""

import re

_IPV4_RE = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$", re.ASCII)


def validate_port(value: str) -> str | None:
    text = (value or "").strip()
    if not (text.isascii() and text.isdigit()):
        return "Invalid port"
    port = int(text)
    if not 1 <= port <= 65535:
        return "Port must be between 1 and 65535"
    return None


def validate_ipv4(value: str) -> str | None:
    text = (value or "").strip()
    if not text:
        return "IP address is required for custom bind mode"
    match = _IPV4_RE.match(text)
    if not match:
        return "Invalid IPv4 address (e.g., 192.168.1.100)"
    for octet in match.groups():
        # No leading zeros ("010" is ambiguous between decimal and octal).
        if len(octet) > 1 and octet.startswith("0"):
            return "Invalid IPv4 address (leading zeros are not allowed)"
        if int(octet) > 255:
            return "Invalid IPv4 address (each octet must be 0-255)"
    return None


def validate_ws_url(value: str) -> str | None:
    text = (value or "").strip()
    if text.startswith("ws://") or text.startswith("wss://"):
        if len(text.split("://", 1)[1]) == 0:
            return "URL is missing a host"
        return None
    return "URL must start with ws:// or wss://"


def validate_password(value: str) -> str | None:
    return None if (value or "").strip() else "Required"


def validate_required(value: str) -> str | None:
    return None if (value or "").strip() else "Required"


def normalize_token_input(value: object) -> str:
    """Trim a pasted token; anything non-string counts as blank."""
    if not isinstance(value, str):
        return ""
    return value.strip()


def parse_allow_from(channel_name: str, raw: str) -> tuple[list[str], list[str]]:
    """Return (valid, invalid) access IDs for a channel."""
    values = [v.strip() for v in raw.split(",") if v.strip()]
    if not values:
        return [], []

    valid: list[str] = []
    invalid: list[str] = []

    for value in values:
        if value == "*":
            valid.append(value)
            continue

        if channel_name in {"telegram", "discord"}:
            if value.isascii() and value.lstrip("-").isdigit():
                valid.append(value)
            else:
                invalid.append(value)
            continue

        if channel_name == "whatsapp":
            compact = re.sub(r"[\s\-\(\)]", "", value)
            digits = compact[1:] if compact.startswith("+") else compact
            if digits.isascii() and digits.isdigit() and 7 <= len(digits) <= 15:
                valid.append(compact)
            else:
                invalid.append(value)
            continue

        valid.append(value)

    return valid, invalid
