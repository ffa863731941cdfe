"""Response field extraction for Particle Cloud replies.

Only single-field lookup is needed, so replies are scanned for a literal
``"<field>":`` marker rather than decoded as a whole document. The lookup
tolerates whitespace after the colon and accepts either a quoted string or
a bare token (number, boolean, null).
"""

from __future__ import annotations

from enum import Enum

from .errors import ParticleParseError

_WHITESPACE = " \t\r\n"
_DELIMITERS = ",}]"


class EndpointKind(Enum):
    """Kind of remote endpoint."""

    FUNCTION = "function"
    VARIABLE = "variable"


def extract_field(body: str, field_name: str, *, max_length: int | None = None) -> str:
    """Return the raw token of ``field_name`` in ``body``.

    Args:
        body: Response body text.
        field_name: Field to look up.
        max_length: Optional bound; longer values are truncated.

    Returns:
        The quoted string's contents, or the bare token stripped of whitespace.

    Raises:
        ParticleParseError: If the marker is absent or the value is malformed.
    """
    marker = f'"{field_name}":'
    pos = body.find(marker)
    if pos < 0:
        raise ParticleParseError(f"Field {field_name!r} not found in response")

    start = pos + len(marker)
    while start < len(body) and body[start] in _WHITESPACE:
        start += 1

    if start < len(body) and body[start] == '"':
        start += 1
        end = body.find('"', start)
        if end < 0:
            raise ParticleParseError(f"Unterminated string for field {field_name!r}")
        value = body[start:end]
    else:
        end = start
        while end < len(body) and body[end] not in _DELIMITERS:
            end += 1
        value = body[start:end].strip()
        if not value:
            raise ParticleParseError(f"Empty value for field {field_name!r}")

    if max_length is not None:
        value = value[:max_length]
    return value


def parse_return_value(body: str) -> int:
    """Extract the integer ``return_value`` of a function call reply."""
    token = extract_field(body, "return_value")
    try:
        return int(token)
    except ValueError as err:
        raise ParticleParseError(f"return_value is not an integer: {token!r}") from err


def parse_variable_result(body: str, max_length: int) -> str:
    """Extract the ``result`` of a variable read reply, bounded to max_length."""
    return extract_field(body, "result", max_length=max_length)


def parse_online(body: str) -> bool | None:
    """Extract the ``online`` flag of a ping reply, None when absent or odd."""
    try:
        token = extract_field(body, "online")
    except ParticleParseError:
        return None
    if token == "true":
        return True
    if token == "false":
        return False
    return None
