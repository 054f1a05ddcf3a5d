import re
from typing import Any, Mapping, Optional
from urllib.parse import quote, urlsplit

from common.exceptions import InvalidReferenceError

_BACK_REFERENCE = re.compile(r"^\{(\d+)\}")
_RESOURCE = re.compile(r"/(node|relationship)/(\d+)/?$")


def back_reference(sequence: int) -> str:
    return "{%d}" % sequence


def is_back_reference(value: Any) -> bool:
    return isinstance(value, str) and _BACK_REFERENCE.match(value) is not None


def segment(value: Any) -> str:
    return quote(str(value), safe="")


def validate_identifier(name: str, what: str = "identifier") -> None:
    if not isinstance(name, str) or not name:
        raise ValueError(f"Invalid {what}: {name!r}")


def id_from_uri(uri: str, kind: Optional[str] = None) -> int:
    """Extract the numeric id from a resource URI such as `http://h/db/data/node/12`."""
    match = _RESOURCE.search(urlsplit(uri).path) if isinstance(uri, str) else None
    if match is None or (kind is not None and match.group(1) != kind):
        raise InvalidReferenceError(f"Not a {kind or 'resource'} URI: {uri!r}")
    return int(match.group(2))


def resource_path(kind: str, ident: int) -> str:
    return f"/{kind}/{ident}"


def substitute_back_references(value: Any, locations: Mapping[int, str], *, prefix: bool = False) -> Any:
    """Replace `{N}` tokens with the location of step N.

    Paths carry the token as a prefix; body values only when the whole string
    is the token, so user data is left alone.
    """
    if isinstance(value, str):
        match = _BACK_REFERENCE.match(value)
        if match is None or (not prefix and match.end() != len(value)):
            return value
        index = int(match.group(1))
        if index not in locations:
            raise InvalidReferenceError(f"Back-reference {value!r} points to an operation that has not run")
        return locations[index] + value[match.end():]
    if isinstance(value, dict):
        return {k: substitute_back_references(v, locations) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_back_references(v, locations) for v in value]
    return value
