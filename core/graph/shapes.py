"""Turn REST response bodies into the values the verbs promise."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from common.exceptions import InvalidReferenceError, ProtocolViolationError
from common.utils.path_builder import id_from_uri


def _entity_id(body: Dict[str, Any], kind: str) -> int:
    metadata = body.get("metadata")
    if isinstance(metadata, dict) and isinstance(metadata.get("id"), int):
        return metadata["id"]
    try:
        return id_from_uri(body.get("self"), kind)
    except InvalidReferenceError as exc:
        raise ProtocolViolationError(f"Cannot read {kind} id from response: {body!r}") from exc


def node(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ProtocolViolationError(f"Expected a node, got {body!r}")
    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise ProtocolViolationError(f"Node properties are not a map: {body!r}")
    return {**data, "id": _entity_id(body, "node")}


def nodes(body: Any) -> List[Dict[str, Any]]:
    if body is None:
        return []
    if not isinstance(body, list):
        raise ProtocolViolationError(f"Expected a list of nodes, got {body!r}")
    return [node(item) for item in body]


def relationship(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ProtocolViolationError(f"Expected a relationship, got {body!r}")
    try:
        start = id_from_uri(body.get("start"), "node")
        end = id_from_uri(body.get("end"), "node")
    except InvalidReferenceError as exc:
        raise ProtocolViolationError(f"Relationship endpoints missing: {body!r}") from exc
    properties = body.get("data") or {}
    if not isinstance(properties, dict):
        raise ProtocolViolationError(f"Relationship properties are not a map: {body!r}")
    return {
        "start": start,
        "end": end,
        "type": body.get("type"),
        "properties": properties,
        "id": _entity_id(body, "relationship"),
    }


def labels(body: Any) -> List[str]:
    if body is None:
        return []
    if not isinstance(body, list):
        raise ProtocolViolationError(f"Expected a list of labels, got {body!r}")
    return [str(item) for item in body]


def rows(body: Any) -> List[Dict[str, Any]]:
    if not isinstance(body, dict) or "columns" not in body:
        raise ProtocolViolationError(f"Expected a cypher result, got {body!r}")
    columns = body["columns"]
    return [dict(zip(columns, [_cell(v) for v in row])) for row in body.get("data") or []]


def _cell(value: Any) -> Any:
    if isinstance(value, dict) and "self" in value and "data" in value:
        if "start" in value and "end" in value:
            return relationship(value)
        return node(value)
    if isinstance(value, list):
        return [_cell(v) for v in value]
    return value


def raw(body: Any) -> Any:
    return body


def nothing(body: Any) -> None:
    return None


def constant(value: Any):
    def shape(body: Any) -> Any:
        return value
    return shape


def location(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("self")
    return None


def apply(shape: Callable[[Any], Any], body: Any) -> Any:
    """Run `shape` over a response body; a body it cannot read is a protocol violation."""
    try:
        return shape(body)
    except ProtocolViolationError:
        raise
    except (TypeError, ValueError, KeyError, AttributeError) as exc:
        raise ProtocolViolationError(f"Cannot read response body {body!r}: {exc}") from exc
