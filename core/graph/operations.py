"""
Operation builder.

Every verb is a pure function from its arguments to a `Plan`: the ordered
steps to run plus, for each step, how its response body becomes the value the
verb promises. The same plans drive the direct client and the batch engine,
which is what keeps the two result shapes identical.

Arguments that name a node or relationship go through a `Resolver`:

- `DirectResolver` turns concrete identifiers into paths/URIs and rejects
  placeholders;
- `BatchResolver` additionally rewrites placeholders issued by its batch into
  `{N}` back-references.

Steps of one plan refer to each other with back-references anchored at
`resolver.base` (the sequence the first step will receive).
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from common.exceptions import InvalidReferenceError
from common.models.operations import Method
from common.utils.path_builder import (
    back_reference,
    id_from_uri,
    resource_path,
    segment,
    validate_identifier,
)
from core.graph import shapes
from core.graph.references import Placeholder, ReferenceTable

Shape = Callable[[Any], Any]


@dataclass(frozen=True)
class Step:
    method: Method
    path: str
    body: Any = None
    # None marks a helper step whose result is not exposed to the caller.
    shape: Optional[Shape] = None


@dataclass(frozen=True)
class Plan:
    steps: Tuple[Step, ...]
    bulk: bool = False

    @property
    def exposed(self) -> Tuple[int, ...]:
        return tuple(i for i, step in enumerate(self.steps) if step.shape is not None)


def collect(positions: Sequence[int], bulk: bool, values: Mapping[int, Any]) -> Any:
    """Assemble a call's value from the shaped results at `positions`."""
    if bulk:
        return [values[p] for p in positions]
    return values[positions[0]] if positions else None


class DirectResolver:

    def __init__(self, base_url: str = "", base: int = 0) -> None:
        self.base_url = base_url.rstrip("/")
        self.base = base

    def identifier(self, target: Any, kind: str = "node") -> int:
        if isinstance(target, Placeholder):
            raise InvalidReferenceError(f"A concrete {kind} id is required here, got a placeholder")
        if isinstance(target, bool):
            raise InvalidReferenceError(f"Invalid {kind} reference: {target!r}")
        if isinstance(target, int):
            if target < 0:
                raise InvalidReferenceError(f"Invalid {kind} id: {target}")
            return target
        if isinstance(target, str):
            return id_from_uri(target, kind)
        if isinstance(target, Mapping):
            ident = target.get("id")
            if ident is None and isinstance(target.get("self"), str):
                return id_from_uri(target["self"], kind)
            if isinstance(ident, int) and not isinstance(ident, bool) and ident >= 0:
                return ident
        raise InvalidReferenceError(f"Invalid {kind} reference: {target!r}")

    def placeholder(self, placeholder: Placeholder) -> str:
        raise InvalidReferenceError(
            "Placeholders only resolve inside the batch that issued them; "
            "look the value up in the committed results instead"
        )

    def path(self, target: Any, kind: str = "node") -> str:
        if isinstance(target, Placeholder):
            return self.placeholder(target)
        return resource_path(kind, self.identifier(target, kind))

    def uri(self, target: Any, kind: str = "node") -> str:
        if isinstance(target, Placeholder):
            return self.placeholder(target)
        return self.base_url + resource_path(kind, self.identifier(target, kind))


class BatchResolver(DirectResolver):

    def __init__(self, table: ReferenceTable, base_url: str = "", base: int = 0) -> None:
        super().__init__(base_url, base)
        self._table = table

    def placeholder(self, placeholder: Placeholder) -> str:
        sequence = self._table.require(placeholder).sequence
        if sequence >= self.base:
            raise InvalidReferenceError(f"Placeholder points forward to operation {sequence}")
        return back_reference(sequence)


Resolver = Union[DirectResolver, BatchResolver]


def _many(value: Any) -> Tuple[List[Any], bool]:
    if isinstance(value, (list, tuple)):
        return list(value), True
    return [value], False


def _label_list(labels: Union[str, Iterable[str]]) -> List[str]:
    items = [labels] if isinstance(labels, str) else list(labels)
    if not items:
        raise ValueError("At least one label is required")
    for item in items:
        validate_identifier(item, "label")
    return items


class _Builder:
    """Collects steps and hands out back-references to the ones already added."""

    def __init__(self, refs: Resolver) -> None:
        self._refs = refs
        self._steps: List[Step] = []

    def add(self, method: Method, path: str, body: Any = None, shape: Optional[Shape] = None) -> str:
        self._steps.append(Step(method, path, body, shape))
        return back_reference(self._refs.base + len(self._steps) - 1)

    def plan(self, bulk: bool) -> Plan:
        return Plan(tuple(self._steps), bulk)


def save(node: Any, label: Optional[Union[str, Sequence[str]]] = None, *, refs: Resolver) -> Plan:
    """Create nodes without an `id`, overwrite the properties of nodes that carry one."""
    items, bulk = _many(node)
    label_list = _label_list(label) if label is not None else None
    builder = _Builder(refs)
    for item in items:
        if not isinstance(item, Mapping):
            raise TypeError(f"Nodes are saved from mappings, got {item!r}")
        if item.get("id") is not None:
            ident = refs.identifier(item)
            props = {k: v for k, v in item.items() if k != "id"}
            target = resource_path("node", ident)
            builder.add(Method.PUT, f"{target}/properties", props, shapes.constant({**props, "id": ident}))
        else:
            target = builder.add(Method.POST, "/node", dict(item), shapes.node)
        if label_list is not None:
            builder.add(Method.POST, f"{target}/labels", label_list)
    return builder.plan(bulk)


def read(target: Any, property: Optional[str] = None, *, refs: Resolver) -> Plan:
    items, bulk = _many(target)
    builder = _Builder(refs)
    for item in items:
        path = refs.path(item)
        if property is None:
            builder.add(Method.GET, path, shape=shapes.node)
        else:
            builder.add(Method.GET, f"{path}/properties/{segment(property)}", shape=shapes.raw)
    return builder.plan(bulk)


def delete(target: Any, *, refs: Resolver) -> Plan:
    items, bulk = _many(target)
    builder = _Builder(refs)
    for item in items:
        builder.add(Method.DELETE, refs.path(item), shape=shapes.nothing)
    return builder.plan(bulk)


def relate(
    start: Any,
    type: str,
    end: Any,
    properties: Optional[Dict[str, Any]] = None,
    *,
    refs: Resolver,
) -> Plan:
    """One relationship per (start, end) pair; lists expand start-major."""
    validate_identifier(type, "relationship type")
    starts, many_starts = _many(start)
    ends, many_ends = _many(end)
    builder = _Builder(refs)
    for s in starts:
        start_path = refs.path(s)
        for e in ends:
            body = {"to": refs.uri(e), "type": type, "data": dict(properties or {})}
            builder.add(Method.POST, f"{start_path}/relationships", body, shapes.relationship)
    return builder.plan(many_starts or many_ends)


def read_relationship(rel: Any, *, refs: Resolver) -> Plan:
    items, bulk = _many(rel)
    builder = _Builder(refs)
    for item in items:
        builder.add(Method.GET, refs.path(item, "relationship"), shape=shapes.relationship)
    return builder.plan(bulk)


def update_relationship(rel: Any, properties: Dict[str, Any], *, refs: Resolver) -> Plan:
    if not isinstance(properties, Mapping):
        raise TypeError("Relationship properties must be a mapping")
    builder = _Builder(refs)
    builder.add(Method.PUT, f"{refs.path(rel, 'relationship')}/properties", dict(properties), shapes.nothing)
    return builder.plan(False)


def delete_relationship(rel: Any, *, refs: Resolver) -> Plan:
    items, bulk = _many(rel)
    builder = _Builder(refs)
    for item in items:
        builder.add(Method.DELETE, refs.path(item, "relationship"), shape=shapes.nothing)
    return builder.plan(bulk)


def index(index_name: str, target: Any, key: str, value: Any, *, refs: Resolver) -> Plan:
    validate_identifier(index_name, "index name")
    validate_identifier(key, "index key")
    builder = _Builder(refs)
    body = {"uri": refs.uri(target), "key": key, "value": value}
    builder.add(Method.POST, f"/index/node/{segment(index_name)}", body, shapes.node)
    return builder.plan(False)


def read_index(index_name: str, key: str, value: Any, *, refs: Resolver) -> Plan:
    validate_identifier(index_name, "index name")
    validate_identifier(key, "index key")
    builder = _Builder(refs)
    path = f"/index/node/{segment(index_name)}/{segment(key)}/{segment(value)}"
    builder.add(Method.GET, path, shape=shapes.nodes)
    return builder.plan(False)


def remove_from_index(
    index_name: str,
    target: Any,
    key: Optional[str] = None,
    value: Any = None,
    *,
    refs: Resolver,
) -> Plan:
    """The node id sits in the middle of the path, so it must be concrete."""
    validate_identifier(index_name, "index name")
    if value is not None and key is None:
        raise ValueError("An index value needs its key")
    ident = refs.identifier(target)
    parts = [f"/index/node/{segment(index_name)}"]
    if key is not None:
        parts.append(segment(key))
        if value is not None:
            parts.append(segment(value))
    parts.append(str(ident))
    builder = _Builder(refs)
    builder.add(Method.DELETE, "/".join(parts), shape=shapes.nothing)
    return builder.plan(False)


def label(target: Any, labels: Union[str, Sequence[str]], replace: bool = False, *, refs: Resolver) -> Plan:
    items, bulk = _many(target)
    label_list = _label_list(labels)
    method = Method.PUT if replace else Method.POST
    builder = _Builder(refs)
    for item in items:
        builder.add(method, f"{refs.path(item)}/labels", label_list, shapes.nothing)
    return builder.plan(bulk)


def remove_label(target: Any, label: str, *, refs: Resolver) -> Plan:
    validate_identifier(label, "label")
    items, bulk = _many(target)
    builder = _Builder(refs)
    for item in items:
        builder.add(Method.DELETE, f"{refs.path(item)}/labels/{segment(label)}", shape=shapes.nothing)
    return builder.plan(bulk)


def read_labels(target: Any, *, refs: Resolver) -> Plan:
    items, bulk = _many(target)
    builder = _Builder(refs)
    for item in items:
        builder.add(Method.GET, f"{refs.path(item)}/labels", shape=shapes.labels)
    return builder.plan(bulk)


def nodes_with_label(label: str, key: Optional[str] = None, value: Any = None, *, refs: Resolver) -> Plan:
    validate_identifier(label, "label")
    path = f"/label/{segment(label)}/nodes"
    if key is not None:
        validate_identifier(key, "property")
        path += f"?{segment(key)}={segment(json.dumps(value))}"
    builder = _Builder(refs)
    builder.add(Method.GET, path, shape=shapes.nodes)
    return builder.plan(False)


def query(statement: str, params: Optional[Dict[str, Any]] = None, *, refs: Resolver) -> Plan:
    if not isinstance(statement, str) or not statement.strip():
        raise ValueError("Query statement must be a non-empty string")
    builder = _Builder(refs)
    builder.add(Method.POST, "/cypher", {"query": statement, "params": dict(params or {})}, shapes.rows)
    return builder.plan(False)
