from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Mapping

from core.graph.operations import collect
from core.graph.references import Placeholder


class BatchResults(Mapping):
    """Values of a committed batch, keyed by the placeholders it issued.

    Built once at commit. `raw` keeps the service's outcome entries in
    submission order.
    """

    def __init__(self, raw: List[Dict[str, Any]], values: Dict[int, Any], placeholders: Iterable[Placeholder]) -> None:
        self._raw = list(raw)
        self._values = dict(values)
        self._table: Dict[Placeholder, Any] = {
            ph: collect(ph.sequences, ph.bulk, self._values) for ph in placeholders
        }

    @property
    def raw(self) -> List[Dict[str, Any]]:
        return list(self._raw)

    def value_at(self, sequence: int) -> Any:
        return self._values[sequence]

    def __getitem__(self, placeholder: Placeholder) -> Any:
        return self._table[placeholder]

    def __iter__(self) -> Iterator[Placeholder]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"BatchResults(operations={len(self._raw)}, placeholders={len(self._table)})"
