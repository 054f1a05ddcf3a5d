from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from common.exceptions import (
    AmbiguousReferenceError,
    BatchAlreadyCommittedError,
    InvalidReferenceError,
)


@dataclass(frozen=True, eq=False)
class Placeholder:
    """Handle for the future result of a batched call.

    Equality is identity. `sequences` lists the batch positions whose results
    the placeholder stands for; a bulk placeholder resolves to a list.
    """

    sequences: Tuple[int, ...]
    bulk: bool = False
    _table: Optional["ReferenceTable"] = field(default=None, repr=False)

    @property
    def sequence(self) -> int:
        if self.bulk or len(self.sequences) != 1:
            raise AmbiguousReferenceError(
                f"Placeholder for operations {list(self.sequences)} cannot stand for a single identifier"
            )
        return self.sequences[0]

    def __getitem__(self, position: int) -> "Placeholder":
        if self._table is None:
            raise InvalidReferenceError("Placeholder was not issued by a batch")
        return self._table.member(self, position)

    def __iter__(self) -> Iterator["Placeholder"]:
        for position in range(len(self.sequences)):
            yield self[position]

    def __len__(self) -> int:
        return len(self.sequences)

    def __bool__(self) -> bool:
        return True


class ReferenceTable:
    """Append-only record of the placeholders one batch has handed out."""

    def __init__(self) -> None:
        self._entries: List[Placeholder] = []
        self._closed = False

    def mint(self, sequences: Sequence[int], *, bulk: bool = False) -> Placeholder:
        if self._closed:
            raise BatchAlreadyCommittedError("Batch is closed; no new placeholders can be issued")
        placeholder = Placeholder(tuple(sequences), bulk, self)
        self._entries.append(placeholder)
        return placeholder

    def member(self, placeholder: Placeholder, position: int) -> Placeholder:
        if not placeholder.bulk:
            raise TypeError("Only bulk placeholders can be indexed")
        if self._closed:
            raise BatchAlreadyCommittedError(
                "Batch is closed; index the committed results instead of the placeholder"
            )
        sequences = placeholder.sequences
        if not isinstance(position, int) or isinstance(position, bool):
            raise TypeError(f"Placeholder positions are integers, got {position!r}")
        if not -len(sequences) <= position < len(sequences):
            raise IndexError(f"Placeholder has {len(sequences)} members, no position {position}")
        return self.mint((sequences[position],))

    def owns(self, placeholder: Placeholder) -> bool:
        return placeholder._table is self

    def require(self, placeholder: Placeholder) -> Placeholder:
        if not self.owns(placeholder):
            raise InvalidReferenceError("Placeholder belongs to a different batch")
        return placeholder

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Placeholder]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
