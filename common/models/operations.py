from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class OperationDescriptor:
    """One job of a batch.

    `path` may start with a back-reference (`{3}/labels`) and `body` may hold
    back-references as whole string values; both are substituted by the
    service when the batch runs.
    """

    method: Method
    path: str
    body: Any = None
    sequence: int = 0

    def to_job(self) -> Dict[str, Any]:
        job: Dict[str, Any] = {"method": self.method.value, "to": self.path, "id": self.sequence}
        if self.body is not None:
            job["body"] = self.body
        return job


@dataclass(frozen=True)
class PendingCallback:
    sequences: Tuple[int, ...]
    callback: Callable[..., Any]
    bulk: bool = False


class BatchOutcome(BaseModel):
    """One entry of the service's batch response."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[int] = None
    from_: Optional[str] = Field(default=None, alias="from")
    body: Any = None
    location: Optional[str] = None
    status: Optional[int] = None

    @property
    def failed(self) -> bool:
        return self.status is not None and not 200 <= self.status < 300
