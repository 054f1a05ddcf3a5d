from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from common.exceptions import (
    BatchAlreadyCommittedError,
    CallbackError,
    NeoRestError,
    ProtocolViolationError,
    TransportError,
    error_for_status,
)
from common.models.operations import BatchOutcome, Method, OperationDescriptor, PendingCallback
from core.graph import shapes
from core.graph.operations import BatchResolver, Plan, Shape, collect
from core.graph.references import Placeholder, ReferenceTable
from core.graph.results import BatchResults
from core.graph.transport import Transport
from core.graph.verbs import Callback, GraphVerbs, invoke_callback


logger = logging.getLogger(__name__)

BATCH_PATH = "/batch"


class BatchTransaction(GraphVerbs):
    """
    Accumulates verb calls and runs them as one atomic request.

    Verb calls are synchronous and do no I/O: each appends its operations,
    queues its callback (if any) and returns a `Placeholder`. Placeholders can
    be passed to later calls of the same batch, where they become `{N}`
    back-references, and are looked up in the `BatchResults` after commit.

    Usage::

        txn = client.batch()
        alice = txn.save({"name": "Alice"})
        bob = txn.save({"name": "Bob"}, callback=on_bob)
        knows = txn.relate(alice, "KNOWS", bob)
        results = await txn.commit()
        results[knows]["id"]

    or, committing on exit::

        async with client.batch() as txn:
            ...

    A batch commits at most once. It offers no way to open another batch, so
    references never cross batch boundaries.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._operations: List[OperationDescriptor] = []
        self._shapes: Dict[int, Shape] = {}
        self._callbacks: List[PendingCallback] = []
        self._references = ReferenceTable()
        self._committed = False
        self._results: Optional[BatchResults] = None

    @property
    def operations(self) -> Tuple[OperationDescriptor, ...]:
        return tuple(self._operations)

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def results(self) -> Optional[BatchResults]:
        return self._results

    def __len__(self) -> int:
        return len(self._operations)

    def _ensure_open(self) -> None:
        if self._committed:
            raise BatchAlreadyCommittedError("Batch has already been committed")

    def _resolver(self) -> BatchResolver:
        self._ensure_open()
        return BatchResolver(self._references, self._transport.base_url, base=len(self._operations))

    def _submit(self, plan: Plan, callback: Optional[Callback] = None) -> Placeholder:
        self._ensure_open()
        base = len(self._operations)
        for offset, step in enumerate(plan.steps):
            sequence = base + offset
            self._operations.append(OperationDescriptor(step.method, step.path, step.body, sequence))
            if step.shape is not None:
                self._shapes[sequence] = step.shape
        sequences = tuple(base + offset for offset in plan.exposed)
        placeholder = self._references.mint(sequences, bulk=plan.bulk)
        if callback is not None:
            self._callbacks.append(PendingCallback(sequences, callback, plan.bulk))
        logger.debug("Queued %d operation(s) at %d", len(plan.steps), base)
        return placeholder

    def discard(self) -> None:
        """Close the batch without sending it. Queued callbacks never fire."""
        self._ensure_open()
        self._committed = True
        self._references.close()
        logger.debug("Discarded batch of %d operation(s)", len(self._operations))

    async def commit(self, callback: Optional[Callback] = None) -> BatchResults:
        """
        Send every queued operation in one request and route the results.

        Args:
            callback: called with `(error, results)` after the per-call callbacks.

        Returns:
            The `BatchResults` for this batch.

        Raises:
            BatchAlreadyCommittedError: the batch was committed or discarded before.
            TransportError / ServiceError / ProtocolViolationError: the batch failed
                as a whole. Every queued callback and `callback` received the same
                exception first; nothing was resolved.
            CallbackError: the batch succeeded but a callback raised.
        """
        self._ensure_open()
        self._committed = True
        self._references.close()
        jobs = [op.to_job() for op in self._operations]
        try:
            raw, values = await self._round_trip(jobs) if jobs else ([], {})
        except NeoRestError as exc:
            await self._fail(exc, callback)
            raise
        except Exception as exc:
            error = TransportError(f"Batch request failed: {exc}")
            await self._fail(error, callback)
            raise error from exc

        results = BatchResults(raw, values, self._references)
        self._results = results
        logger.debug("Committed batch of %d operation(s)", len(jobs))

        errors: List[Exception] = []
        for pending in self._callbacks:
            value = collect(pending.sequences, pending.bulk, values)
            try:
                await invoke_callback(pending.callback, None, value)
            except Exception as exc:
                logger.exception("Callback for operations %s raised", list(pending.sequences))
                errors.append(exc)
        try:
            await invoke_callback(callback, None, results)
        except Exception as exc:
            logger.exception("Commit callback raised")
            errors.append(exc)
        if errors:
            raise CallbackError(f"{len(errors)} callback(s) raised after commit") from errors[0]
        return results

    async def _round_trip(self, jobs: List[Dict[str, Any]]) -> Tuple[List[Any], Dict[int, Any]]:
        status, body = await self._transport.execute(Method.POST, BATCH_PATH, jobs)
        if not 200 <= status < 300:
            raise error_for_status(status, body)
        if not isinstance(body, list):
            raise ProtocolViolationError(f"Batch response is not a list: {body!r}")
        if len(body) != len(jobs):
            raise ProtocolViolationError(
                f"Batch response has {len(body)} entries for {len(jobs)} operations"
            )
        outcomes: List[BatchOutcome] = []
        for position, entry in enumerate(body):
            try:
                outcome = BatchOutcome.model_validate(entry)
            except ValidationError as exc:
                raise ProtocolViolationError(f"Malformed batch entry {position}: {entry!r}") from exc
            if outcome.id is not None and outcome.id != position:
                raise ProtocolViolationError(f"Batch entry {position} answers operation {outcome.id}")
            if outcome.failed:
                raise error_for_status(outcome.status, outcome.body)
            outcomes.append(outcome)
        values = {sequence: shapes.apply(shape, outcomes[sequence].body) for sequence, shape in self._shapes.items()}
        return list(body), values

    async def _fail(self, error: NeoRestError, callback: Optional[Callback]) -> None:
        logger.error("Batch of %d operation(s) failed: %s", len(self._operations), error)
        for pending in self._callbacks:
            try:
                await invoke_callback(pending.callback, error, None)
            except Exception:
                logger.exception("Callback for operations %s raised while reporting failure", list(pending.sequences))
        try:
            await invoke_callback(callback, error, None)
        except Exception:
            logger.exception("Commit callback raised while reporting failure")

    async def __aenter__(self) -> "BatchTransaction":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._committed:
            return
        if exc_type is not None:
            self.discard()
            return
        await self.commit()
