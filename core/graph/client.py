from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from common.exceptions import NeoRestError, error_for_status
from core.graph import shapes
from core.graph.batch import BatchTransaction
from core.graph.operations import DirectResolver, Plan, collect
from core.graph.transport import HttpTransport, Transport, TransportConfig
from core.graph.verbs import Callback, GraphVerbs, invoke_callback


logger = logging.getLogger(__name__)


class GraphClient(GraphVerbs):

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    @classmethod
    def from_config(cls, config: TransportConfig) -> "GraphClient":
        return cls(HttpTransport(config))

    @property
    def transport(self) -> Transport:
        return self._transport

    def batch(self) -> BatchTransaction:
        return BatchTransaction(self._transport)

    def _resolver(self) -> DirectResolver:
        return DirectResolver(self._transport.base_url)

    async def _submit(self, plan: Plan, callback: Optional[Callback] = None) -> Any:
        try:
            value = await self._run(plan)
        except NeoRestError as exc:
            await invoke_callback(callback, exc, None)
            raise
        await invoke_callback(callback, None, value)
        return value

    async def _run(self, plan: Plan) -> Any:
        if len(plan.steps) > 1:
            return await self._run_atomically(plan)
        values: Dict[int, Any] = {}
        for offset, step in enumerate(plan.steps):
            status, payload = await self._transport.execute(step.method, step.path, step.body)
            if not 200 <= status < 300:
                logger.debug("%s %s answered %s", step.method.value, step.path, status)
                raise error_for_status(status, payload)
            if step.shape is not None:
                values[offset] = shapes.apply(step.shape, payload)
        return collect(plan.exposed, plan.bulk, values)

    async def _run_atomically(self, plan: Plan) -> Any:
        # Multi-step calls go out as one batch so a failing step leaves nothing applied.
        txn = BatchTransaction(self._transport)
        placeholder = txn._submit(plan)
        results = await txn.commit()
        return results[placeholder]

    async def ping(self) -> bool:
        ping = getattr(self._transport, "ping", None)
        if ping is None:
            return True
        return await ping()

    async def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "GraphClient",
]
