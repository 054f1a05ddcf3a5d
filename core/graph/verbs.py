from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Optional, Sequence, Union

from core.graph import operations
from core.graph.operations import Plan, Resolver

Callback = Callable[[Optional[BaseException], Any], Any]


class GraphVerbs:
    """
    客户端与批处理共享的图操作动词集合（基于 Neo4j REST 接口）。

    设计要点：

    - 每个动词先构建 Plan，再交给 `_submit`：直连客户端返回可等待对象，批处理立即返回 `Placeholder`。
    - `callback(error, value)` 在两种路径下都只会被调用一次。
    - 指向节点的参数可以是 id、带 `id` 的映射、资源 URI，或（仅在批处理内）同一批次的占位符。
    - 大多数动词也接受列表，此时结果为按输入顺序排列的列表。
    """

    def _resolver(self) -> Resolver:
        raise NotImplementedError

    def _submit(self, plan: Plan, callback: Optional[Callback]) -> Any:
        raise NotImplementedError

    def save(self, node: Any, label: Optional[Union[str, Sequence[str]]] = None, *, callback: Optional[Callback] = None):
        """
        创建或更新节点。

        Args:
            node: 属性映射或映射列表；带 `id` 的节点会整体覆盖属性，否则新建。
            label: 可选标签（字符串或列表），新建后追加到节点上。
            callback: 可选回调 `(error, value)`。
        """
        return self._submit(operations.save(node, label, refs=self._resolver()), callback)

    def read(self, target: Any, property: Optional[str] = None, *, callback: Optional[Callback] = None):
        return self._submit(operations.read(target, property, refs=self._resolver()), callback)

    def delete(self, target: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.delete(target, refs=self._resolver()), callback)

    def relate(
        self,
        start: Any,
        type: str,
        end: Any,
        properties: Optional[Dict[str, Any]] = None,
        *,
        callback: Optional[Callback] = None,
    ):
        """
        在起点与终点之间创建关系；两端都是列表时按起点优先展开笛卡尔积。

        Args:
            start: 起点节点（或列表）。
            type: 关系类型，不能为空。
            end: 终点节点（或列表）。
            properties: 关系属性。
        """
        return self._submit(operations.relate(start, type, end, properties, refs=self._resolver()), callback)

    def read_relationship(self, rel: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.read_relationship(rel, refs=self._resolver()), callback)

    def update_relationship(self, rel: Any, properties: Dict[str, Any], *, callback: Optional[Callback] = None):
        return self._submit(operations.update_relationship(rel, properties, refs=self._resolver()), callback)

    def delete_relationship(self, rel: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.delete_relationship(rel, refs=self._resolver()), callback)

    def index(self, index_name: str, target: Any, key: str, value: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.index(index_name, target, key, value, refs=self._resolver()), callback)

    def read_index(self, index_name: str, key: str, value: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.read_index(index_name, key, value, refs=self._resolver()), callback)

    def remove_from_index(
        self,
        index_name: str,
        target: Any,
        key: Optional[str] = None,
        value: Any = None,
        *,
        callback: Optional[Callback] = None,
    ):
        # 节点 id 位于路径中间，只能使用已知 id，不能使用占位符
        plan = operations.remove_from_index(index_name, target, key, value, refs=self._resolver())
        return self._submit(plan, callback)

    def label(
        self,
        target: Any,
        labels: Union[str, Sequence[str]],
        replace: bool = False,
        *,
        callback: Optional[Callback] = None,
    ):
        return self._submit(operations.label(target, labels, replace, refs=self._resolver()), callback)

    def remove_label(self, target: Any, label: str, *, callback: Optional[Callback] = None):
        return self._submit(operations.remove_label(target, label, refs=self._resolver()), callback)

    def read_labels(self, target: Any, *, callback: Optional[Callback] = None):
        return self._submit(operations.read_labels(target, refs=self._resolver()), callback)

    def nodes_with_label(self, label: str, key: Optional[str] = None, value: Any = None, *, callback: Optional[Callback] = None):
        return self._submit(operations.nodes_with_label(label, key, value, refs=self._resolver()), callback)

    def query(self, statement: str, params: Optional[Dict[str, Any]] = None, *, callback: Optional[Callback] = None):
        """执行 Cypher 语句，返回以列名为键的行列表。"""
        return self._submit(operations.query(statement, params, refs=self._resolver()), callback)


async def invoke_callback(callback: Optional[Callback], error: Optional[BaseException], value: Any) -> None:
    if callback is None:
        return
    outcome = callback(error, value)
    if inspect.isawaitable(outcome):
        await outcome
