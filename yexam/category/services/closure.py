"""
分类树服务 - 闭包表维护

闭包表每个可达的 (祖先, 子孙) 对一行，含 distance=0 的自身行。
只包含 ACTIVE 节点，按 parent_id 关系计算。
"""

import threading
from collections import defaultdict, deque
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, insert, or_, select

from yexam.orm import transaction_manager

from ..models import Category
from .base import TreeComponent


class ClosureMaintainer(TreeComponent):
    """闭包表维护

    使用示例:
        closure = ClosureMaintainer()
        closure.rebuild_all()             # 全量重建
        closure.rebuild_for(node.id)      # 节点移动后重建其子树的外部祖先行
        closure.compact_sort_orders(None) # 整理根节点排序号为 10, 20, 30...
    """

    # ==================== 增量维护 ====================

    def add_node(self, node: Category) -> int:
        """新节点插入自身行及父节点全部祖先行

        Returns:
            写入的行数
        """
        self.session.flush()
        rows = [{"ancestor_id": node.id, "descendant_id": node.id, "distance": 0}]
        if node.parent_id is not None:
            parent_rows = self.session.execute(
                select(self.closure_model.ancestor_id, self.closure_model.distance)
                .where(self.closure_model.descendant_id == node.parent_id)
            ).all()
            rows.extend(
                {"ancestor_id": ancestor_id, "descendant_id": node.id, "distance": distance + 1}
                for ancestor_id, distance in parent_rows
            )
        return self.insert_rows(rows)

    def remove_nodes(self, node_ids: Iterable[int]) -> int:
        """删除涉及这些节点的全部闭包行（作为祖先或子孙）"""
        ids = list(node_ids)
        if not ids:
            return 0
        self.session.flush()
        removed = 0
        batch = self.settings.closure_batch_size
        for start in range(0, len(ids), batch):
            chunk = ids[start:start + batch]
            result = self.session.execute(
                delete(self.closure_model)
                .where(or_(
                    self.closure_model.ancestor_id.in_(chunk),
                    self.closure_model.descendant_id.in_(chunk),
                ))
                .execution_options(synchronize_session=False)
            )
            removed += result.rowcount or 0
        self.logger.debug(f"删除闭包行 {removed} 条，涉及 {len(ids)} 个节点")
        return removed

    def remove_rows(self, rows: Iterable[Tuple[int, int, int]]) -> int:
        """删除指定的 (ancestor_id, descendant_id, distance) 行"""
        removed = 0
        for ancestor_id, descendant_id, _distance in rows:
            result = self.session.execute(
                delete(self.closure_model)
                .where(
                    self.closure_model.ancestor_id == ancestor_id,
                    self.closure_model.descendant_id == descendant_id,
                )
                .execution_options(synchronize_session=False)
            )
            removed += result.rowcount or 0
        return removed

    def insert_rows(self, rows: Sequence) -> int:
        """按批写入闭包行

        Args:
            rows: 字典 {ancestor_id, descendant_id, distance} 或三元组
        """
        rows = [
            row if isinstance(row, dict)
            else {"ancestor_id": row[0], "descendant_id": row[1], "distance": row[2]}
            for row in rows
        ]
        if not rows:
            return 0
        batch = self.settings.closure_batch_size
        for start in range(0, len(rows), batch):
            self.session.execute(insert(self.closure_model), rows[start:start + batch])
        return len(rows)

    # ==================== 重建 ====================

    def rebuild_all(self, cancel_event: Optional[threading.Event] = None) -> int:
        """清空并按 parent_id 关系全量重建闭包表

        从有效根节点（无父节点或父节点已不可用）开始广度优先遍历。
        处于循环中、无法从任何根到达的节点只写自身行并记录警告。

        Returns:
            写入的行数

        Raises:
            OperationCancelledException: 批次之间检测到取消，事务回滚
        """
        with transaction_manager.transaction(session=self.session):
            self.session.flush()
            self.session.execute(
                delete(self.closure_model).execution_options(synchronize_session=False)
            )

            nodes = self.session.execute(
                self.query().columns_statement(self.category_model.id, self.category_model.parent_id)
            ).all()
            active_ids = {node_id for node_id, _ in nodes}
            children: Dict[int, List[int]] = defaultdict(list)
            roots = []
            for node_id, parent_id in nodes:
                if parent_id is None or parent_id not in active_ids:
                    roots.append(node_id)
                else:
                    children[parent_id].append(node_id)

            queue = deque((root_id, ()) for root_id in sorted(roots))
            visited = set()
            buffer = []
            total = 0
            while queue:
                node_id, ancestors = queue.popleft()
                if node_id in visited:
                    continue
                visited.add(node_id)
                buffer.append({"ancestor_id": node_id, "descendant_id": node_id, "distance": 0})
                count = len(ancestors)
                for index, ancestor_id in enumerate(ancestors):
                    buffer.append({
                        "ancestor_id": ancestor_id,
                        "descendant_id": node_id,
                        "distance": count - index,
                    })
                for child_id in sorted(children.get(node_id, ())):
                    queue.append((child_id, ancestors + (node_id,)))

                if len(buffer) >= self.settings.closure_batch_size:
                    total += self.insert_rows(buffer)
                    buffer = []
                    self.check_cancelled(cancel_event, "重建闭包表")

            unreachable = sorted(active_ids - visited)
            if unreachable:
                self.logger.warning(f"以下分类处于循环引用中，闭包表仅写入自身行: {unreachable}")
                buffer.extend(
                    {"ancestor_id": node_id, "descendant_id": node_id, "distance": 0}
                    for node_id in unreachable
                )
            total += self.insert_rows(buffer)

        self.logger.info(f"闭包表重建完成: {len(active_ids)} 个节点，{total} 行")
        return total

    def rebuild_for(self, subtree_root_id: int) -> int:
        """节点移动后重建其子树的闭包行

        子树内部行不变；删除子树外部祖先的旧行，按新父节点的祖先行写入新行。

        Returns:
            写入的行数
        """
        self.session.flush()
        root = self.session.scalars(
            self.query().where(self.category_model.id == subtree_root_id).statement()
        ).first()
        if root is None:
            return 0

        # 子树节点及其相对子树根的跳数
        hops = {root.id: 0}
        frontier = [root.id]
        while frontier:
            rows = self.session.execute(
                self.query()
                .where(self.category_model.parent_id.in_(frontier))
                .columns_statement(self.category_model.id, self.category_model.parent_id)
            ).all()
            frontier = []
            for node_id, parent_id in rows:
                if node_id not in hops:
                    hops[node_id] = hops[parent_id] + 1
                    frontier.append(node_id)

        subtree_ids = list(hops)
        self.session.execute(
            delete(self.closure_model)
            .where(
                self.closure_model.descendant_id.in_(subtree_ids),
                self.closure_model.ancestor_id.not_in(subtree_ids),
            )
            .execution_options(synchronize_session=False)
        )

        if root.parent_id is None:
            return 0
        parent_rows = self.session.execute(
            select(self.closure_model.ancestor_id, self.closure_model.distance)
            .where(self.closure_model.descendant_id == root.parent_id)
        ).all()
        rows = [
            {"ancestor_id": ancestor_id, "descendant_id": node_id, "distance": distance + 1 + hop}
            for ancestor_id, distance in parent_rows
            for node_id, hop in hops.items()
        ]
        written = self.insert_rows(rows)
        self.logger.debug(f"重建子树闭包行: root={root.id}, 节点 {len(hops)} 个，写入 {written} 行")
        return written

    # ==================== 查询 ====================

    def get_ancestor_ids(self, category_id: int) -> List[int]:
        """祖先 ID（根在前，不含自身）"""
        return list(self.session.scalars(
            select(self.closure_model.ancestor_id)
            .where(
                self.closure_model.descendant_id == category_id,
                self.closure_model.distance > 0,
            )
            .order_by(self.closure_model.distance.desc())
        ).all())

    def get_descendant_ids(self, category_id: int) -> List[int]:
        """子孙 ID（近的在前，不含自身）"""
        return list(self.session.scalars(
            select(self.closure_model.descendant_id)
            .where(
                self.closure_model.ancestor_id == category_id,
                self.closure_model.distance > 0,
            )
            .order_by(self.closure_model.distance, self.closure_model.descendant_id)
        ).all())

    def get_rows(self) -> List[Tuple[int, int, int]]:
        """全部闭包行"""
        return [
            (row.ancestor_id, row.descendant_id, row.distance)
            for row in self.session.execute(
                select(
                    self.closure_model.ancestor_id,
                    self.closure_model.descendant_id,
                    self.closure_model.distance,
                )
            ).all()
        ]

    # ==================== 排序号整理 ====================

    def compact_sort_orders(self, parent_id: Optional[int] = None, step: Optional[int] = None) -> int:
        """把同级节点的排序号整理为 step, 2*step, 3*step...

        Args:
            parent_id: 父节点 ID，None 表示根节点
            step: 间隔，默认取配置 sort_order_step

        Returns:
            排序号发生变化的节点数
        """
        step = step or self.settings.sort_order_step
        changed = 0
        with transaction_manager.transaction(session=self.session):
            siblings = self.query().where_parent(parent_id).sibling_order().all(self.session)
            for index, node in enumerate(siblings, start=1):
                value = index * step
                if node.sort_order != value:
                    node.sort_order = value
                    changed += 1
            self.session.flush()
        self.logger.info(f"整理排序号: parent_id={parent_id}, 变更 {changed} 个节点")
        return changed


__all__ = ["ClosureMaintainer"]
