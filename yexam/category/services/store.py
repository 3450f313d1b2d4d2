"""
分类树服务 - 节点存储

分类节点的创建、读取、更新与软删除，以及 path/depth 的推导。
结构字段（parent_id、path、depth、生命周期）只能通过本模块和 TreeMutator 修改。
"""

import threading
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm.exc import StaleDataError

from yexam.config import CategoryTreeSettings
from yexam.exceptions import Err, ErrorCode
from yexam.orm import get_current_user_id, transaction_manager

from ..models import Category
from ..tree_utils import ROOT_PATH, child_path
from .base import TreeComponent
from .closure import ClosureMaintainer


class CategoryStore(TreeComponent):
    """分类节点存储

    使用示例:
        store = CategoryStore()
        math = store.create(name="数学", code="MATH", category_type=CategoryType.SUBJECT)
        algebra = store.create(name="代数", code="MATH-ALG", parent_id=math.id)

        algebra = store.update(algebra.id, version=algebra.ver, name="代数基础")
        store.soft_delete(algebra.id)
    """

    # 创建时允许传入的普通字段
    CREATABLE_FIELDS = frozenset({
        "description", "category_type", "category_level", "is_active", "allow_questions",
        "metadata_json", "curriculum_code", "grade_level", "subject",
    })

    # update() 允许修改的字段
    UPDATABLE_FIELDS = CREATABLE_FIELDS | {"name", "code", "sort_order"}

    def __init__(
        self,
        closure: ClosureMaintainer = None,
        settings: CategoryTreeSettings = None,
        logger=None,
    ):
        super().__init__(settings, logger)
        self.closure = closure or ClosureMaintainer(settings=self.settings)

    # ==================== 读取 ====================

    def find_by_id(self, category_id: int) -> Optional[Category]:
        """按 ID 查找未删除的节点，不存在返回 None"""
        if category_id is None:
            return None
        return self.session.scalars(
            self.query().where(self.category_model.id == category_id).statement()
        ).first()

    def find_by_code(self, code: str) -> Optional[Category]:
        """按编码查找未删除的节点，存在多个时返回 ID 最小的"""
        if not code:
            return None
        return self.session.scalars(
            self.query()
            .where(self.category_model.code == code)
            .statement()
            .order_by(self.category_model.id)
        ).first()

    def get_by_id(self, category_id: int) -> Category:
        """按 ID 获取节点

        Raises:
            ResourceNotFoundException: 节点不存在或已删除
        """
        node = self.find_by_id(category_id)
        if node is None:
            raise Err.not_found(
                f"分类不存在: {category_id}",
                code=ErrorCode.CATEGORY_NOT_FOUND,
                category_id=category_id,
            )
        return node

    def get_by_code(self, code: str) -> Category:
        """按编码获取节点

        Raises:
            ResourceNotFoundException: 节点不存在或已删除
        """
        node = self.find_by_code(code)
        if node is None:
            raise Err.not_found(
                f"分类不存在: {code}",
                code=ErrorCode.CATEGORY_NOT_FOUND,
                category_code=code,
            )
        return node

    def find_children(self, parent_id: Optional[int]) -> List[Category]:
        """直接子节点，按 sort_order、name 排序"""
        return self.query().where_parent(parent_id).sibling_order().all(self.session)

    def count_children(self, parent_id: int) -> int:
        return self.query().where_parent(parent_id).count(self.session)

    # ==================== 路径与排序号 ====================

    def derive_path(self, parent: Optional[Category]) -> Tuple[str, int]:
        """由父节点推导 (path, depth)，父节点为 None 时为根"""
        if parent is None:
            return ROOT_PATH, 0
        return child_path(parent.path, parent.id), parent.depth + 1

    def next_sort_order(self, parent_id: Optional[int]) -> int:
        """同级节点最大排序号 + 1，没有同级节点时为 1"""
        current = self.session.scalar(
            select(func.max(self.category_model.sort_order))
            .where(*self.query().where_parent(parent_id).conditions())
        )
        return (current or 0) + 1

    def make_room(self, parent_id: Optional[int], sort_order: int, exclude_id: Optional[int] = None) -> int:
        """为显式指定的排序号腾出位置

        同级未删除节点中已有相同 sort_order 时，该值及之后的节点依次后移一位；
        没有冲突时不做修改。exclude_id 为正在移动或更新的节点自身。

        Returns:
            后移的节点数
        """
        siblings = [
            sibling
            for sibling in self.find_children(parent_id)
            if sibling.id != exclude_id
        ]
        if not any(sibling.sort_order == sort_order for sibling in siblings):
            return 0

        shifted = 0
        for sibling in siblings:
            if sibling.sort_order >= sort_order:
                sibling.sort_order += 1
                shifted += 1
        self.session.flush()
        self.logger.debug(f"排序号 {sort_order} 已被占用，后移 {shifted} 个同级节点: parent_id={parent_id}")
        return shifted

    def rederive_subtree_paths(
        self,
        node: Category,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """从 node 开始逐层重新推导子孙的 path/depth

        node 自身的 path/depth 须已正确。

        Returns:
            path 或 depth 发生变化的子孙数
        """
        self.session.flush()
        changed = 0
        visited = {node.id}
        frontier = [node]
        while frontier:
            self.check_cancelled(cancel_event, f"更新子树路径 {node.code}")
            parents = {parent.id: parent for parent in frontier}
            children = (
                self.query()
                .where(self.category_model.parent_id.in_(list(parents)))
                .sibling_order()
                .all(self.session)
            )
            frontier = []
            for child in children:
                if child.id in visited:
                    self.logger.warning(f"分类 {child.code} 处于循环引用中，跳过路径更新")
                    continue
                visited.add(child.id)
                path, depth = self.derive_path(parents[child.parent_id])
                if child.path != path or child.depth != depth:
                    child.path = path
                    child.depth = depth
                    changed += 1
                frontier.append(child)
        self.session.flush()
        return changed

    def rebuild_all_paths(self, cancel_event: Optional[threading.Event] = None) -> int:
        """从所有根节点重新推导全部 path/depth

        Returns:
            path 或 depth 发生变化的节点数
        """
        changed = 0
        with transaction_manager.transaction(session=self.session):
            for root in self.find_children(None):
                if root.path != ROOT_PATH or root.depth != 0:
                    root.path = ROOT_PATH
                    root.depth = 0
                    changed += 1
                changed += self.rederive_subtree_paths(root, cancel_event)
        self.logger.info(f"路径重建完成: 更新 {changed} 个节点")
        return changed

    # ==================== 写入 ====================

    def create(
        self,
        name: str,
        code: str,
        parent_id: Optional[int] = None,
        sort_order: Optional[int] = None,
        commit: bool = True,
        check_code: bool = True,
        **fields,
    ) -> Category:
        """创建分类节点并写入闭包行

        Args:
            name: 名称
            code: 编码
            parent_id: 父节点 ID，None 表示根
            sort_order: 排序号，None 时追加到同级末尾；与同级冲突时已有节点后移
            commit: 是否提交；False 时只 flush，由调用方负责提交
            check_code: 是否检查编码在未删除节点中唯一
            **fields: 其他普通字段，见 CREATABLE_FIELDS

        Raises:
            ValidationException: 名称或编码为空、字段不支持
            ResourceNotFoundException: 父节点不存在
            ResourceConflictException: 编码已被使用
        """
        name = self._require_text(name, "name", "分类名称不能为空")
        code = self._require_text(code, "code", "分类编码不能为空")
        self._check_fields(fields, self.CREATABLE_FIELDS)

        parent = self.get_by_id(parent_id) if parent_id is not None else None
        if check_code:
            self._ensure_code_available(code)
        explicit_order = sort_order is not None
        if not explicit_order:
            sort_order = self.next_sort_order(parent_id)

        path, depth = self.derive_path(parent)
        node = self.category_model(
            name=name,
            code=code,
            parent_id=parent_id,
            path=path,
            depth=depth,
            sort_order=sort_order,
            **self._normalize(fields),
        )

        if commit:
            with transaction_manager.transaction(session=self.session):
                self._insert(node, make_room=explicit_order)
        else:
            self._insert(node, make_room=explicit_order)

        self.logger.info(f"创建分类: id={node.id}, code={node.code}, path={node.path}")
        return node

    def update(self, category_id: int, version: int, commit: bool = True, **fields) -> Category:
        """更新普通字段

        Args:
            category_id: 节点 ID
            version: 调用方读取时的版本号 ver
            commit: 是否提交
            **fields: 要修改的字段，见 UPDATABLE_FIELDS

        Raises:
            ResourceNotFoundException: 节点不存在
            ValidationException: 修改结构字段或不支持的字段
            ResourceConflictException: parent_id 与当前值不同、版本冲突或编码已被使用
        """
        node = self.get_by_id(category_id)

        if "parent_id" in fields:
            if fields["parent_id"] != node.parent_id:
                raise Err.conflict(
                    "修改父分类请使用移动操作",
                    category_id=category_id,
                    parent_id=node.parent_id,
                )
            fields.pop("parent_id")
        structural = sorted(set(fields) & self.category_model.STRUCTURAL_FIELDS)
        if structural:
            raise Err.invalid(
                "不能直接修改结构字段",
                code=ErrorCode.INVALID_PARAMETER,
                details=structural,
            )
        self._check_fields(fields, self.UPDATABLE_FIELDS)

        if version != node.ver:
            raise self._version_conflict(node, version)
        if "name" in fields:
            fields["name"] = self._require_text(fields["name"], "name", "分类名称不能为空")
        if "code" in fields:
            fields["code"] = self._require_text(fields["code"], "code", "分类编码不能为空")
            if fields["code"] != node.code:
                self._ensure_code_available(fields["code"], exclude_id=node.id)

        reorder = fields.get("sort_order") is not None and fields["sort_order"] != node.sort_order
        for key, value in self._normalize(fields).items():
            setattr(node, key, value)

        try:
            if commit:
                with transaction_manager.transaction(session=self.session):
                    self._flush_update(node, reorder)
            else:
                self._flush_update(node, reorder)
        except StaleDataError:
            raise self._version_conflict(node, version)

        self.logger.info(f"更新分类: id={node.id}, 字段={sorted(fields)}")
        return node

    def soft_delete(self, category_id: int, commit: bool = True) -> Category:
        """软删除单个节点（切换到 DELETED 状态）并移除其闭包行

        Raises:
            ResourceNotFoundException: 节点不存在
            HasChildrenException: 仍有未删除的子节点
        """
        node = self.get_by_id(category_id)
        children = self.find_children(node.id)
        if children:
            raise Err.has_children(
                f"分类 {node.code} 下存在 {len(children)} 个子分类，无法删除",
                details=[child.code for child in children],
                category_id=node.id,
            )

        if commit:
            with transaction_manager.transaction(session=self.session):
                self._mark_deleted([node])
        else:
            self._mark_deleted([node])

        self.logger.info(f"删除分类: id={node.id}, code={node.code}")
        return node

    def mark_deleted(self, nodes: List[Category]) -> List[int]:
        """批量软删除，不检查子节点，调用方负责顺序与事务"""
        return self._mark_deleted(nodes)

    # ==================== 内部方法 ====================

    def _insert(self, node: Category, make_room: bool = False) -> None:
        if make_room:
            self.make_room(node.parent_id, node.sort_order)
        self.session.add(node)
        self.session.flush()
        self.closure.add_node(node)

    def _flush_update(self, node: Category, reorder: bool) -> None:
        self.session.flush()
        if reorder:
            self.make_room(node.parent_id, node.sort_order, exclude_id=node.id)

    def _mark_deleted(self, nodes: List[Category]) -> List[int]:
        user_id = get_current_user_id()
        for node in nodes:
            node.mark_deleted(user_id)
        self.session.flush()
        ids = [node.id for node in nodes]
        self.closure.remove_nodes(ids)
        return ids

    def _ensure_code_available(self, code: str, exclude_id: Optional[int] = None) -> None:
        existing = self.find_by_code(code)
        if existing is not None and existing.id != exclude_id:
            raise Err.conflict(
                f"分类编码已存在: {code}",
                code=ErrorCode.DUPLICATE_ENTRY,
                category_code=code,
                existing_id=existing.id,
            )

    def _version_conflict(self, node: Category, version: int):
        return Err.conflict(
            "分类已被其他用户修改，请刷新后重试",
            code=ErrorCode.VERSION_CONFLICT,
            category_id=node.id,
            expected_version=version,
        )

    @staticmethod
    def _require_text(value, field: str, message: str) -> str:
        if value is None or not str(value).strip():
            raise Err.invalid(message, code=ErrorCode.INVALID_PARAMETER, field=field)
        return str(value).strip()

    @staticmethod
    def _check_fields(fields: dict, allowed) -> None:
        unknown = sorted(set(fields) - allowed)
        if unknown:
            raise Err.invalid(
                "不支持的字段",
                code=ErrorCode.INVALID_PARAMETER,
                details=unknown,
            )

    @staticmethod
    def _normalize(fields: dict) -> dict:
        """枚举转为存储用的整数"""
        result = dict(fields)
        for key in ("category_type", "category_level"):
            if result.get(key) is not None:
                result[key] = int(result[key])
        return result
