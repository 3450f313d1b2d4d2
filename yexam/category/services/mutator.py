"""
分类树服务 - 结构变更

移动、复制、删除及其批量版本。每个操作在一个事务中完成：
节点字段、子孙路径与闭包表一起提交，任一步失败（含取消）整体回滚。
"""

import threading
from typing import Iterable, List, Optional, Union

from yexam.config import CategoryTreeSettings
from yexam.exceptions import Err
from yexam.orm import transaction_manager

from ..enums import ChildHandlingStrategy
from ..hooks import AttachedContentHooks, NoAttachedContent, get_reassign_hook
from ..models import Category
from ..schemas import CategoryMoveItem, TreeCopyResult, TreeDeleteResult, TreeMoveResult
from .base import TreeComponent
from .closure import ClosureMaintainer
from .navigator import TreeNavigator
from .store import CategoryStore
from .validator import IntegrityValidator


class TreeMutator(TreeComponent):
    """分类树结构变更

    使用示例:
        mutator = TreeMutator(content_hooks=QuestionContentHooks())

        mutator.move_category(algebra.id, new_parent_id=science.id)
        result = mutator.copy_category(math.id, new_name="数学（副本）")
        mutator.delete_category(algebra.id, ChildHandlingStrategy.MOVE_CHILDREN_TO_PARENT)

        # 可取消的批量操作
        cancel = threading.Event()
        mutator.delete_category(math.id, ChildHandlingStrategy.CASCADE_DELETE, cancel_event=cancel)
    """

    def __init__(
        self,
        store: CategoryStore = None,
        navigator: TreeNavigator = None,
        validator: IntegrityValidator = None,
        closure: ClosureMaintainer = None,
        content_hooks: AttachedContentHooks = None,
        settings: CategoryTreeSettings = None,
        logger=None,
    ):
        super().__init__(settings, logger)
        self.closure = closure or ClosureMaintainer(settings=self.settings)
        self.store = store or CategoryStore(closure=self.closure, settings=self.settings)
        self.navigator = navigator or TreeNavigator(closure=self.closure, settings=self.settings)
        self.validator = validator or IntegrityValidator(
            closure=self.closure, store=self.store, settings=self.settings
        )
        self.content_hooks = content_hooks or NoAttachedContent()

    # ==================== 移动 ====================

    def move_category(
        self,
        category_id: int,
        new_parent_id: Optional[int] = None,
        new_sort_order: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeMoveResult:
        """移动节点及其整棵子树

        Args:
            category_id: 要移动的节点
            new_parent_id: 新父节点，None 表示移动到根级
            new_sort_order: 新排序号；None 时同父节点保持原值，换父节点追加到末尾；与同级冲突时已有节点后移
            cancel_event: 取消信号

        Raises:
            CircularReferenceException: 新父节点是自身或自身的子孙
            ResourceNotFoundException: 节点或新父节点不存在
        """
        if new_parent_id is not None and new_parent_id == category_id:
            raise Err.circular("不能将分类移动到自身下", category_id=category_id)

        with transaction_manager.transaction(session=self.session):
            result = self._move(category_id, new_parent_id, new_sort_order, cancel_event)
            self._verify()

        self.logger.info(
            f"移动分类: id={category_id}, {result.old_parent_id} -> {result.new_parent_id}, "
            f"影响 {result.categories_affected} 个节点"
        )
        return result

    def bulk_move(
        self,
        moves: Iterable[Union[CategoryMoveItem, dict, tuple]],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[TreeMoveResult]:
        """在一个事务中依次移动多个节点，任一项失败则全部回滚

        Args:
            moves: CategoryMoveItem、字典或 (category_id, new_parent_id[, new_sort_order]) 元组
            cancel_event: 取消信号

        Raises:
            CircularReferenceException: 某一项会形成循环引用
            ResourceNotFoundException: 某一项的节点或新父节点不存在
        """
        items = [self._to_move_item(move) for move in moves]
        results = []
        with transaction_manager.transaction(session=self.session):
            for item in items:
                self.check_cancelled(cancel_event, f"批量移动分类 {item.category_id}")
                if item.new_parent_id is not None and item.new_parent_id == item.category_id:
                    raise Err.circular("不能将分类移动到自身下", category_id=item.category_id)
                results.append(
                    self._move(item.category_id, item.new_parent_id, item.new_sort_order, cancel_event)
                )
            self._verify()

        self.logger.info(
            f"批量移动分类: {len(results)} 项，影响 {sum(r.categories_affected for r in results)} 个节点"
        )
        return results

    @staticmethod
    def _to_move_item(move) -> CategoryMoveItem:
        if isinstance(move, CategoryMoveItem):
            return move
        if isinstance(move, dict):
            return CategoryMoveItem(**move)
        return CategoryMoveItem(**dict(zip(("category_id", "new_parent_id", "new_sort_order"), move)))

    def _move(
        self,
        category_id: int,
        new_parent_id: Optional[int],
        new_sort_order: Optional[int],
        cancel_event: Optional[threading.Event],
    ) -> TreeMoveResult:
        node = self.store.get_by_id(category_id)
        new_parent = None
        if new_parent_id is not None:
            new_parent = self.store.get_by_id(new_parent_id)
            if self.navigator.would_create_cycle(node.id, new_parent.id):
                raise Err.circular(
                    f"不能将分类 {node.code} 移动到其子分类 {new_parent.code} 下",
                    category_id=node.id,
                    new_parent_id=new_parent.id,
                )

        old_parent_id = node.parent_id
        old_path = node.path
        path, depth = self.store.derive_path(new_parent)
        if new_sort_order is not None:
            sort_order = new_sort_order
        elif old_parent_id == new_parent_id:
            sort_order = node.sort_order
        else:
            sort_order = self.store.next_sort_order(new_parent_id)

        node.parent_id = new_parent_id
        node.path = path
        node.depth = depth
        node.sort_order = sort_order
        self.session.flush()
        if new_sort_order is not None:
            self.store.make_room(new_parent_id, new_sort_order, exclude_id=node.id)

        affected = 1 if old_path != path else 0
        affected += self.store.rederive_subtree_paths(node, cancel_event)
        if old_parent_id != new_parent_id:
            self.check_cancelled(cancel_event, f"移动分类 {node.code} 的闭包表")
            self.closure.rebuild_for(node.id)

        return TreeMoveResult(
            category_id=node.id,
            old_parent_id=old_parent_id,
            new_parent_id=new_parent_id,
            categories_affected=affected,
        )

    # ==================== 复制 ====================

    def copy_category(
        self,
        category_id: int,
        new_parent_id: Optional[int] = None,
        include_descendants: bool = True,
        new_name: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeCopyResult:
        """复制节点（可含子树）到 new_parent_id 下

        副本编码为 原编码 + 后缀，冲突时追加序号；根副本名称为 new_name 或 原名称 + 后缀。

        Raises:
            ResourceNotFoundException: 源节点或目标父节点不存在
            CircularReferenceException: 复制到自身下
        """
        source = self.store.get_by_id(category_id)
        if new_parent_id is not None:
            if new_parent_id == source.id:
                raise Err.circular("不能将分类复制到自身下", category_id=source.id)
            self.store.get_by_id(new_parent_id)

        # 先取快照，目标在源子树内时不会复制新建的节点
        nodes = [source]
        if include_descendants:
            nodes.extend(self.navigator.get_descendants(source.id))
        snapshot = [self._snapshot(node) for node in nodes]

        id_mapping = {}
        warnings: List[str] = []
        with transaction_manager.transaction(session=self.session):
            for item in snapshot:
                self.check_cancelled(cancel_event, f"复制分类 {item['code']}")
                if item["id"] == source.id:
                    parent_id = new_parent_id
                    name = new_name or f"{item['name']}{self.settings.copy_name_suffix}"
                    sort_order = None
                else:
                    parent_id = id_mapping.get(item["parent_id"])
                    if parent_id is None:
                        warnings.append(f"分类 {item['code']} 的父分类未复制，已跳过")
                        continue
                    name = item["name"]
                    sort_order = item["sort_order"]

                copy = self.store.create(
                    name=name,
                    code=self._copy_code(item["code"]),
                    parent_id=parent_id,
                    sort_order=sort_order,
                    commit=False,
                    **item["fields"],
                )
                id_mapping[item["id"]] = copy.id
            self._verify()

        for warning in warnings:
            self.logger.warning(warning)
        self.logger.info(f"复制分类: id={source.id} -> {id_mapping[source.id]}, 共 {len(id_mapping)} 个节点")
        return TreeCopyResult(
            new_category_id=id_mapping[source.id],
            categories_copied=len(id_mapping),
            id_mapping=id_mapping,
            warnings=warnings,
        )

    def _copy_code(self, code: str) -> str:
        suffix = self.settings.copy_code_suffix
        base = f"{code}{suffix}"
        candidate = base
        sequence = 2
        while self.store.find_by_code(candidate) is not None:
            candidate = f"{base}{sequence}"
            sequence += 1
        return candidate

    @staticmethod
    def _snapshot(node: Category) -> dict:
        return {
            "id": node.id,
            "parent_id": node.parent_id,
            "name": node.name,
            "code": node.code,
            "sort_order": node.sort_order,
            "fields": {
                "description": node.description,
                "category_type": node.category_type,
                "category_level": node.category_level,
                "is_active": node.is_active,
                "allow_questions": node.allow_questions,
                "metadata_json": node.metadata_json,
                "curriculum_code": node.curriculum_code,
                "grade_level": node.grade_level,
                "subject": node.subject,
            },
        }

    # ==================== 删除 ====================

    def delete_category(
        self,
        category_id: int,
        strategy: ChildHandlingStrategy = ChildHandlingStrategy.PREVENT,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeDeleteResult:
        """按子节点处理策略删除节点

        Args:
            category_id: 要删除的节点
            strategy: 子节点处理策略
            cancel_event: 取消信号

        Raises:
            ResourceNotFoundException: 节点不存在
            HasChildrenException: PREVENT 策略下存在子节点
            HasAttachedContentException: 将被删除的节点仍挂有内容
        """
        strategy = ChildHandlingStrategy(strategy)
        node = self.store.get_by_id(category_id)
        children = self.store.find_children(node.id)
        if strategy == ChildHandlingStrategy.PREVENT and children:
            raise Err.has_children(
                f"分类 {node.code} 下存在 {len(children)} 个子分类，无法删除",
                details=[child.code for child in children],
                category_id=node.id,
            )

        result = TreeDeleteResult(category_id=node.id)
        with transaction_manager.transaction(session=self.session):
            if strategy == ChildHandlingStrategy.CASCADE_DELETE:
                self._cascade_delete(node, result, cancel_event)
            else:
                if strategy != ChildHandlingStrategy.PREVENT:
                    target_id = (
                        node.parent_id
                        if strategy == ChildHandlingStrategy.MOVE_CHILDREN_TO_PARENT
                        else None
                    )
                    self._reassign_content(node, target_id, result)
                    for child in children:
                        self.check_cancelled(cancel_event, f"重新挂接子分类 {child.code}")
                        self._move(child.id, target_id, None, cancel_event)
                        result.children_reassigned += 1
                self._ensure_no_content([node])
                self.store.soft_delete(node.id, commit=False)
                result.deleted_ids = [node.id]
                result.categories_deleted = 1
            self._verify()

        self.logger.info(
            f"删除分类: id={node.id}, 策略={strategy.value}, 删除 {result.categories_deleted} 个，"
            f"重新挂接子分类 {result.children_reassigned} 个"
        )
        return result

    def bulk_delete(
        self,
        category_ids: Iterable[int],
        strategy: ChildHandlingStrategy = ChildHandlingStrategy.PREVENT,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[TreeDeleteResult]:
        """在一个事务中按同一策略删除多个节点，任一项失败则全部回滚

        已被前面的级联删除一并删除的节点跳过。

        Raises:
            ResourceNotFoundException: 节点不存在
            HasChildrenException: PREVENT 策略下存在子节点
            HasAttachedContentException: 将被删除的节点仍挂有内容
        """
        results = []
        deleted = set()
        with transaction_manager.transaction(session=self.session):
            for category_id in category_ids:
                if category_id in deleted:
                    self.logger.debug(f"分类 {category_id} 已在本批次中删除，跳过")
                    continue
                self.check_cancelled(cancel_event, f"批量删除分类 {category_id}")
                result = self.delete_category(category_id, strategy, cancel_event)
                deleted.update(result.deleted_ids)
                results.append(result)

        self.logger.info(
            f"批量删除分类: {len(results)} 项，共删除 {sum(r.categories_deleted for r in results)} 个节点"
        )
        return results

    def _cascade_delete(
        self,
        node: Category,
        result: TreeDeleteResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        subtree = [node] + self.navigator.get_descendants(node.id)
        self._ensure_no_content(subtree)
        # 由深到浅
        ordered = sorted(subtree, key=lambda item: item.depth, reverse=True)
        batch = self.settings.closure_batch_size
        for start in range(0, len(ordered), batch):
            self.check_cancelled(cancel_event, f"级联删除分类 {node.code}")
            result.deleted_ids.extend(self.store.mark_deleted(ordered[start:start + batch]))
        result.categories_deleted = len(result.deleted_ids)

    def _reassign_content(self, node: Category, target_id: Optional[int], result: TreeDeleteResult) -> None:
        reassign = get_reassign_hook(self.content_hooks)
        if reassign is None or target_id is None:
            return
        moved = reassign(node.id, target_id)
        result.content_reassigned += moved or 0
        self.logger.debug(f"分类 {node.code} 的关联内容迁移到 {target_id}: {moved}")

    def _ensure_no_content(self, nodes: List[Category]) -> None:
        blocked = [node.code for node in nodes if self.content_hooks.has_attached_content(node.id)]
        if blocked:
            raise Err.has_attached_content(
                f"{len(blocked)} 个分类下存在关联内容，无法删除",
                details=blocked,
            )

    # ==================== 内部方法 ====================

    def _verify(self) -> None:
        if self.settings.verify_after_mutation:
            self.validator.ensure_valid()
