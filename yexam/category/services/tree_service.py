"""
分类树服务 - 门面

把存储、导航、闭包表、校验、结构变更、导入导出组合为一个入口。
各组件共享同一份配置与闭包表维护器，也可以通过属性单独使用。
"""

import threading
from typing import List, Optional

from yexam.config import CategoryTreeSettings
from yexam.log import get_logger

from ..enums import ChildHandlingStrategy, MergeStrategy
from ..hooks import AttachedContentHooks
from ..models import Category
from ..schemas import (
    Breadcrumb,
    CategoryTreeExport,
    CategoryTreeNode,
    TreeCopyResult,
    TreeDeleteResult,
    TreeImportResult,
    TreeMoveResult,
    TreeRepairResult,
    TreeStatistics,
    TreeValidationReport,
)
from .closure import ClosureMaintainer
from .mutator import TreeMutator
from .navigator import CategoryKey, TreeNavigator
from .store import CategoryStore
from .transfer import TreeTransfer
from .validator import IntegrityValidator


class CategoryTreeService:
    """分类树服务

    使用示例:
        from yexam.category import CategoryTreeService, ChildHandlingStrategy

        service = CategoryTreeService(content_hooks=QuestionContentHooks())

        math = service.create_category(name="数学", code="MATH")
        algebra = service.create_category(name="代数", code="MATH-ALG", parent_id=math.id)

        service.move_category(algebra.id, new_parent_id=None)
        service.delete_category(math.id, ChildHandlingStrategy.CASCADE_DELETE)

        report = service.validate()
        if not report.is_valid:
            service.repair()
    """

    def __init__(
        self,
        settings: CategoryTreeSettings = None,
        content_hooks: AttachedContentHooks = None,
        logger=None,
    ):
        self.settings = settings or CategoryTreeSettings()
        self.logger = logger or get_logger(__name__)

        self.closure = ClosureMaintainer(settings=self.settings)
        self.store = CategoryStore(closure=self.closure, settings=self.settings)
        self.navigator = TreeNavigator(closure=self.closure, settings=self.settings)
        self.validator = IntegrityValidator(closure=self.closure, store=self.store, settings=self.settings)
        self.mutator = TreeMutator(
            store=self.store,
            navigator=self.navigator,
            validator=self.validator,
            closure=self.closure,
            content_hooks=content_hooks,
            settings=self.settings,
        )
        self.transfer = TreeTransfer(
            store=self.store,
            navigator=self.navigator,
            closure=self.closure,
            settings=self.settings,
        )

    # ==================== 节点 ====================

    def create_category(
        self,
        name: str,
        code: str,
        parent_id: Optional[int] = None,
        sort_order: Optional[int] = None,
        **fields,
    ) -> Category:
        return self.store.create(name=name, code=code, parent_id=parent_id, sort_order=sort_order, **fields)

    def get_category(self, category_id: int) -> Category:
        return self.store.get_by_id(category_id)

    def get_category_by_code(self, code: str) -> Category:
        return self.store.get_by_code(code)

    def update_category(self, category_id: int, version: int, **fields) -> Category:
        return self.store.update(category_id, version=version, **fields)

    # ==================== 导航 ====================

    def get_roots(self) -> List[Category]:
        return self.navigator.get_roots()

    def get_children(self, key: Optional[CategoryKey] = None) -> List[Category]:
        return self.navigator.get_children(key)

    def get_descendants(self, key: CategoryKey, use_closure: bool = False) -> List[Category]:
        return self.navigator.get_descendants(key, use_closure=use_closure)

    def get_ancestors(self, key: CategoryKey) -> List[Category]:
        return self.navigator.get_ancestors(key)

    def get_breadcrumbs(self, key: CategoryKey) -> List[Breadcrumb]:
        return self.navigator.get_breadcrumbs(key)

    def get_siblings(self, key: CategoryKey) -> List[Category]:
        return self.navigator.get_siblings(key)

    def find_by_name_path(self, path, separator: str = " > ") -> Optional[Category]:
        return self.navigator.find_by_name_path(path, separator)

    def get_subtree(self, key: CategoryKey, max_depth: Optional[int] = None) -> Optional[CategoryTreeNode]:
        return self.navigator.get_subtree(key, max_depth=max_depth)

    def get_statistics(self, root: Optional[CategoryKey] = None) -> TreeStatistics:
        return self.navigator.get_statistics(root)

    # ==================== 结构变更 ====================

    def move_category(
        self,
        category_id: int,
        new_parent_id: Optional[int] = None,
        new_sort_order: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeMoveResult:
        return self.mutator.move_category(category_id, new_parent_id, new_sort_order, cancel_event)

    def copy_category(
        self,
        category_id: int,
        new_parent_id: Optional[int] = None,
        include_descendants: bool = True,
        new_name: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeCopyResult:
        return self.mutator.copy_category(
            category_id, new_parent_id, include_descendants, new_name, cancel_event
        )

    def delete_category(
        self,
        category_id: int,
        strategy: ChildHandlingStrategy = ChildHandlingStrategy.PREVENT,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeDeleteResult:
        return self.mutator.delete_category(category_id, strategy, cancel_event)

    def bulk_move(self, moves, cancel_event: Optional[threading.Event] = None) -> List[TreeMoveResult]:
        return self.mutator.bulk_move(moves, cancel_event)

    def bulk_delete(
        self,
        category_ids,
        strategy: ChildHandlingStrategy = ChildHandlingStrategy.PREVENT,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[TreeDeleteResult]:
        return self.mutator.bulk_delete(category_ids, strategy, cancel_event)

    # ==================== 导入导出 ====================

    def export_tree(self, root: Optional[CategoryKey] = None) -> CategoryTreeExport:
        return self.transfer.export_tree(root)

    def import_tree(
        self,
        data,
        parent_id: Optional[int] = None,
        merge_strategy: MergeStrategy = MergeStrategy.SKIP,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeImportResult:
        return self.transfer.import_tree(data, parent_id, merge_strategy, cancel_event)

    # ==================== 维护 ====================

    def validate(self) -> TreeValidationReport:
        return self.validator.validate_tree_integrity()

    def repair(self) -> TreeRepairResult:
        return self.validator.repair()

    def rebuild_closure(self, cancel_event: Optional[threading.Event] = None) -> int:
        return self.closure.rebuild_all(cancel_event)

    def rebuild_paths(self, cancel_event: Optional[threading.Event] = None) -> int:
        return self.store.rebuild_all_paths(cancel_event)

    def compact_sort_orders(self, parent_id: Optional[int] = None, step: Optional[int] = None) -> int:
        return self.closure.compact_sort_orders(parent_id, step)
