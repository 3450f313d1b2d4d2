"""
分类树服务 - 导入导出

导出为不含内部 ID 的嵌套结构（CategoryTreeExport），可序列化为 JSON；
导入时按编码匹配已有节点，冲突按 MergeStrategy 处理。
"""

import json
import threading
from typing import Any, List, Optional

from pydantic import ValidationError

from yexam.config import CategoryTreeSettings
from yexam.exceptions import Err, ErrorCode
from yexam.orm import transaction_manager

from ..enums import MergeStrategy
from ..schemas import CategoryExportNode, CategoryTreeExport, TreeImportResult
from ..tree_utils import build_tree_list
from .base import TreeComponent
from .closure import ClosureMaintainer
from .navigator import CategoryKey, TreeNavigator
from .store import CategoryStore


class TreeTransfer(TreeComponent):
    """分类树导入导出

    使用示例:
        transfer = TreeTransfer()
        data = transfer.export_tree(math.id)
        text = data.model_dump_json()

        result = transfer.import_tree(text, merge_strategy=MergeStrategy.CREATE_NEW)
        result.code_to_id["MATH"]
    """

    def __init__(
        self,
        store: CategoryStore = None,
        navigator: TreeNavigator = None,
        closure: ClosureMaintainer = None,
        settings: CategoryTreeSettings = None,
        logger=None,
    ):
        super().__init__(settings, logger)
        self.closure = closure or ClosureMaintainer(settings=self.settings)
        self.store = store or CategoryStore(closure=self.closure, settings=self.settings)
        self.navigator = navigator or TreeNavigator(closure=self.closure, settings=self.settings)

    # ==================== 导出 ====================

    def export_tree(self, root: Optional[CategoryKey] = None) -> CategoryTreeExport:
        """导出子树，root 为 None 时导出整个森林"""
        if root is not None:
            node = self.navigator.get_node(root)
            if node is None:
                return CategoryTreeExport(version=self.settings.export_format_version)
            nodes = [node] + self.navigator.get_descendants(node.id)
        else:
            node = None
            nodes = self.query().tree_order().all(self.session)

        tree = build_tree_list(
            [self._to_dict(item) for item in nodes],
            sort_key=lambda item: (item["sort_order"], item["name"], item["id"]),
        )
        if node is not None:
            tree = [item for item in tree if item["id"] == node.id]

        export = CategoryTreeExport(
            version=self.settings.export_format_version,
            categories=[self._to_export_node(item) for item in tree],
        )
        self.logger.info(f"导出分类树: root={root}, 共 {export.count_nodes()} 个节点")
        return export

    @staticmethod
    def _to_dict(node) -> dict:
        return {
            "id": node.id,
            "parent_id": node.parent_id,
            "name": node.name,
            "code": node.code,
            "description": node.description,
            "category_type": node.category_type,
            "category_level": node.category_level,
            "is_active": node.is_active,
            "allow_questions": node.allow_questions,
            "sort_order": node.sort_order,
        }

    def _to_export_node(self, item: dict) -> CategoryExportNode:
        fields = {key: value for key, value in item.items() if key not in ("id", "parent_id", "children")}
        return CategoryExportNode(
            **fields,
            children=[self._to_export_node(child) for child in item["children"]],
        )

    # ==================== 导入 ====================

    def import_tree(
        self,
        data: Any,
        parent_id: Optional[int] = None,
        merge_strategy: MergeStrategy = MergeStrategy.SKIP,
        cancel_event: Optional[threading.Event] = None,
    ) -> TreeImportResult:
        """导入分类树

        Args:
            data: CategoryTreeExport、JSON 字符串、字典或节点列表
            parent_id: 导入到该节点下，None 表示根级
            merge_strategy: 编码冲突时的处理策略
            cancel_event: 取消信号

        Raises:
            ValidationException: 数据格式错误
            ResourceNotFoundException: parent_id 不存在
            OperationCancelledException: 导入被取消，已整体回滚
        """
        merge_strategy = MergeStrategy(merge_strategy)
        nodes = self._coerce_nodes(data)
        if parent_id is not None:
            self.store.get_by_id(parent_id)

        result = TreeImportResult()
        with transaction_manager.transaction(session=self.session):
            for node in nodes:
                self._import_node(node, parent_id, merge_strategy, result, cancel_event)

        for warning in result.warnings:
            self.logger.warning(warning)
        self.logger.info(
            f"导入分类树: 新建 {result.created}，更新 {result.updated}，跳过 {result.skipped}"
        )
        return result

    def _import_node(
        self,
        item: CategoryExportNode,
        parent_id: Optional[int],
        merge_strategy: MergeStrategy,
        result: TreeImportResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        self.check_cancelled(cancel_event, f"导入分类 {item.code}")

        existing = None
        if merge_strategy != MergeStrategy.CREATE_NEW:
            existing = self.store.find_by_code(item.code)

        if existing is not None and merge_strategy == MergeStrategy.SKIP:
            target_id = existing.id
            result.skipped += 1
            if existing.parent_id != parent_id:
                result.warnings.append(f"编码 {item.code} 已存在于其他位置，已跳过")
        elif existing is not None:
            self.store.update(
                existing.id,
                version=existing.ver,
                commit=False,
                name=item.name,
                description=item.description,
            )
            target_id = existing.id
            result.updated += 1
        else:
            created = self.store.create(
                name=item.name,
                code=item.code,
                parent_id=parent_id,
                sort_order=item.sort_order if item.sort_order > 0 else None,
                commit=False,
                check_code=merge_strategy != MergeStrategy.CREATE_NEW,
                description=item.description,
                category_type=item.category_type,
                category_level=item.category_level,
                is_active=item.is_active,
                allow_questions=item.allow_questions,
            )
            target_id = created.id
            result.created += 1

        result.code_to_id[item.code] = target_id
        for child in item.children:
            self._import_node(child, target_id, merge_strategy, result, cancel_event)

    def _coerce_nodes(self, data: Any) -> List[CategoryExportNode]:
        """把各种输入格式统一为节点列表"""
        try:
            if isinstance(data, (str, bytes)):
                data = json.loads(data)
            if isinstance(data, CategoryTreeExport):
                return list(data.categories)
            if isinstance(data, CategoryExportNode):
                return [data]
            if isinstance(data, dict):
                if "categories" in data:
                    return list(CategoryTreeExport.model_validate(data).categories)
                return [CategoryExportNode.model_validate(data)]
            if isinstance(data, list):
                return [
                    item if isinstance(item, CategoryExportNode) else CategoryExportNode.model_validate(item)
                    for item in data
                ]
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise Err.invalid("导入数据不是有效的 JSON", code=ErrorCode.VALIDATION_ERROR, details=[str(e)])
        except ValidationError as e:
            raise Err.invalid(
                "导入数据格式错误",
                code=ErrorCode.VALIDATION_ERROR,
                details=[
                    f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
                    for error in e.errors()
                ],
            )
        raise Err.invalid(
            f"不支持的导入数据类型: {type(data).__name__}",
            code=ErrorCode.VALIDATION_ERROR,
        )
