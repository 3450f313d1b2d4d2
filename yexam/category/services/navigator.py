"""
分类树服务 - 只读导航

根、子节点、子孙、祖先、面包屑、子树、统计与搜索。
所有方法只读，已删除节点对导航不可见；节点参数既可以是 ID 也可以是编码。
"""

from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Union

from sqlalchemy import func

from yexam.config import CategoryTreeSettings
from yexam.orm import Page

from ..enums import CategoryLevel, CategoryType
from ..models import Category
from ..schemas import (
    Breadcrumb,
    CategoryFilter,
    CategoryTreeNode,
    TreeSearchCriteria,
    TreeStatistics,
)
from ..tree_utils import build_tree_list
from .base import TreeComponent
from .closure import ClosureMaintainer

CategoryKey = Union[int, str, Category]


class TreeNavigator(TreeComponent):
    """分类树只读导航

    使用示例:
        navigator = TreeNavigator()
        roots = navigator.get_roots()
        crumbs = navigator.get_breadcrumbs("MATH-ALG-LINEAR")
        tree = navigator.get_subtree(math.id, max_depth=2)
        stats = navigator.get_statistics()
    """

    def __init__(
        self,
        closure: ClosureMaintainer = None,
        settings: CategoryTreeSettings = None,
        logger=None,
    ):
        super().__init__(settings, logger)
        self.closure = closure or ClosureMaintainer(settings=self.settings)

    # ==================== 节点 ====================

    def get_node(self, key: Optional[CategoryKey]) -> Optional[Category]:
        """按 ID、编码或对象获取未删除的节点，不存在返回 None"""
        if key is None:
            return None
        if isinstance(key, Category):
            return None if key.is_deleted else key
        if isinstance(key, str):
            condition = self.category_model.code == key
        else:
            condition = self.category_model.id == key
        return self.session.scalars(
            self.query().where(condition).statement().order_by(self.category_model.id)
        ).first()

    def get_roots(self) -> List[Category]:
        """所有根节点，按 sort_order、name 排序"""
        return self.query().where_parent(None).sibling_order().all(self.session)

    def get_children(self, key: Optional[CategoryKey] = None) -> List[Category]:
        """直接子节点；key 为 None 时返回根节点"""
        if key is None:
            return self.get_roots()
        node = self.get_node(key)
        if node is None:
            return []
        return self.query().where_parent(node.id).sibling_order().all(self.session)

    def get_descendants(self, key: CategoryKey, use_closure: bool = False) -> List[Category]:
        """全部子孙（不含自身），自上而下逐层排列

        Args:
            key: 节点 ID 或编码
            use_closure: 通过闭包表查询，默认按物化路径前缀查询
        """
        node = self.get_node(key)
        if node is None:
            return []
        query = self.query()
        if use_closure:
            query.where_ids(self.closure.get_descendant_ids(node.id))
        else:
            query.descendants_of(node)
        return query.tree_order().all(self.session)

    def get_ancestors(self, key: CategoryKey) -> List[Category]:
        """祖先链（根在前，不含自身）"""
        node = self.get_node(key)
        if node is None or not node.path_ids:
            return []
        return self.query().where_ids(node.path_ids).tree_order().all(self.session)

    def get_breadcrumbs(self, key: CategoryKey) -> List[Breadcrumb]:
        """面包屑：祖先链 + 自身"""
        node = self.get_node(key)
        if node is None:
            return []
        return [
            Breadcrumb(id=item.id, name=item.name, code=item.code, depth=item.depth)
            for item in self.get_ancestors(node) + [node]
        ]

    def get_subtree(self, key: CategoryKey, max_depth: Optional[int] = None) -> Optional[CategoryTreeNode]:
        """嵌套子树

        Args:
            key: 子树根节点
            max_depth: 相对子树根的最大深度，0 只返回根节点，None 不限制

        Returns:
            子树根节点，节点不存在返回 None
        """
        node = self.get_node(key)
        if node is None:
            return None
        nodes = [node]
        if max_depth is None or max_depth > 0:
            query = self.query().descendants_of(node)
            if max_depth is not None:
                query.max_depth(node.depth + max_depth)
            nodes.extend(query.tree_order().all(self.session))

        tree = build_tree_list(
            [self._to_tree_dict(item) for item in nodes],
            sort_key=lambda item: (item["sort_order"], item["name"], item["id"]),
        )
        root = next(item for item in tree if item["id"] == node.id)
        return CategoryTreeNode.model_validate(root)

    # ==================== 判断 ====================

    def would_create_cycle(self, category_id: int, candidate_parent_id: Optional[int]) -> bool:
        """把 category_id 挂到 candidate_parent_id 下是否会形成循环

        从候选父节点沿 parent_id 向上回溯，遇到 category_id 即为循环。
        回溯超过跳数上限时按循环处理。
        """
        if candidate_parent_id is None:
            return False
        if candidate_parent_id == category_id:
            return True
        candidate = self.get_node(candidate_parent_id)
        if candidate is None:
            return False

        max_hops = max(self.settings.max_cycle_hops, candidate.depth + 1)
        current = candidate.parent_id
        hops = 0
        while current is not None:
            if current == category_id:
                return True
            hops += 1
            if hops > max_hops:
                self.logger.warning(
                    f"循环检测超过最大跳数 {max_hops}: category_id={category_id}, "
                    f"candidate_parent_id={candidate_parent_id}"
                )
                return True
            current = self.session.scalar(
                self.query()
                .where(self.category_model.id == current)
                .columns_statement(self.category_model.parent_id)
            )
        return False

    def is_descendant_of(self, key: CategoryKey, ancestor_key: CategoryKey) -> bool:
        node = self.get_node(key)
        ancestor = self.get_node(ancestor_key)
        if node is None or ancestor is None:
            return False
        return ancestor.id in node.path_ids

    def get_depth(self, key: CategoryKey) -> Optional[int]:
        node = self.get_node(key)
        return None if node is None else node.depth

    def get_path_names(self, key: CategoryKey, separator: str = " > ") -> str:
        """名称路径，如 "数学 > 代数 > 线性方程" """
        return separator.join(crumb.name for crumb in self.get_breadcrumbs(key))

    def find_by_name_path(self, path: Union[str, List[str]], separator: str = " > ") -> Optional[Category]:
        """按名称路径查找节点，get_path_names 的逆操作

        从根节点开始逐层按名称匹配子节点，同级重名时取排序靠前的一个。

        Args:
            path: "数学 > 代数 > 线性方程" 或名称列表
            separator: 名称分隔符

        Returns:
            匹配的节点，路径为空或任一层不匹配时返回 None
        """
        names = path.split(separator) if isinstance(path, str) else list(path)
        names = [name.strip() for name in names if name and name.strip()]
        if not names:
            return None

        node = None
        for name in names:
            candidates = self.get_roots() if node is None else self.get_children(node)
            node = next((item for item in candidates if item.name == name), None)
            if node is None:
                return None
        return node

    def get_siblings(self, key: CategoryKey) -> List[Category]:
        """同级节点（不含自身），按 sort_order、name 排序；根节点的同级为其他根节点"""
        node = self.get_node(key)
        if node is None:
            return []
        return [item for item in self.get_children(node.parent_id) if item.id != node.id]

    # ==================== 统计 ====================

    def get_statistics(self, root: Optional[CategoryKey] = None) -> TreeStatistics:
        """树统计

        Args:
            root: 只统计该节点的子树（含自身），None 统计全部

        average_children_per_node 为有子节点的节点的平均子节点数。
        """
        columns = (
            self.category_model.id,
            self.category_model.parent_id,
            self.category_model.depth,
            self.category_model.created_at,
            self.category_model.updated_at,
        )
        if root is not None:
            node = self.get_node(root)
            if node is None:
                return TreeStatistics()
            rows = self.session.execute(
                self.query().within_subtree(node).columns_statement(*columns)
            ).all()
            base_depth = node.depth
        else:
            rows = self.session.execute(self.query().columns_statement(*columns)).all()
            base_depth = 0
        if not rows:
            return TreeStatistics()

        ids = {row.id for row in rows}
        child_counts = Counter(row.parent_id for row in rows if row.parent_id in ids)
        depths = [row.depth - base_depth for row in rows]
        modified = [row.updated_at or row.created_at for row in rows]
        modified = [value for value in modified if value is not None]

        return TreeStatistics(
            total_categories=len(rows),
            max_depth=max(depths),
            root_categories=sum(1 for row in rows if row.parent_id not in ids),
            leaf_categories=sum(1 for row in rows if row.id not in child_counts),
            average_children_per_node=(
                sum(child_counts.values()) / len(child_counts) if child_counts else 0.0
            ),
            average_depth=sum(depths) / len(depths),
            last_modified=max(modified) if modified else None,
        )

    def get_type_distribution(self, root: Optional[CategoryKey] = None) -> Dict[CategoryType, int]:
        """按分类类型计数"""
        return self._distribution(self.category_model.category_type, root, CategoryType)

    def get_level_distribution(self, root: Optional[CategoryKey] = None) -> Dict[CategoryLevel, int]:
        """按分类级别计数"""
        return self._distribution(self.category_model.category_level, root, CategoryLevel)

    def get_depth_distribution(self, root: Optional[CategoryKey] = None) -> Dict[int, int]:
        """按树深度计数"""
        return self._distribution(self.category_model.depth, root)

    def get_recently_modified(self, since: datetime, max_results: int = 50) -> List[Category]:
        """since 之后创建或修改的节点，最近的在前"""
        return (
            self.query()
            .modified_since(since)
            .recent_order()
            .all(self.session, limit=max_results)
        )

    # ==================== 搜索 ====================

    def search(self, criteria: TreeSearchCriteria) -> List[Category]:
        """按名称、编码、描述模糊搜索，可限定类型、级别与子树"""
        query = self.query().search(criteria.search_term)
        if criteria.category_type is not None:
            query.where_type(criteria.category_type)
        if criteria.category_level is not None:
            query.where_level(criteria.category_level)
        if criteria.root_id is not None:
            root = self.get_node(criteria.root_id)
            if root is None:
                return []
            query.within_subtree(root)
        if not criteria.include_inactive:
            query.where_active(True)
        limit = criteria.max_results or self.settings.max_search_results
        return query.order_by().all(self.session, limit=limit)

    def get_filtered(self, criteria: CategoryFilter) -> Page:
        """分页筛选"""
        return (
            self.query()
            .apply_filter(criteria)
            .order_by(criteria.sort_by, criteria.sort_descending)
            .paginate(
                self.session,
                page=criteria.page,
                page_size=criteria.page_size,
                max_page_size=self.settings.max_page_size,
            )
        )

    # ==================== 内部方法 ====================

    def _distribution(self, column, root: Optional[CategoryKey], enum_cls=None) -> dict:
        query = self.query()
        if root is not None:
            node = self.get_node(root)
            if node is None:
                return {}
            query.within_subtree(node)
        rows = self.session.execute(
            query.columns_statement(column, func.count(self.category_model.id)).group_by(column)
        ).all()
        result = {}
        for value, count in rows:
            key = value
            if enum_cls is not None:
                try:
                    key = enum_cls(value)
                except ValueError:
                    self.logger.warning(f"未知的枚举值 {enum_cls.__name__}={value}")
            result[key] = count
        return result

    @staticmethod
    def _to_tree_dict(node: Category) -> dict:
        return {
            "id": node.id,
            "name": node.name,
            "code": node.code,
            "description": node.description,
            "parent_id": node.parent_id,
            "depth": node.depth,
            "sort_order": node.sort_order,
            "category_type": node.category_type,
            "category_level": node.category_level,
            "is_active": node.is_active,
            "allow_questions": node.allow_questions,
        }
