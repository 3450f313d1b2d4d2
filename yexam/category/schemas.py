"""分类树数据结构

服务层的入参与返回结果，基于 Pydantic。
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import Field

from yexam.orm import BaseSchemas

from .enums import CategoryLevel, CategoryType, IssueSeverity, IssueType


# ==================== 导航 ====================

class Breadcrumb(BaseSchemas):
    """面包屑项"""
    id: int
    name: str
    code: str
    depth: int


class CategoryTreeNode(BaseSchemas):
    """子树中的一个节点（含已排序的子节点列表）"""
    id: int
    name: str
    code: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    depth: int = 0
    sort_order: int = 0
    category_type: CategoryType = CategoryType.SUBJECT
    category_level: CategoryLevel = CategoryLevel.LEVEL1
    is_active: bool = True
    allow_questions: bool = True
    children: List[CategoryTreeNode] = Field(default_factory=list)

    def iter_nodes(self):
        """先序遍历自身及全部子孙"""
        yield self
        for child in self.children:
            yield from child.iter_nodes()


class TreeStatistics(BaseSchemas):
    """树统计信息

    max_depth 在指定根节点时为相对根节点的深度。
    """
    total_categories: int = 0
    max_depth: int = 0
    root_categories: int = 0
    leaf_categories: int = 0
    average_children_per_node: float = 0.0
    average_depth: float = 0.0
    last_modified: Optional[datetime] = None


class TreeSearchCriteria(BaseSchemas):
    """树内搜索条件"""
    search_term: Optional[str] = None
    category_type: Optional[CategoryType] = None
    category_level: Optional[CategoryLevel] = None
    root_id: Optional[int] = Field(default=None, description="只在该节点的子树内搜索（含自身）")
    include_inactive: bool = False
    max_results: Optional[int] = Field(default=None, ge=1)


class CategoryFilter(BaseSchemas):
    """分页筛选条件"""
    parent_id: Optional[int] = None
    roots_only: bool = False
    category_type: Optional[CategoryType] = None
    category_level: Optional[CategoryLevel] = None
    is_active: Optional[bool] = None
    allow_questions: Optional[bool] = None
    subject: Optional[str] = None
    grade_level: Optional[str] = None
    curriculum_code: Optional[str] = None
    search_term: Optional[str] = None
    sort_by: Optional[str] = None
    sort_descending: bool = False
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)


# ==================== 结构变更结果 ====================

class CategoryMoveItem(BaseSchemas):
    """批量移动中的一项"""

    category_id: int
    new_parent_id: Optional[int] = None
    new_sort_order: Optional[int] = None


class TreeMoveResult(BaseSchemas):
    category_id: int
    old_parent_id: Optional[int] = None
    new_parent_id: Optional[int] = None
    categories_affected: int = 0
    warnings: List[str] = Field(default_factory=list)


class TreeCopyResult(BaseSchemas):
    new_category_id: int
    categories_copied: int = 0
    id_mapping: Dict[int, int] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class TreeDeleteResult(BaseSchemas):
    category_id: int
    categories_deleted: int = 0
    children_reassigned: int = 0
    content_reassigned: int = 0
    deleted_ids: List[int] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ==================== 完整性校验 ====================

class TreeValidationIssue(BaseSchemas):
    issue_type: IssueType
    description: str
    category_id: Optional[int] = None
    severity: IssueSeverity = IssueSeverity.ERROR


class TreeValidationReport(BaseSchemas):
    is_valid: bool = True
    issues: List[TreeValidationIssue] = Field(default_factory=list)
    orphaned_categories: List[int] = Field(default_factory=list)
    circular_references: List[int] = Field(default_factory=list)
    invalid_paths: List[int] = Field(default_factory=list)
    # (ancestor_id, descendant_id, distance)
    invalid_closure_entries: List[Tuple[int, int, int]] = Field(default_factory=list)
    missing_closure_entries: List[Tuple[int, int, int]] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=datetime.now)

    @property
    def issue_count(self) -> int:
        return len(self.issues)


class TreeRepairResult(BaseSchemas):
    orphans_reparented: int = 0
    paths_fixed: int = 0
    closure_rows_purged: int = 0
    closure_rows_added: int = 0
    warnings: List[str] = Field(default_factory=list)


# ==================== 导入导出 ====================

class CategoryExportNode(BaseSchemas):
    """可移植的节点表示，不含内部 ID"""
    name: str
    code: str
    description: Optional[str] = None
    category_type: CategoryType = CategoryType.SUBJECT
    category_level: CategoryLevel = CategoryLevel.LEVEL1
    is_active: bool = True
    allow_questions: bool = True
    sort_order: int = 0
    children: List[CategoryExportNode] = Field(default_factory=list)


class CategoryTreeExport(BaseSchemas):
    version: str = "1.0"
    exported_at: datetime = Field(default_factory=datetime.now)
    categories: List[CategoryExportNode] = Field(default_factory=list)

    def count_nodes(self) -> int:
        def _count(nodes):
            return sum(1 + _count(n.children) for n in nodes)
        return _count(self.categories)


class TreeImportResult(BaseSchemas):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    code_to_id: Dict[str, int] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
