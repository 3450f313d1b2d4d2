"""
题库分类树模块

分类节点以邻接表 (parent_id) 为准，同时维护物化路径 (path/depth) 与闭包表，
支持导航、移动、复制、删除、完整性校验与修复、导入导出。

使用示例:
    from yexam.orm import init_database, create_tables
    from yexam.category import CategoryTreeService, CategoryType

    init_database("sqlite:///./exam.db")
    create_tables()

    service = CategoryTreeService()
    math = service.create_category(name="数学", code="MATH", category_type=CategoryType.SUBJECT)
    service.get_breadcrumbs(math.id)
"""

from .enums import (
    CategoryType,
    CategoryLevel,
    LifecycleState,
    ChildHandlingStrategy,
    MergeStrategy,
    IssueSeverity,
    IssueType,
)
from .models import Category, CategoryClosure
from .schemas import (
    Breadcrumb,
    CategoryTreeNode,
    TreeStatistics,
    TreeSearchCriteria,
    CategoryFilter,
    CategoryMoveItem,
    TreeMoveResult,
    TreeCopyResult,
    TreeDeleteResult,
    TreeValidationIssue,
    TreeValidationReport,
    TreeRepairResult,
    CategoryExportNode,
    CategoryTreeExport,
    TreeImportResult,
)
from .query import CategoryQuery, escape_like
from .hooks import AttachedContentHooks, NoAttachedContent
from .tree_utils import (
    ROOT_PATH,
    encode_path,
    decode_path,
    child_path,
    build_tree_list,
    flatten_tree,
)
from .services import (
    TreeComponent,
    ClosureMaintainer,
    CategoryStore,
    TreeNavigator,
    IntegrityValidator,
    TreeMutator,
    TreeTransfer,
    CategoryTreeService,
)

__all__ = [
    # 枚举
    "CategoryType",
    "CategoryLevel",
    "LifecycleState",
    "ChildHandlingStrategy",
    "MergeStrategy",
    "IssueSeverity",
    "IssueType",
    # 模型
    "Category",
    "CategoryClosure",
    # 数据结构
    "Breadcrumb",
    "CategoryTreeNode",
    "TreeStatistics",
    "TreeSearchCriteria",
    "CategoryFilter",
    "CategoryMoveItem",
    "TreeMoveResult",
    "TreeCopyResult",
    "TreeDeleteResult",
    "TreeValidationIssue",
    "TreeValidationReport",
    "TreeRepairResult",
    "CategoryExportNode",
    "CategoryTreeExport",
    "TreeImportResult",
    # 查询
    "CategoryQuery",
    "escape_like",
    # 钩子
    "AttachedContentHooks",
    "NoAttachedContent",
    # 路径工具
    "ROOT_PATH",
    "encode_path",
    "decode_path",
    "child_path",
    "build_tree_list",
    "flatten_tree",
    # 服务
    "TreeComponent",
    "ClosureMaintainer",
    "CategoryStore",
    "TreeNavigator",
    "IntegrityValidator",
    "TreeMutator",
    "TreeTransfer",
    "CategoryTreeService",
]
