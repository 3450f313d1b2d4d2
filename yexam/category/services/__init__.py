"""
分类树服务模块

- CategoryStore: 节点增删改查与 path/depth 推导
- TreeNavigator: 只读导航、统计、搜索
- ClosureMaintainer: 闭包表维护与排序号整理
- IntegrityValidator: 完整性校验与修复
- TreeMutator: 移动、复制、删除
- TreeTransfer: 导入导出
- CategoryTreeService: 组合以上组件的门面
"""

from .base import TreeComponent
from .closure import ClosureMaintainer
from .store import CategoryStore
from .navigator import CategoryKey, TreeNavigator
from .validator import IntegrityValidator
from .mutator import TreeMutator
from .transfer import TreeTransfer
from .tree_service import CategoryTreeService

__all__ = [
    "TreeComponent",
    "ClosureMaintainer",
    "CategoryStore",
    "CategoryKey",
    "TreeNavigator",
    "IntegrityValidator",
    "TreeMutator",
    "TreeTransfer",
    "CategoryTreeService",
]
