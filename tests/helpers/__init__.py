"""测试辅助工具模块

提供测试专用的辅助函数，避免在核心代码中添加测试专用方法。
"""

from .tree_helpers import (
    active_nodes,
    closure_rows,
    ancestor_chain,
    expected_closure,
    assert_tree_consistent,
)

__all__ = [
    # 分类树辅助
    'active_nodes',
    'closure_rows',
    'ancestor_chain',
    'expected_closure',
    'assert_tree_consistent',
]
