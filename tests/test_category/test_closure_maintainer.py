"""ClosureMaintainer 测试

测试闭包表的增量维护、全量重建与同级排序号整理。
"""

import threading

import pytest
from sqlalchemy import delete

from yexam.category import Category, CategoryClosure, ClosureMaintainer
from yexam.config import CategoryTreeSettings
from yexam.exceptions import OperationCancelledException

from tests.helpers import closure_rows, expected_closure


class TestClosureQueries:
    """闭包表查询测试"""

    def test_rows_match_parent_links(self, service, session_scope, sample_tree):
        rows = closure_rows(session_scope)

        assert rows == expected_closure(session_scope)
        assert len(rows) == 14

    def test_ancestor_ids(self, service, sample_tree):
        assert service.closure.get_ancestor_ids(sample_tree["MATH-ALG-LIN"]) == [
            sample_tree["MATH"], sample_tree["MATH-ALG"]
        ]
        assert service.closure.get_ancestor_ids(sample_tree["MATH"]) == []

    def test_descendant_ids(self, service, sample_tree):
        assert service.closure.get_descendant_ids(sample_tree["MATH"]) == [
            sample_tree["MATH-ALG"],
            sample_tree["MATH-GEO"],
            sample_tree["MATH-ALG-LIN"],
            sample_tree["MATH-ALG-QUAD"],
        ]


class TestRebuild:
    """全量重建测试"""

    def test_rebuild_after_wipe(self, service, session_scope, sample_tree):
        session_scope.execute(delete(CategoryClosure))
        session_scope.commit()
        assert closure_rows(session_scope) == set()

        written = service.closure.rebuild_all()

        assert written == 14
        assert closure_rows(session_scope) == expected_closure(session_scope)

    def test_rebuild_is_idempotent(self, service, session_scope, sample_tree):
        before = closure_rows(session_scope)

        service.closure.rebuild_all()
        first = closure_rows(session_scope)
        service.closure.rebuild_all()
        second = closure_rows(session_scope)

        assert before == first == second

    def test_rebuild_in_small_batches(self, session_scope, sample_tree):
        closure = ClosureMaintainer(settings=CategoryTreeSettings(closure_batch_size=2))

        assert closure.rebuild_all() == 14
        assert closure_rows(session_scope) == expected_closure(session_scope)

    def test_rebuild_skips_deleted_and_cycles(self, service, session_scope, sample_tree):
        """已删除节点不写入；循环中的节点只写自身行"""
        service.store.soft_delete(sample_tree["MATH-GEO"])
        math = session_scope.get(Category, sample_tree["MATH"])
        math.parent_id = sample_tree["MATH-ALG"]
        session_scope.commit()

        service.closure.rebuild_all()

        rows = closure_rows(session_scope)
        assert not any(sample_tree["MATH-GEO"] in (a, d) for a, d, _ in rows)
        assert (sample_tree["MATH"], sample_tree["MATH"], 0) in rows
        assert (sample_tree["MATH-ALG"], sample_tree["MATH-ALG"], 0) in rows
        assert (sample_tree["MATH"], sample_tree["MATH-ALG"], 1) not in rows
        assert (sample_tree["SCI"], sample_tree["SCI-PHY"], 1) in rows

    def test_rebuild_cancelled_rolls_back(self, session_scope, sample_tree):
        closure = ClosureMaintainer(settings=CategoryTreeSettings(closure_batch_size=2))
        before = closure_rows(session_scope)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelledException):
            closure.rebuild_all(cancel_event=cancel)

        assert closure_rows(session_scope) == before

    def test_rebuild_for_moved_subtree(self, service, session_scope, sample_tree):
        """直接修改 parent_id 后按子树重建"""
        alg = session_scope.get(Category, sample_tree["MATH-ALG"])
        alg.parent_id = sample_tree["SCI"]
        session_scope.flush()

        service.closure.rebuild_for(alg.id)
        session_scope.commit()

        assert closure_rows(session_scope) == expected_closure(session_scope)

    def test_rebuild_for_missing_node(self, service, sample_tree):
        assert service.closure.rebuild_for(999) == 0


class TestCompactSortOrders:
    """排序号整理测试"""

    def test_compact(self, service, sample_tree):
        changed = service.closure.compact_sort_orders(sample_tree["MATH"])

        assert changed == 2
        assert [c.sort_order for c in service.get_children("MATH")] == [10, 20]
        assert service.closure.compact_sort_orders(sample_tree["MATH"]) == 0

    def test_compact_roots_with_custom_step(self, service, sample_tree):
        service.compact_sort_orders(None, step=100)

        assert [c.sort_order for c in service.get_roots()] == [100, 200]

    def test_compact_keeps_display_order(self, service, sample_tree):
        service.store.update(sample_tree["MATH-ALG"], version=1, sort_order=7)
        service.compact_sort_orders(sample_tree["MATH"])

        assert [(c.code, c.sort_order) for c in service.get_children("MATH")] == [
            ("MATH-GEO", 10),
            ("MATH-ALG", 20),
        ]
