"""分类树端到端场景测试

覆盖创建、移动、循环检测、按策略删除、复制子树五个典型流程。
"""

import pytest

from yexam.category import ChildHandlingStrategy
from yexam.exceptions import CircularReferenceException, ErrorCode, HasChildrenException

from tests.helpers import assert_tree_consistent, closure_rows


@pytest.fixture
def chain(service):
    """R -> C1 -> C2，另有独立根 R2"""
    r = service.create_category(name="根", code="R")
    c1 = service.create_category(name="一级", code="C1", parent_id=r.id)
    c2 = service.create_category(name="二级", code="C2", parent_id=c1.id)
    r2 = service.create_category(name="根2", code="R2")
    return {"R": r.id, "C1": c1.id, "C2": c2.id, "R2": r2.id}


class TestTreeScenarios:
    """典型流程测试"""

    def test_create_nested_nodes(self, service, session_scope, chain):
        """创建三层节点后路径与深度正确"""
        c2 = service.get_category(chain["C2"])

        assert c2.path_ids == [chain["R"], chain["C1"]]
        assert c2.depth == 2
        assert_tree_consistent(session_scope)

    def test_move_subtree_to_root(self, service, session_scope, chain):
        """把 C1 连同子节点移动到根级"""
        result = service.move_category(chain["C1"], new_parent_id=None)

        c1 = service.get_category(chain["C1"])
        c2 = service.get_category(chain["C2"])
        assert c1.path_ids == []
        assert c1.depth == 0
        assert c2.path_ids == [chain["C1"]]
        assert c2.depth == 1
        assert result.old_parent_id == chain["R"]
        assert result.new_parent_id is None
        assert result.categories_affected == 2

        rows = closure_rows(session_scope)
        assert not any(a == chain["R"] and d in (chain["C1"], chain["C2"]) for a, d, _ in rows)
        assert_tree_consistent(session_scope)

    def test_move_under_own_descendant_is_rejected(self, service, session_scope, chain):
        """移动到自己的子孙下抛出循环引用，树保持不变"""
        before = closure_rows(session_scope)

        with pytest.raises(CircularReferenceException) as exc_info:
            service.move_category(chain["R"], new_parent_id=chain["C2"])

        assert exc_info.value.code == ErrorCode.CIRCULAR_REFERENCE
        assert exc_info.value.status_code == 409
        r = service.get_category(chain["R"])
        assert r.parent_id is None
        assert r.path == "/"
        assert closure_rows(session_scope) == before

    def test_delete_with_children_by_strategy(self, service, session_scope, chain):
        """PREVENT 拒绝删除有子节点的分类，MOVE_CHILDREN_TO_PARENT 上移子节点"""
        with pytest.raises(HasChildrenException):
            service.delete_category(chain["C1"], ChildHandlingStrategy.PREVENT)

        result = service.delete_category(chain["C1"], ChildHandlingStrategy.MOVE_CHILDREN_TO_PARENT)

        c2 = service.get_category(chain["C2"])
        assert c2.parent_id == chain["R"]
        assert c2.path_ids == [chain["R"]]
        assert c2.depth == 1
        assert result.deleted_ids == [chain["C1"]]
        assert result.children_reassigned == 1
        assert service.store.find_by_id(chain["C1"]) is None
        assert_tree_consistent(session_scope)

    def test_copy_subtree(self, service, session_scope, chain):
        """复制 C1 子树到 R2 下，原子树保持不变"""
        originals = {
            key: service.get_category(chain[key]).to_dict()
            for key in ("C1", "C2")
        }

        result = service.copy_category(chain["C1"], new_parent_id=chain["R2"], include_descendants=True)

        assert set(result.id_mapping) == {chain["C1"], chain["C2"]}
        assert result.categories_copied == 2
        new_c1 = service.get_category(result.id_mapping[chain["C1"]])
        new_c2 = service.get_category(result.id_mapping[chain["C2"]])
        assert result.new_category_id == new_c1.id
        assert new_c1.parent_id == chain["R2"]
        assert new_c2.parent_id == new_c1.id
        assert new_c2.path_ids == [chain["R2"], new_c1.id]
        assert new_c1.code == "C1_COPY"
        assert new_c1.name == "一级 (Copy)"
        assert new_c2.code == "C2_COPY"
        assert new_c2.name == "二级"

        for key in ("C1", "C2"):
            assert service.get_category(chain[key]).to_dict() == originals[key]
        assert_tree_consistent(session_scope)
