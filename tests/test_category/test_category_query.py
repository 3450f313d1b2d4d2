"""CategoryQuery 测试

测试查询构建器生成的条件、排序与分页。
"""

import pytest

from yexam.category import CategoryFilter, CategoryQuery, CategoryType, escape_like
from yexam.exceptions import ValidationException


class TestEscapeLike:
    """LIKE 转义测试"""

    def test_escape(self):
        assert escape_like("100%") == "100\\%"
        assert escape_like("a_b") == "a\\_b"
        assert escape_like("c\\d") == "c\\\\d"
        assert escape_like("普通文本") == "普通文本"


class TestCategoryQuery:
    """查询构建器测试"""

    def test_excludes_deleted_by_default(self, service, session_scope, sample_tree):
        service.store.soft_delete(sample_tree["MATH-GEO"])

        assert CategoryQuery().count(session_scope) == 6
        assert CategoryQuery().include_deleted().count(session_scope) == 7

    def test_parent_and_type_filters(self, service, session_scope, sample_tree):
        roots = CategoryQuery().where_parent(None).sibling_order().all(session_scope)
        assert [n.code for n in roots] == ["MATH", "SCI"]

        subjects = CategoryQuery().where_type(CategoryType.SUBJECT).count(session_scope)
        assert subjects == 7
        assert CategoryQuery().where_type(CategoryType.SKILL).count(session_scope) == 0

    def test_subtree_conditions(self, service, session_scope, sample_tree):
        alg = service.get_category(sample_tree["MATH-ALG"])

        descendants = CategoryQuery().descendants_of(alg).count(session_scope)
        subtree = CategoryQuery().within_subtree(alg).count(session_scope)

        assert descendants == 2
        assert subtree == 3

    def test_max_depth(self, service, session_scope, sample_tree):
        assert CategoryQuery().max_depth(0).count(session_scope) == 2
        assert CategoryQuery().max_depth(1).count(session_scope) == 5

    def test_apply_filter(self, service, session_scope, sample_tree):
        service.store.update(sample_tree["MATH-GEO"], version=1, subject="数学", grade_level="G7")

        query = CategoryQuery().apply_filter(CategoryFilter(subject="数学", grade_level="G7"))
        assert [n.code for n in query.all(session_scope)] == ["MATH-GEO"]

        roots = CategoryQuery().apply_filter(CategoryFilter(roots_only=True, parent_id=sample_tree["MATH"]))
        assert roots.count(session_scope) == 2

    def test_order_by_whitelist(self):
        with pytest.raises(ValidationException) as exc_info:
            CategoryQuery().order_by("id; drop table category")

        assert exc_info.value.details

    def test_order_by_field(self, service, session_scope, sample_tree):
        rows = CategoryQuery().where_parent(sample_tree["MATH"]).order_by("name", descending=True).all(session_scope)
        names = [n.name for n in rows]
        assert names == sorted(names, reverse=True)

    def test_paginate_bounds(self, service, session_scope, sample_tree):
        page = CategoryQuery().order_by().paginate(session_scope, page=0, page_size=5000, max_page_size=3)

        assert page.page == 1
        assert page.page_size == 3
        assert page.total_records == 7
        assert page.total_pages == 3
        assert len(page.rows) == 3

    def test_paginate_empty(self, session_scope):
        page = CategoryQuery().paginate(session_scope)

        assert page.total_records == 0
        assert page.total_pages == 0
        assert page.rows == []
        assert not page.has_next
