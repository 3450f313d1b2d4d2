"""分类查询构建器

以组合条件的方式生成参数化的 SQLAlchemy select 语句，替代手工拼接 SQL 片段。
默认只包含 ACTIVE 状态的节点。

使用示例:
    from yexam.category.query import CategoryQuery

    stmt = (
        CategoryQuery()
        .where_type(CategoryType.TOPIC)
        .within_subtree(math_node)
        .search("函数")
        .order_by("name")
        .statement()
    )
    rows = session.scalars(stmt).all()
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Type

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session

from yexam.exceptions import Err, ErrorCode
from yexam.orm import Page

from .enums import LifecycleState
from .models import Category
from .schemas import CategoryFilter
from .tree_utils import child_path

LIKE_ESCAPE = "\\"


def escape_like(value: str) -> str:
    """转义 LIKE 通配符"""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class CategoryQuery:
    """分类查询构建器"""

    # 允许的排序字段
    SORT_FIELDS = ("name", "code", "sort_order", "depth", "created_at", "updated_at", "path")

    def __init__(self, model: Type[Category] = Category):
        self.model = model
        self._include_deleted = False
        self._conditions: List[Any] = []
        self._order_by: List[Any] = []

    # ==================== 条件 ====================

    def include_deleted(self) -> CategoryQuery:
        self._include_deleted = True
        return self

    def where(self, *conditions) -> CategoryQuery:
        self._conditions.extend(conditions)
        return self

    def where_ids(self, ids) -> CategoryQuery:
        return self.where(self.model.id.in_(list(ids)))

    def where_parent(self, parent_id: Optional[int]) -> CategoryQuery:
        """父节点为 parent_id，None 表示根节点"""
        if parent_id is None:
            return self.where(self.model.parent_id.is_(None))
        return self.where(self.model.parent_id == parent_id)

    def where_type(self, category_type) -> CategoryQuery:
        return self.where(self.model.category_type == int(category_type))

    def where_level(self, category_level) -> CategoryQuery:
        return self.where(self.model.category_level == int(category_level))

    def where_active(self, is_active: bool = True) -> CategoryQuery:
        return self.where(self.model.is_active.is_(is_active))

    def where_allow_questions(self, allow_questions: bool = True) -> CategoryQuery:
        return self.where(self.model.allow_questions.is_(allow_questions))

    def where_subject(self, subject: str) -> CategoryQuery:
        return self.where(self.model.subject == subject)

    def where_grade_level(self, grade_level: str) -> CategoryQuery:
        return self.where(self.model.grade_level == grade_level)

    def where_curriculum_code(self, curriculum_code: str) -> CategoryQuery:
        return self.where(self.model.curriculum_code == curriculum_code)

    def descendants_of(self, node: Category) -> CategoryQuery:
        """node 的全部子孙（不含自身），按路径前缀匹配"""
        prefix = escape_like(child_path(node.path, node.id))
        return self.where(self.model.path.like(prefix + "%", escape=LIKE_ESCAPE))

    def within_subtree(self, node: Category) -> CategoryQuery:
        """node 及其全部子孙"""
        prefix = escape_like(child_path(node.path, node.id))
        return self.where(or_(
            self.model.id == node.id,
            self.model.path.like(prefix + "%", escape=LIKE_ESCAPE),
        ))

    def max_depth(self, depth: int) -> CategoryQuery:
        return self.where(self.model.depth <= depth)

    def search(self, term: Optional[str]) -> CategoryQuery:
        """名称、编码、描述模糊匹配（不区分大小写）"""
        if not term or not term.strip():
            return self
        pattern = f"%{escape_like(term.strip())}%"
        return self.where(or_(
            self.model.name.ilike(pattern, escape=LIKE_ESCAPE),
            self.model.code.ilike(pattern, escape=LIKE_ESCAPE),
            self.model.description.ilike(pattern, escape=LIKE_ESCAPE),
        ))

    def modified_since(self, since: datetime) -> CategoryQuery:
        return self.where(func.coalesce(self.model.updated_at, self.model.created_at) >= since)

    def apply_filter(self, criteria: CategoryFilter) -> CategoryQuery:
        """应用分页筛选条件（排序之外）"""
        if criteria.roots_only:
            self.where_parent(None)
        elif criteria.parent_id is not None:
            self.where_parent(criteria.parent_id)
        if criteria.category_type is not None:
            self.where_type(criteria.category_type)
        if criteria.category_level is not None:
            self.where_level(criteria.category_level)
        if criteria.is_active is not None:
            self.where_active(criteria.is_active)
        if criteria.allow_questions is not None:
            self.where_allow_questions(criteria.allow_questions)
        if criteria.subject:
            self.where_subject(criteria.subject)
        if criteria.grade_level:
            self.where_grade_level(criteria.grade_level)
        if criteria.curriculum_code:
            self.where_curriculum_code(criteria.curriculum_code)
        self.search(criteria.search_term)
        return self

    # ==================== 排序 ====================

    def order_by(self, sort_by: Optional[str] = None, descending: bool = False) -> CategoryQuery:
        """按字段排序，未指定时按 path、sort_order

        Raises:
            ValidationException: 不支持的排序字段
        """
        if not sort_by:
            self._order_by.extend([self.model.path, self.model.sort_order, self.model.id])
            return self
        key = sort_by.strip().lower()
        if key not in self.SORT_FIELDS:
            raise Err.invalid(
                f"不支持的排序字段: {sort_by}",
                code=ErrorCode.INVALID_PARAMETER,
                details=[f"可选值: {', '.join(self.SORT_FIELDS)}"],
            )
        column = getattr(self.model, key)
        self._order_by.append(column.desc() if descending else column.asc())
        self._order_by.append(self.model.id)
        return self

    def sibling_order(self) -> CategoryQuery:
        """同级展示顺序：sort_order、name"""
        self._order_by.extend([self.model.sort_order, self.model.name, self.model.id])
        return self

    def tree_order(self) -> CategoryQuery:
        """自上而下：depth、sort_order、name"""
        self._order_by.extend([self.model.depth, self.model.sort_order, self.model.name, self.model.id])
        return self

    def recent_order(self) -> CategoryQuery:
        """最近修改的在前"""
        self._order_by.extend([
            func.coalesce(self.model.updated_at, self.model.created_at).desc(),
            self.model.id.desc(),
        ])
        return self

    # ==================== 生成语句 ====================

    def conditions(self) -> List[Any]:
        conditions = list(self._conditions)
        if not self._include_deleted:
            conditions.insert(0, self.model.lifecycle == LifecycleState.ACTIVE.value)
        return conditions

    def statement(self) -> Select:
        stmt = select(self.model).where(*self.conditions())
        if self._order_by:
            stmt = stmt.order_by(*self._order_by)
        return stmt

    def count_statement(self) -> Select:
        return select(func.count(self.model.id)).where(*self.conditions())

    def columns_statement(self, *columns) -> Select:
        """只查询指定列，用于统计等不需要 ORM 对象的场景"""
        return select(*columns).where(*self.conditions())

    def all(self, session: Session, limit: Optional[int] = None) -> List[Category]:
        stmt = self.statement()
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.scalars(stmt).all())

    def count(self, session: Session) -> int:
        return session.scalar(self.count_statement()) or 0

    def paginate(self, session: Session, page: int = 1, page_size: int = 20, max_page_size: int = 1000) -> Page:
        """分页查询"""
        page = max(page, 1)
        page_size = max(1, min(page_size, max_page_size))
        total = self.count(session)
        rows = list(session.scalars(
            self.statement().offset((page - 1) * page_size).limit(page_size)
        ).all())
        return Page.build(rows, total_records=total, page=page, page_size=page_size)
