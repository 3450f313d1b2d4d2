"""分类树模型

- Category: 分类节点，携带物化路径 path 与深度 depth
- CategoryClosure: 闭包表，每个可达的 (祖先, 子孙) 对一行，含 distance=0 的自身行

path/depth/parent_id 与闭包表只能通过 CategoryStore / TreeMutator / ClosureMaintainer 写入。
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from yexam.orm import Base, CoreModel, AuditMixin

from .enums import CategoryLevel, CategoryType, LifecycleState
from .tree_utils import ROOT_PATH, decode_path


class Category(CoreModel, AuditMixin):
    """题库分类节点

    使用示例:
        store = CategoryStore()
        math = store.create(name="数学", code="MATH")
        algebra = store.create(name="代数", code="MATH-ALG", parent_id=math.id)

        algebra.path       # "/1/"
        algebra.path_ids   # [1]
        algebra.depth      # 1
    """
    __tablename__ = "category"

    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="名称")
    code: Mapped[str] = mapped_column(String(50), nullable=False, index=True, comment="编码（未删除节点中唯一）")
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, comment="描述")

    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("category.id"), nullable=True, index=True, comment="父分类ID"
    )
    path: Mapped[str] = mapped_column(String(1000), nullable=False, default=ROOT_PATH, index=True, comment="祖先ID路径")
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="深度（根为0）")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, comment="同级排序号")

    category_type: Mapped[int] = mapped_column(Integer, nullable=False, default=CategoryType.SUBJECT.value, comment="分类类型")
    category_level: Mapped[int] = mapped_column(Integer, nullable=False, default=CategoryLevel.LEVEL1.value, comment="分类级别")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="是否启用")
    allow_questions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, comment="是否允许直接挂题")

    metadata_json: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True, comment="扩展元数据（JSON）")
    curriculum_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="课程标准编码")
    grade_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, comment="年级")
    subject: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, comment="学科")

    lifecycle: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LifecycleState.ACTIVE.value, index=True, comment="生命周期状态"
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True, comment="删除时间")
    deleted_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, comment="删除人")

    # 结构字段，update() 不允许修改
    STRUCTURAL_FIELDS = frozenset({"id", "parent_id", "path", "depth", "lifecycle", "deleted_at", "deleted_by", "ver"})

    @property
    def path_ids(self) -> List[int]:
        """祖先 ID 列表（根在前，不含自身）"""
        return decode_path(self.path)

    @property
    def state(self) -> LifecycleState:
        return LifecycleState(self.lifecycle)

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle == LifecycleState.DELETED.value

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def mark_deleted(self, user_id=None) -> None:
        """切换到 DELETED 状态并记录删除元数据"""
        self.lifecycle = LifecycleState.DELETED.value
        self.deleted_at = datetime.now()
        self.deleted_by = None if user_id is None else str(user_id)

    def __repr__(self):
        return f"<Category id={self.id} code={self.code!r} path={self.path!r}>"


class CategoryClosure(Base):
    """分类闭包表

    (ancestor_id, descendant_id, distance)，distance 为从祖先到子孙的跳数，自身行为 0。
    """
    __tablename__ = "category_closure"

    ancestor_id: Mapped[int] = mapped_column(Integer, ForeignKey("category.id"), primary_key=True)
    descendant_id: Mapped[int] = mapped_column(Integer, ForeignKey("category.id"), primary_key=True)
    distance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_category_closure_descendant", "descendant_id"),
    )

    def __repr__(self):
        return f"<CategoryClosure {self.ancestor_id}->{self.descendant_id} d={self.distance}>"
