"""
ORM基础模型

提供主键、时间戳、乐观锁版本号以及常用的 CRUD 操作
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional, TYPE_CHECKING

from sqlalchemy import Integer, DateTime, func, inspect
from sqlalchemy.orm import Mapped, mapped_column, declared_attr, declarative_base, Session, Query

from ..utils import to_snake_case

if TYPE_CHECKING:
    from typing_extensions import Self


# 声明基类
Base = declarative_base()


class CoreModel(Base):
    """核心模型基类

    提供功能：
    - 自增主键 id（分配后不复用）
    - created_at / updated_at 时间戳
    - ver 版本号（乐观锁，由 SQLAlchemy version_id_col 自动递增）
    - 根据类名自动生成表名（驼峰转下划线）
    - save / update / delete / get 等便捷方法

    使用示例:
        class Category(CoreModel):
            name: Mapped[str] = mapped_column(String(200))

        # query 属性需要在 init_database 后通过 scoped_session.query_property() 设置
        node = Category(name="数学")
        node.save(commit=True)
        node = Category.get(node.id)
    """
    __abstract__ = True

    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]

    _session: Session = None

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        return to_snake_case(cls.__name__)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment='主键ID')

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        onupdate=func.now(),
        comment="更新时间"
    )

    # 版本控制字段
    ver: Mapped[int] = mapped_column(Integer, default=1, nullable=False, comment="版本号")

    # 系统字段列表（构造时自动忽略这些字段）
    _system_fields: ClassVar[set] = {'id', 'created_at', 'updated_at', 'ver'}

    __mapper_args__ = {"version_id_col": ver}

    def __init__(self, **kwargs):
        for field in self._system_fields:
            kwargs.pop(field, None)
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"

    @property
    def session(self) -> Session:
        """获取当前session

        优先从 query 属性获取 session，如果不可用则从全局 scoped_session 获取
        """
        if self._session is None:
            if getattr(self.__class__, "query", None) is not None:
                self._session = self.__class__.query.session
            else:
                from .db_session import db_manager
                self._session = db_manager.get_session()
        return self._session

    # ==================== CRUD 操作方法 ====================

    def save(self, commit: bool = False) -> Self:
        """保存对象（新增或更新）

        Args:
            commit: 是否立即提交
                   - 无事务时：执行 session.commit()
                   - 有事务时：commit 被抑制，只 flush 以获取自动生成字段
        """
        self.session.add(self)
        self._commit_if(commit)
        return self

    def update(self, commit: bool = False, **kwargs) -> Self:
        """更新对象属性

        user.update(name="new_name", commit=True)
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        self._commit_if(commit)
        return self

    def delete(self, commit: bool = False):
        """物理删除对象"""
        self.session.delete(self)
        self._commit_if(commit)

    @classmethod
    def get(cls, id: int):
        """根据ID获取对象，不存在返回None"""
        return cls.query.filter_by(id=id).one_or_none()

    @classmethod
    def get_all(cls):
        """获取所有记录"""
        return cls.query.all()

    # ==================== 序列化方法 ====================

    def to_dict(self, exclude: set = None) -> dict:
        """转换为字典

        Args:
            exclude: 需要排除的字段集合
        """
        exclude = exclude or set()
        return {
            c.key: getattr(self, c.key)
            for c in inspect(self).mapper.column_attrs
            if c.key not in exclude
        }

    def _commit_if(self, commit: bool = False):
        """根据参数决定是否提交

        当在事务上下文中时，commit=True 会被忽略，
        但会自动执行 flush 以获取自动生成的字段（id, created_at 等）。
        """
        if not commit:
            return
        if _should_suppress_commit():
            self.session.flush()
            return
        self.session.commit()


def _should_suppress_commit() -> bool:
    """当前是否处于会抑制提交的事务中"""
    from .transaction import get_current_transaction
    tx = get_current_transaction()
    if tx is not None and tx.should_suppress_commit():
        from yexam.log import get_logger
        get_logger("orm.transaction").debug("commit=True 被事务上下文抑制")
        return True
    return False
