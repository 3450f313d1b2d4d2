"""审计字段

提供 created_by / modified_by 字段，以及基于 ContextVar 的当前用户 ID 存取。
调用方（如 Web 中间件或任务入口）设置当前用户后，插入/更新时自动写入。

使用示例:
    from yexam.orm import set_current_user_id

    set_current_user_id("author-01")
    store.create(name="数学", code="MATH")   # created_by == "author-01"
"""

from contextvars import ContextVar
from typing import Optional, Union

from sqlalchemy import String, event
from sqlalchemy.orm import Mapped, mapped_column


_current_user_id_var: ContextVar[Optional[Union[int, str]]] = ContextVar(
    "current_user_id", default=None
)


def set_current_user_id(user_id: Optional[Union[int, str]]) -> None:
    """设置当前用户 ID"""
    _current_user_id_var.set(user_id)


def get_current_user_id() -> Optional[Union[int, str]]:
    """获取当前用户 ID"""
    return _current_user_id_var.get()


def clear_current_user_id() -> None:
    """清除当前用户 ID"""
    _current_user_id_var.set(None)


def _user_str(user_id) -> Optional[str]:
    return None if user_id is None else str(user_id)


class AuditMixin:
    """审计字段 Mixin"""

    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, comment="创建人")
    modified_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, comment="最后修改人")


@event.listens_for(AuditMixin, "before_insert", propagate=True)
def _fill_created_by(mapper, connection, target):
    user = _user_str(get_current_user_id())
    if target.created_by is None:
        target.created_by = user
    target.modified_by = user if user is not None else target.created_by


@event.listens_for(AuditMixin, "before_update", propagate=True)
def _fill_modified_by(mapper, connection, target):
    user = _user_str(get_current_user_id())
    if user is not None:
        target.modified_by = user
