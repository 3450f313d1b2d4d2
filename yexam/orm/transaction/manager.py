"""事务管理器

提供事务管理的统一入口
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Callable, Generator, Optional, TypeVar

from sqlalchemy.orm import Session

from yexam.log import get_logger

from .context import TransactionContext
from .exceptions import PropagationError
from .state import TransactionPropagation

logger = get_logger("yexam.orm.transaction")

T = TypeVar('T')

# 当前事务上下文（线程/协程安全）
_current_transaction: ContextVar[Optional[TransactionContext]] = ContextVar(
    '_current_transaction', default=None
)


def get_current_transaction() -> Optional[TransactionContext]:
    """获取当前事务上下文，不在事务中返回 None"""
    return _current_transaction.get()


class TransactionManager:
    """事务管理器（单例）

    使用示例:
        from yexam.orm import transaction_manager as tm

        with tm.transaction(session) as tx:
            store.create(name="数学", code="MATH", commit=True)  # commit 被抑制，只 flush
            mutator.move_category(3, new_parent_id=1)          # 加入同一事务
        # 退出时统一提交，任何异常整体回滚

        @tm.transactional()
        def import_bank(data):
            ...
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._default_suppress_commit = True
        self._initialized = True

    def get_session(self) -> Session:
        """获取数据库 session"""
        from ..db_session import db_manager
        return db_manager.get_session()

    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        return _current_transaction.get()

    def is_in_transaction(self) -> bool:
        current = self.current_transaction
        return current is not None and current.is_active

    @contextmanager
    def transaction(
        self,
        session: Session = None,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        auto_commit: bool = True,
    ) -> Generator[TransactionContext, None, None]:
        """创建事务上下文

        Args:
            session: 数据库会话，不传则自动获取
            propagation: 事务传播行为
            auto_commit: 是否在退出时自动提交

        嵌套 REQUIRED 事务加入外层事务，内层抛出的异常会使整个外层事务回滚。
        """
        current = self.current_transaction

        if current is not None and current.is_active:
            if propagation == TransactionPropagation.NESTED:
                logger.debug("NESTED: 创建嵌套事务 (savepoint)")
                with current.savepoint():
                    yield current
                return
            current._nesting_level += 1
            logger.debug(f"REQUIRED: 加入现有事务 (level={current._nesting_level})")
            try:
                yield current
            finally:
                current._nesting_level -= 1
            return

        if propagation == TransactionPropagation.NESTED:
            raise PropagationError("NESTED", "NESTED 需要一个活跃的外层事务")

        if session is None:
            session = self.get_session()

        ctx = TransactionContext(
            session=session,
            auto_commit=auto_commit,
            suppress_commit=self._default_suppress_commit,
        )
        token = _current_transaction.set(ctx)
        try:
            with ctx:
                yield ctx
        finally:
            _current_transaction.reset(token)

    def transactional(
        self,
        propagation: TransactionPropagation = TransactionPropagation.REQUIRED,
        session_getter: Callable[[], Session] = None,
    ) -> Callable[[Callable[..., T]], Callable[..., T]]:
        """事务装饰器

        使用示例:
            @tm.transactional()
            def rebuild_everything():
                ...
        """
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            @wraps(func)
            def wrapper(*args, **kwargs) -> T:
                session = session_getter() if session_getter else None
                with self.transaction(session=session, propagation=propagation):
                    return func(*args, **kwargs)
            return wrapper
        return decorator


transaction_manager = TransactionManager()
