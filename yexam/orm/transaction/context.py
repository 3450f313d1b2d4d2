"""事务上下文

管理单个事务的生命周期：状态跟踪、保存点、提交/回滚钩子、提交抑制。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from yexam.log import get_logger

from .exceptions import TransactionAlreadyCommittedError, TransactionNotActiveError
from .state import TransactionState

logger = get_logger("yexam.orm.transaction")


class TransactionContext:
    """事务上下文

    使用示例:
        with TransactionContext(session) as tx:
            node.save()

            with tx.savepoint():
                risky_operation()

            @tx.after_commit
            def on_committed(ctx):
                notify()
    """

    def __init__(self, session: Session, auto_commit: bool = True, suppress_commit: bool = True):
        self._session = session
        self._auto_commit = auto_commit
        self._suppress_commit = suppress_commit
        self._state = TransactionState.INACTIVE
        self._nesting_level = 0
        self._hooks: Dict[str, List[Callable]] = {
            "after_commit": [],
            "after_rollback": [],
            "on_error": [],
        }
        # 上下文数据（用于在钩子之间传递数据）
        self.data: Dict[str, Any] = {}

    # ==================== 属性 ====================

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE

    @property
    def nesting_level(self) -> int:
        return self._nesting_level

    # ==================== 生命周期 ====================

    def begin(self) -> TransactionContext:
        """开始事务（SQLAlchemy 默认 autobegin）"""
        self._state = TransactionState.ACTIVE
        self._nesting_level = 1
        logger.debug("事务开始")
        return self

    def commit(self) -> None:
        """提交事务"""
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError()
        if self._state != TransactionState.ACTIVE:
            raise TransactionNotActiveError(f"无法提交：事务状态为 {self._state.value}")

        try:
            self._session.commit()
        except Exception as e:
            self._state = TransactionState.FAILED
            self._run_hooks("on_error", e)
            raise
        self._state = TransactionState.COMMITTED
        self._nesting_level = 0
        self._run_hooks("after_commit")
        logger.debug("事务提交成功")

    def rollback(self) -> None:
        """回滚事务（幂等）"""
        if self._state == TransactionState.COMMITTED:
            raise TransactionAlreadyCommittedError("无法回滚：事务已提交")
        if self._state not in (TransactionState.ACTIVE, TransactionState.FAILED):
            return
        self._session.rollback()
        self._state = TransactionState.ROLLED_BACK
        self._nesting_level = 0
        self._run_hooks("after_rollback")
        logger.debug("事务回滚成功")

    def flush(self) -> None:
        """刷新 session（将变更写入数据库但不提交）"""
        if not self.is_active:
            raise TransactionNotActiveError()
        self._session.flush()

    @contextmanager
    def savepoint(self):
        """保存点，块内异常只回滚到保存点并继续抛出"""
        if not self.is_active:
            raise TransactionNotActiveError()
        nested = self._session.begin_nested()
        try:
            yield nested
        except Exception:
            nested.rollback()
            raise
        else:
            nested.commit()

    def should_suppress_commit(self) -> bool:
        """CoreModel 用于判断 commit=True 是否应该被忽略"""
        return self.is_active and self._suppress_commit

    # ==================== 钩子 ====================

    def after_commit(self, func: Callable) -> Callable:
        """注册 after_commit 钩子（装饰器方式）"""
        self._hooks["after_commit"].append(func)
        return func

    def after_rollback(self, func: Callable) -> Callable:
        """注册 after_rollback 钩子"""
        self._hooks["after_rollback"].append(func)
        return func

    def on_error(self, func: Callable) -> Callable:
        """注册错误处理钩子"""
        self._hooks["on_error"].append(func)
        return func

    def _run_hooks(self, hook_type: str, *args) -> None:
        for func in self._hooks[hook_type]:
            try:
                func(self, *args)
            except Exception as e:
                # 钩子失败不影响已完成的提交/回滚
                logger.warning(f"{hook_type} 钩子执行失败: {e}")

    # ==================== 上下文管理器 ====================

    def __enter__(self) -> TransactionContext:
        return self.begin()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self._run_hooks("on_error", exc_val)
            self.rollback()
            return False

        if self._auto_commit and self.is_active:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        return False

    def __repr__(self) -> str:
        return (
            f"TransactionContext("
            f"state={self._state.value}, "
            f"nesting_level={self._nesting_level})"
        )
