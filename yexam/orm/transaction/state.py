"""事务状态与传播行为枚举"""

from enum import Enum


class TransactionState(str, Enum):
    """事务状态

    状态转换:
        INACTIVE → ACTIVE → COMMITTED
                      ↓
                  ROLLED_BACK / FAILED
    """

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """判断是否为终态"""
        return self in (
            TransactionState.COMMITTED,
            TransactionState.ROLLED_BACK,
            TransactionState.FAILED
        )


class TransactionPropagation(str, Enum):
    """事务传播行为

    - REQUIRED: 存在事务则加入，否则新建（默认）
    - NESTED: 在外层事务中创建保存点，失败只回滚到保存点
    """

    REQUIRED = "required"
    NESTED = "nested"
