"""事务管理模块

使用示例:
    from yexam.orm.transaction import transaction_manager as tm

    with tm.transaction(session) as tx:
        ...
"""

from .state import TransactionState, TransactionPropagation
from .context import TransactionContext
from .manager import TransactionManager, transaction_manager, get_current_transaction
from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    PropagationError,
)

__all__ = [
    "TransactionState",
    "TransactionPropagation",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "PropagationError",
]
