"""ORM 模块

提供：
- Base / CoreModel: 声明基类与核心模型（主键、时间戳、乐观锁版本号、CRUD）
- AuditMixin: 创建人/修改人审计字段
- 数据库会话管理与事务管理
- Page / BaseSchemas: 分页结果与 Pydantic 基类
"""

from .core_model import Base, CoreModel
from .audit import (
    AuditMixin,
    set_current_user_id,
    get_current_user_id,
    clear_current_user_id,
)
from .base_schemas import Page, BaseSchemas
from .db_session import (
    db_manager,
    init_database,
    get_engine,
    create_tables,
    db_session_scope,
    on_request_end,
)
from .transaction import (
    TransactionState,
    TransactionPropagation,
    TransactionContext,
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "Base",
    "CoreModel",
    "AuditMixin",
    "set_current_user_id",
    "get_current_user_id",
    "clear_current_user_id",
    "Page",
    "BaseSchemas",
    "db_manager",
    "init_database",
    "get_engine",
    "create_tables",
    "db_session_scope",
    "on_request_end",
    "TransactionState",
    "TransactionPropagation",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
]
