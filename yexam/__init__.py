"""
YExam - 题库分类树基础库

提供分类树（物化路径 + 闭包表）、ORM、事务、配置、日志、异常等基础功能
"""

__version__ = "0.1.0"

from .config import AppSettings, CategoryTreeSettings, ConfigLoader, load_yaml_config
from .exceptions import (
    BusinessException,
    Err,
    ErrorCode,
    register_exception_handlers,
)
from .log import get_logger, setup_root_logger
from .orm import (
    init_database,
    create_tables,
    db_session_scope,
    transaction_manager,
    set_current_user_id,
)
from .category import (
    Category,
    CategoryTreeService,
    ChildHandlingStrategy,
    MergeStrategy,
)

__all__ = [
    "__version__",
    "AppSettings",
    "CategoryTreeSettings",
    "ConfigLoader",
    "load_yaml_config",
    "BusinessException",
    "Err",
    "ErrorCode",
    "register_exception_handlers",
    "get_logger",
    "setup_root_logger",
    "init_database",
    "create_tables",
    "db_session_scope",
    "transaction_manager",
    "set_current_user_id",
    "Category",
    "CategoryTreeService",
    "ChildHandlingStrategy",
    "MergeStrategy",
]
