"""日志模块

使用示例:
    from yexam.log import setup_logger, get_logger

    logger = setup_logger("yexam", level="DEBUG", log_file="logs/app.log")
    tree_logger = get_logger("category")
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    setup_sql_logger,
    create_formatter,
    get_logger,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    orm_logger,
    transaction_logger,
    logger,
)

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "setup_sql_logger",
    "create_formatter",
    "get_logger",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "orm_logger",
    "transaction_logger",
    "logger",
]
