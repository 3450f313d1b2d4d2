"""
数据库会话管理模块

提供数据库引擎创建、会话管理等功能。

公开 API:
- db_manager: 数据库管理器单例
- init_database(): 初始化数据库连接
- get_engine(): 获取数据库引擎
- create_tables(): 创建分类树相关表
- db_session_scope(): 脚本、任务场景的上下文管理器
- on_request_end(): 请求结束清理
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session, Session
from sqlalchemy.pool import StaticPool

from yexam.log import get_logger

_logger = get_logger("yexam.orm.session")

__all__ = [
    'db_manager',
    'init_database',
    'get_engine',
    'create_tables',
    'db_session_scope',
    'on_request_end',
]


class DatabaseManager:
    """数据库管理器（单例）

    使用示例:
        from yexam.orm import db_manager

        db_manager.init(database_url="sqlite:///./exam.db")
        engine = db_manager.engine
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
        self._engine = None
        self._session_scope = None
        self._session_maker = None
        self._initialized = True

    # ==================== 属性访问 ====================

    @property
    def engine(self):
        """获取数据库引擎（只读）

        Raises:
            RuntimeError: 数据库未初始化时
        """
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine

    @property
    def session_scope(self) -> scoped_session:
        """获取 scoped session（只读）"""
        if self._session_scope is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._session_scope

    @property
    def is_initialized(self) -> bool:
        """检查数据库是否已初始化"""
        return self._engine is not None and self._session_scope is not None

    # ==================== 核心方法 ====================

    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
        logger: logging.Logger = None,
        scopefunc: Callable = None,
        config: Any = None,
        auto_setup_query: bool = True
    ):
        """初始化数据库连接

        Args:
            database_url: 数据库连接 URL
            echo: 是否打印 SQL
            pool_*: 连接池参数（SQLite 内存库使用 StaticPool，忽略这些参数）
            logger: 日志记录器
            scopefunc: scoped_session 的作用域函数，默认按线程隔离
            config: DatabaseSettings 对象，提供后覆盖以上同名参数
            auto_setup_query: 是否自动设置 CoreModel.query

        Returns:
            tuple: (engine, session_scope)
        """
        if config is not None:
            database_url = getattr(config, "url", database_url) or database_url
            echo = getattr(config, "echo", echo)
            pool_size = getattr(config, "pool_size", pool_size)
            max_overflow = getattr(config, "max_overflow", max_overflow)
            pool_timeout = getattr(config, "pool_timeout", pool_timeout)
            pool_recycle = getattr(config, "pool_recycle", pool_recycle)
            pool_pre_ping = getattr(config, "pool_pre_ping", pool_pre_ping)

        if not database_url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")

        logger = logger or _logger
        logger.info(f"数据库配置URL: {database_url}")

        try:
            if database_url.startswith("sqlite"):
                db_path = database_url.split(":///", 1)[-1]
                if db_path in ("", ":memory:"):
                    # 内存数据库：使用 StaticPool（单连接）
                    self._engine = create_engine(
                        database_url,
                        echo=echo,
                        connect_args={"check_same_thread": False},
                        poolclass=StaticPool,
                    )
                    logger.info("SQLite内存数据库引擎创建成功（StaticPool）")
                else:
                    self._engine = create_engine(
                        database_url,
                        echo=echo,
                        connect_args={"check_same_thread": False, "timeout": pool_timeout},
                    )
                    logger.info(f"SQLite文件数据库引擎创建成功: {db_path}")
            else:
                self._engine = create_engine(
                    database_url,
                    echo=echo,
                    pool_pre_ping=pool_pre_ping,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle
                )
                logger.info("数据库引擎创建成功")
        except Exception as e:
            logger.error(f"创建数据库引擎失败: {str(e)}")
            raise

        self._session_maker = sessionmaker(autocommit=False, autoflush=True, bind=self._engine)
        self._session_scope = scoped_session(self._session_maker, scopefunc=scopefunc)

        if auto_setup_query:
            from .core_model import CoreModel
            CoreModel.query = self._session_scope.query_property()
            logger.info("CoreModel.query 属性已自动设置")

        return self._engine, self._session_scope

    def get_session(self) -> Session:
        """获取 scoped session（低级 API，优先使用 db_session_scope()）"""
        return self.session_scope()

    def cleanup(self):
        """移除当前 scoped session，归还连接（幂等）"""
        if self._session_scope is not None and self._session_scope.registry.has():
            self._session_scope.remove()
            _logger.debug("session_scope 移除完成")


# ==================== 全局单例 ====================

db_manager = DatabaseManager()


# ==================== 公开 API 函数 ====================

def init_database(
    database_url: str = None,
    echo: bool = False,
    logger: logging.Logger = None,
    config: Any = None,
    auto_setup_query: bool = True,
    **pool_options
):
    """初始化数据库连接

    这是 db_manager.init() 的便捷包装函数。

    Returns:
        tuple: (engine, session_scope)
    """
    return db_manager.init(
        database_url=database_url,
        echo=echo,
        logger=logger,
        config=config,
        auto_setup_query=auto_setup_query,
        **pool_options
    )


def get_engine():
    """获取数据库引擎"""
    return db_manager.engine


def create_tables(engine=None) -> None:
    """创建所有已声明模型对应的表"""
    from .core_model import Base
    # 确保分类模型已注册到 metadata
    import yexam.category.models  # noqa: F401
    Base.metadata.create_all(bind=engine or db_manager.engine)


def on_request_end():
    """请求结束时清理 session"""
    db_manager.cleanup()


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """非 HTTP 场景的 session 上下文管理器

    自动提交或回滚，并在结束时清理 session。

    使用示例:
        from yexam.orm import db_session_scope

        with db_session_scope() as session:
            service.mutator.move_category(5, new_parent_id=2)
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        on_request_end()
