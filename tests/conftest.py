"""
Pytest 公共配置和 Fixtures

提供测试所需的公共资源：
- 临时目录与文件
- 数据库连接与会话
- 分类树服务与示例树
"""

import os
import tempfile
from typing import Dict, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from yexam.config import CategoryTreeSettings
from yexam.orm import Base, CoreModel, clear_current_user_id


# ==================== 基础 Fixtures ====================

@pytest.fixture(scope="session")
def temp_dir():
    """创建临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def temp_file(temp_dir):
    """创建临时文件的工厂函数"""
    created_files = []

    def _create_file(filename: str, content: str = "") -> str:
        filepath = os.path.join(temp_dir, filename)
        if os.path.dirname(filepath):
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content)
        created_files.append(filepath)
        return filepath

    yield _create_file

    # 清理
    for f in created_files:
        if os.path.exists(f):
            os.remove(f)


# ==================== 数据库 Fixtures ====================

@pytest.fixture(scope="function")
def memory_engine():
    """创建内存数据库引擎

    使用 StaticPool 和 check_same_thread=False，所有操作共用同一个连接。
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(memory_engine) -> Generator[Session, None, None]:
    """创建数据库会话（已建表）"""
    import yexam.category.models  # noqa: F401
    Base.metadata.create_all(bind=memory_engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_scope(memory_engine) -> Generator[scoped_session, None, None]:
    """建表并设置 CoreModel.query，服务层通过它获取会话"""
    import yexam.category.models  # noqa: F401
    Base.metadata.create_all(bind=memory_engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
    scope = scoped_session(SessionLocal)
    CoreModel.query = scope.query_property()
    yield scope
    scope.remove()
    clear_current_user_id()


# ==================== 分类树 Fixtures ====================

@pytest.fixture
def tree_settings() -> CategoryTreeSettings:
    return CategoryTreeSettings()


@pytest.fixture
def service(session_scope, tree_settings):
    """分类树服务"""
    from yexam.category import CategoryTreeService
    return CategoryTreeService(settings=tree_settings)


@pytest.fixture
def sample_tree(service) -> Dict[str, int]:
    """示例分类树，返回 编码 -> ID

    MATH 数学
    ├── MATH-ALG 代数
    │   ├── MATH-ALG-LIN 线性方程
    │   └── MATH-ALG-QUAD 二次方程
    └── MATH-GEO 几何
    SCI 科学
    └── SCI-PHY 物理
    """
    ids = {}

    def _create(name, code, parent=None):
        node = service.create_category(
            name=name,
            code=code,
            parent_id=ids[parent] if parent else None,
        )
        ids[code] = node.id

    _create("数学", "MATH")
    _create("代数", "MATH-ALG", "MATH")
    _create("线性方程", "MATH-ALG-LIN", "MATH-ALG")
    _create("二次方程", "MATH-ALG-QUAD", "MATH-ALG")
    _create("几何", "MATH-GEO", "MATH")
    _create("科学", "SCI")
    _create("物理", "SCI-PHY", "SCI")
    return ids
