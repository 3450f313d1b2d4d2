"""CoreModel 与数据库会话管理测试"""

import pytest
from sqlalchemy import inspect

from yexam.category import Category, CategoryClosure
from yexam.config import DatabaseSettings
from yexam.orm import (
    Page,
    create_tables,
    db_manager,
    db_session_scope,
    get_engine,
    init_database,
)


@pytest.fixture
def initialized_db():
    """使用内存库初始化全局 db_manager，测试后复位"""
    engine, scope = init_database(config=DatabaseSettings(url="sqlite:///:memory:"))
    create_tables()
    yield engine
    db_manager.cleanup()
    engine.dispose()
    db_manager._engine = None
    db_manager._session_scope = None
    db_manager._session_maker = None


class TestCoreModel:
    """CoreModel 测试"""

    def test_table_names(self):
        assert Category.__tablename__ == "category"
        assert CategoryClosure.__tablename__ == "category_closure"

    def test_system_fields_ignored(self):
        node = Category(id=99, ver=5, name="数学", code="MATH")

        assert node.id is None
        assert node.name == "数学"

    def test_to_dict(self, service, sample_tree):
        node = service.get_category(sample_tree["MATH"])

        data = node.to_dict(exclude={"metadata_json"})

        assert data["code"] == "MATH"
        assert data["path"] == "/"
        assert "metadata_json" not in data

    def test_update_and_get(self, service, session_scope, sample_tree):
        node = Category.get(sample_tree["SCI"])
        node.update(description="自然科学", unknown_field=1, commit=True)

        session_scope.expire_all()
        reloaded = Category.get(sample_tree["SCI"])
        assert reloaded.description == "自然科学"
        assert reloaded.ver == 2
        assert Category.get(999) is None


class TestPage:
    """分页结果测试"""

    def test_navigation_flags(self):
        page = Page(rows=[1, 2], total_records=5, page=2, page_size=2, total_pages=3)

        assert page.has_next
        assert page.has_prev
        assert page.to_dict()["total_pages"] == 3

    def test_build_computes_total_pages(self):
        assert Page.build(["a"], total_records=57, page=3, page_size=20).total_pages == 3
        assert Page.build([], total_records=0, page=1, page_size=20).total_pages == 0
        assert not Page().has_prev


class TestDatabaseManager:
    """数据库管理器测试"""

    def test_requires_url(self):
        with pytest.raises(ValueError):
            init_database(database_url="")

    def test_initialized_engine(self, initialized_db):
        assert get_engine() is initialized_db
        assert db_manager.is_initialized
        assert "category" in inspect(initialized_db).get_table_names()

    def test_session_scope_commit(self, initialized_db):
        with db_session_scope() as session:
            session.add(Category(name="数学", code="MATH"))

        with db_session_scope() as session:
            assert session.query(Category).count() == 1

    def test_session_scope_rollback(self, initialized_db):
        with pytest.raises(ValueError):
            with db_session_scope() as session:
                session.add(Category(name="数学", code="MATH"))
                session.flush()
                raise ValueError("中断")

        with db_session_scope() as session:
            assert session.query(Category).count() == 0
