"""
分类树服务 - 公共基类

各组件共享的会话获取、配置、日志与取消检查。
"""

import threading
from typing import Optional, Type

from sqlalchemy.orm import Session

from yexam.config import CategoryTreeSettings
from yexam.exceptions import Err
from yexam.log import get_logger

from ..models import Category, CategoryClosure
from ..query import CategoryQuery


class TreeComponent:
    """分类树组件基类

    使用示例:
        class MyCategoryStore(CategoryStore):
            category_model = MyCategory
            closure_model = MyCategoryClosure
    """

    # 模型类配置（子类可覆盖）
    category_model: Type[Category] = Category
    closure_model: Type[CategoryClosure] = CategoryClosure

    def __init__(self, settings: CategoryTreeSettings = None, logger=None):
        self.settings = settings or CategoryTreeSettings()
        self.logger = logger or get_logger(self.__class__.__module__)

    @property
    def session(self) -> Session:
        """当前数据库会话，与模型的 query 属性共用同一个 scoped_session"""
        query = getattr(self.category_model, "query", None)
        if query is not None:
            return query.session
        from yexam.orm import db_manager
        return db_manager.get_session()

    def query(self) -> CategoryQuery:
        return CategoryQuery(self.category_model)

    def check_cancelled(self, cancel_event: Optional[threading.Event], step: str = "") -> None:
        """批量操作的步骤之间检查取消信号

        Raises:
            OperationCancelledException: 已请求取消
        """
        if cancel_event is not None and cancel_event.is_set():
            self.logger.warning(f"操作已取消: {step}")
            raise Err.cancelled(details=[step] if step else None)
