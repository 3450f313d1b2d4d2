"""分页结果与 Pydantic 基类"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """一页查询结果

    使用示例:
        page = Page.build(rows, total_records=57, page=2, page_size=20)
        page.total_pages  # 3
    """
    rows: List[T] = field(default_factory=list)
    total_records: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 0

    @classmethod
    def build(cls, rows: List[T], total_records: int, page: int, page_size: int) -> "Page[T]":
        """根据总条数计算总页数"""
        total_pages = math.ceil(total_records / page_size) if total_records and page_size else 0
        return cls(rows=list(rows), total_records=total_records, page=page, page_size=page_size, total_pages=total_pages)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "total_records": self.total_records,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


class BaseSchemas(BaseModel):
    """可直接从 ORM 对象构建的 Pydantic 基类"""
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
