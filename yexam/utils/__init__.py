"""通用工具模块"""

from .file_size import parse_file_size
from .naming import to_snake_case

__all__ = [
    "parse_file_size",
    "to_snake_case",
]
