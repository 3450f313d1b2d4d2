"""异常处理模块

使用示例:
    from yexam.exceptions import Err, ErrorCode, register_exception_handlers

    raise Err.not_found("分类不存在", code=ErrorCode.CATEGORY_NOT_FOUND)
"""

from .exceptions import (
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    ResourceNotFoundException,
    ResourceConflictException,
    ValidationException,
    CircularReferenceException,
    HasChildrenException,
    HasAttachedContentException,
    IntegrityViolationException,
    OperationCancelledException,
    Err,
)
from .handlers import (
    business_exception_handler,
    error_body,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "ResourceNotFoundException",
    "ResourceConflictException",
    "ValidationException",
    "CircularReferenceException",
    "HasChildrenException",
    "HasAttachedContentException",
    "IntegrityViolationException",
    "OperationCancelledException",
    "Err",
    "error_body",
    "business_exception_handler",
    "register_exception_handlers",
]
