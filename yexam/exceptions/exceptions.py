"""业务异常类定义

分类树引擎的所有可预期错误都以 BusinessException 子类抛出，
每个子类通过类属性声明默认消息、错误代码与 HTTP 状态码。
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from fastapi import status


class ErrorCode(str, Enum):
    """错误代码枚举

    继承自 str，序列化到响应体时直接输出枚举值。

    使用示例:
        from yexam.exceptions import ErrorCode, ResourceConflictException

        raise ResourceConflictException("分类已被其他用户修改", code=ErrorCode.VERSION_CONFLICT)
    """

    # 通用
    BUSINESS_ERROR = "BUSINESS_ERROR"
    OPERATION_FAILED = "OPERATION_FAILED"
    OPERATION_CANCELLED = "OPERATION_CANCELLED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # 404
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"

    # 409
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"
    HAS_CHILDREN = "HAS_CHILDREN"
    HAS_ATTACHED_CONTENT = "HAS_ATTACHED_CONTENT"

    # 422
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_PARAMETER = "INVALID_PARAMETER"

    # 500
    INTEGRITY_VIOLATION = "INTEGRITY_VIOLATION"
    DATABASE_ERROR = "DATABASE_ERROR"


ErrorCodeType = Union[str, ErrorCode]


class BusinessException(Exception):
    """业务异常基类

    属性:
        message: 面向调用方的错误消息
        code: 错误代码（ErrorCode 或自定义字符串）
        status_code: 映射到 HTTP 响应的状态码
        details: 明细列表，例如阻止删除的子分类编码
        extra: 附加上下文，例如 category_id

    子类覆盖 default_message / default_code / default_status 即可，
    构造参数保持一致：(message, code=..., details=..., **extra)。

    使用示例:
        raise BusinessException("导入失败", code=ErrorCode.VALIDATION_ERROR, details=["第 3 个节点缺少编码"])
    """

    default_message: str = "业务处理失败"
    default_code: ErrorCodeType = ErrorCode.BUSINESS_ERROR
    default_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[ErrorCodeType] = None,
        status_code: Optional[int] = None,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.status_code = status_code or self.default_status
        self.details = list(details) if details else []
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典，details 与 extra 为副本"""
        return {
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": copy.deepcopy(self.details),
            "extra": copy.deepcopy(self.extra),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, status_code={self.status_code})"


class ResourceNotFoundException(BusinessException):
    """资源不存在

    使用示例:
        raise ResourceNotFoundException("分类不存在", code=ErrorCode.CATEGORY_NOT_FOUND, category_id=42)
    """

    default_message = "资源不存在"
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_status = status.HTTP_404_NOT_FOUND


class ResourceConflictException(BusinessException):
    """资源冲突：编码重复、乐观锁版本不一致等"""

    default_message = "资源冲突"
    default_code = ErrorCode.RESOURCE_CONFLICT
    default_status = status.HTTP_409_CONFLICT


class ValidationException(BusinessException):
    """参数或导入数据不合法"""

    default_message = "数据验证失败"
    default_code = ErrorCode.VALIDATION_ERROR
    default_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class CircularReferenceException(ResourceConflictException):
    """移动或复制到自身、自身子孙节点下"""

    default_message = "操作会导致循环引用"
    default_code = ErrorCode.CIRCULAR_REFERENCE


class HasChildrenException(ResourceConflictException):
    """存在未删除的子分类"""

    default_message = "存在子分类，无法删除"
    default_code = ErrorCode.HAS_CHILDREN


class HasAttachedContentException(ResourceConflictException):
    """分类下仍挂有内容（如试题）"""

    default_message = "分类下存在关联内容，无法删除"
    default_code = ErrorCode.HAS_ATTACHED_CONTENT


class IntegrityViolationException(BusinessException):
    """树结构完整性异常

    校验发现孤儿节点或循环引用时由 ensure_valid() 抛出，不会自动修复。
    """

    default_message = "分类树完整性校验失败"
    default_code = ErrorCode.INTEGRITY_VIOLATION
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class OperationCancelledException(BusinessException):
    """批量操作被取消，事务已回滚"""

    default_message = "操作已取消"
    default_code = ErrorCode.OPERATION_CANCELLED
    default_status = status.HTTP_409_CONFLICT


class Err:
    """异常快捷创建

    使用示例:
        from yexam.exceptions import Err

        raise Err.not_found("分类不存在", category_id=1)
        raise Err.conflict("编码已存在", code=ErrorCode.DUPLICATE_ENTRY)
        raise Err.has_children(details=["MATH-01"])
    """

    @staticmethod
    def not_found(message: Optional[str] = None, **kwargs) -> ResourceNotFoundException:
        return ResourceNotFoundException(message, **kwargs)

    @staticmethod
    def conflict(message: Optional[str] = None, **kwargs) -> ResourceConflictException:
        return ResourceConflictException(message, **kwargs)

    @staticmethod
    def invalid(message: Optional[str] = None, **kwargs) -> ValidationException:
        return ValidationException(message, **kwargs)

    @staticmethod
    def circular(message: Optional[str] = None, **kwargs) -> CircularReferenceException:
        return CircularReferenceException(message, **kwargs)

    @staticmethod
    def has_children(message: Optional[str] = None, **kwargs) -> HasChildrenException:
        return HasChildrenException(message, **kwargs)

    @staticmethod
    def has_attached_content(message: Optional[str] = None, **kwargs) -> HasAttachedContentException:
        return HasAttachedContentException(message, **kwargs)

    @staticmethod
    def integrity(message: Optional[str] = None, **kwargs) -> IntegrityViolationException:
        return IntegrityViolationException(message, **kwargs)

    @staticmethod
    def cancelled(message: Optional[str] = None, **kwargs) -> OperationCancelledException:
        return OperationCancelledException(message, **kwargs)

    @staticmethod
    def fail(message: Optional[str] = None, **kwargs) -> BusinessException:
        return BusinessException(message, **kwargs)
