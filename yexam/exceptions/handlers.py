"""FastAPI 异常处理器

把分类树引擎抛出的 BusinessException 转成统一 JSON 响应：

    {"status": "error", "message": ..., "msg_details": [...], "data": {}, "error_code": ...}
"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from yexam.log import get_logger
from .exceptions import BusinessException

logger = get_logger()


def error_body(exc: BusinessException) -> Dict[str, Any]:
    """异常对应的响应体"""
    code = exc.code.value if hasattr(exc.code, "value") else exc.code
    return {
        "status": "error",
        "message": exc.message,
        "msg_details": exc.details,
        "data": {},
        "error_code": code,
    }


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    body = error_body(exc)
    logger.warning(
        f"{request.method} {request.url.path} -> {exc.status_code} {body['error_code']}: {exc.message}",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error_code": body["error_code"],
            "details": exc.details,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器

    使用示例:
        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(BusinessException, business_exception_handler)
    logger.debug("BusinessException 处理器已注册")
