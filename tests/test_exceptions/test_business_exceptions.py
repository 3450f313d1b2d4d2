"""业务异常与异常处理器测试"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from yexam.exceptions import (
    BusinessException,
    CircularReferenceException,
    Err,
    ErrorCode,
    HasAttachedContentException,
    HasChildrenException,
    IntegrityViolationException,
    OperationCancelledException,
    ResourceConflictException,
    ResourceNotFoundException,
    ValidationException,
    error_body,
    register_exception_handlers,
)


class TestErrFactories:
    """Err 快捷方法测试"""

    @pytest.mark.parametrize("factory, exc_class, code, status_code", [
        (Err.not_found, ResourceNotFoundException, ErrorCode.RESOURCE_NOT_FOUND, 404),
        (Err.conflict, ResourceConflictException, ErrorCode.RESOURCE_CONFLICT, 409),
        (Err.invalid, ValidationException, ErrorCode.VALIDATION_ERROR, 422),
        (Err.circular, CircularReferenceException, ErrorCode.CIRCULAR_REFERENCE, 409),
        (Err.has_children, HasChildrenException, ErrorCode.HAS_CHILDREN, 409),
        (Err.has_attached_content, HasAttachedContentException, ErrorCode.HAS_ATTACHED_CONTENT, 409),
        (Err.integrity, IntegrityViolationException, ErrorCode.INTEGRITY_VIOLATION, 500),
        (Err.cancelled, OperationCancelledException, ErrorCode.OPERATION_CANCELLED, 409),
        (Err.fail, BusinessException, ErrorCode.BUSINESS_ERROR, 400),
    ])
    def test_defaults(self, factory, exc_class, code, status_code):
        exc = factory()

        assert isinstance(exc, exc_class)
        assert exc.code == code
        assert exc.status_code == status_code
        assert exc.message

    def test_specialized_conflicts_are_conflicts(self):
        assert isinstance(Err.circular(), ResourceConflictException)
        assert isinstance(Err.has_children(), ResourceConflictException)

    def test_custom_code_and_extra(self):
        exc = Err.not_found("分类不存在", code=ErrorCode.CATEGORY_NOT_FOUND, category_id=42)

        assert exc.code == ErrorCode.CATEGORY_NOT_FOUND
        assert exc.extra == {"category_id": 42}
        assert str(exc) == "分类不存在"

    def test_error_code_is_str(self):
        assert ErrorCode.HAS_CHILDREN == "HAS_CHILDREN"


class TestToDict:
    """to_dict 测试"""

    def test_to_dict(self):
        exc = Err.has_children(details=["MATH-ALG"], category_id=1)

        data = exc.to_dict()

        assert data["code"] == ErrorCode.HAS_CHILDREN
        assert data["status_code"] == 409
        assert data["details"] == ["MATH-ALG"]
        assert data["extra"] == {"category_id": 1}

    def test_to_dict_returns_copies(self):
        exc = Err.invalid(details=["缺少编码"])

        exc.to_dict()["details"].append("外部修改")

        assert exc.details == ["缺少编码"]

    def test_repr(self):
        assert "HasChildrenException" in repr(Err.has_children())


@pytest.fixture
def client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/categories/{category_id}")
    def get_category(category_id: int):
        raise Err.not_found("分类不存在", code=ErrorCode.CATEGORY_NOT_FOUND, category_id=category_id)

    @app.delete("/categories/{category_id}")
    def delete_category(category_id: int):
        raise Err.has_children(details=["MATH-ALG", "MATH-GEO"])

    @app.post("/categories/import")
    def import_categories():
        raise BusinessException("导入失败", code="IMPORT_FAILED")

    return TestClient(app)


class TestExceptionHandler:
    """FastAPI 异常处理器测试"""

    def test_not_found_response(self, client):
        response = client.get("/categories/42")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "error"
        assert body["message"] == "分类不存在"
        assert body["error_code"] == "CATEGORY_NOT_FOUND"
        assert body["msg_details"] == []
        assert body["data"] == {}

    def test_details_in_response(self, client):
        response = client.delete("/categories/1")

        assert response.status_code == 409
        body = response.json()
        assert body["error_code"] == "HAS_CHILDREN"
        assert body["msg_details"] == ["MATH-ALG", "MATH-GEO"]

    def test_string_error_code(self, client):
        response = client.post("/categories/import")

        assert response.status_code == 400
        assert response.json()["error_code"] == "IMPORT_FAILED"

    def test_error_body(self):
        body = error_body(Err.circular(details=["MATH-ALG"]))

        assert body == {
            "status": "error",
            "message": "操作会导致循环引用",
            "msg_details": ["MATH-ALG"],
            "data": {},
            "error_code": "CIRCULAR_REFERENCE",
        }
