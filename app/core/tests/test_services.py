"""
Tests for core service layer patterns.
"""

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult


class TestServiceResult:
    """Tests for ServiceResult."""

    def test_ok(self):
        result = ServiceResult.ok({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert result.error is None
        assert bool(result) is True

    def test_failure(self):
        result = ServiceResult.failure(
            "Cashbox not found",
            error_code="CASHBOX_NOT_FOUND",
        )

        assert result.success is False
        assert result.data is None
        assert bool(result) is False

    def test_from_application_error_keeps_code(self):
        exc = NotFoundError("Cashbox 1 not found", error_code="CASHBOX_NOT_FOUND")

        result = ServiceResult.from_exception(exc)

        assert result.error == "Cashbox 1 not found"
        assert result.error_code == "CASHBOX_NOT_FOUND"

    def test_from_plain_exception_uses_class_name(self):
        result = ServiceResult.from_exception(RuntimeError("boom"))

        assert result.error == "boom"
        assert result.error_code == "RUNTIMEERROR"

    def test_from_exception_code_override(self):
        result = ServiceResult.from_exception(ConflictError("busy"), error_code="RETRY")

        assert result.error_code == "RETRY"


class TestBaseService:
    """Tests for BaseService utilities."""

    def test_logger_named_after_service(self):
        class ExampleService(BaseService):
            pass

        logger = ExampleService.get_logger()

        assert logger.name == f"{__name__}.ExampleService"
