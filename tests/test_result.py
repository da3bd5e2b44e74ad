from decimal import Decimal

from whatsapp_desk.services.result import Result


class TestResult:
    def test_success(self):
        result = Result.success(Decimal("12.50"))
        assert result.ok is True
        assert result.value == Decimal("12.50")
        assert result.error is None

    def test_failure(self):
        result = Result.failure("Splynx timeout", "timeout")
        assert result.ok is False
        assert result.error == "Splynx timeout"
        assert result.error_code == "timeout"
        assert result.value is None

    def test_failure_default_code(self):
        assert Result.failure("boom").error_code == "unknown"

    def test_unwrap_or(self):
        assert Result.success("active").unwrap_or("unknown") == "active"
        assert Result.failure("boom").unwrap_or("unknown") == "unknown"
