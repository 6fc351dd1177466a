from prometheus_client import REGISTRY
from structlog.testing import capture_logs

from ztp.core.exceptions import (
    ErrorCategory,
    ErrorSeverity,
    MissingParameterError,
    TemplateNotFoundError,
    TemplateRenderError,
    ValidationException,
    record_error,
)


def _errors_total(error_type: str, category: str) -> float:
    value = REGISTRY.get_sample_value(
        "ztp_errors_total", {"error_type": error_type, "category": category}
    )
    return value or 0.0


def test_template_errors_carry_id_and_category() -> None:
    error = TemplateNotFoundError("Template demo does not exist", template_id="demo")

    assert error.template_id == "demo"
    assert error.details == {"template_id": "demo"}
    assert error.category is ErrorCategory.NOT_FOUND
    assert error.severity is ErrorSeverity.WARNING
    assert error.error_id.startswith("ERR-")


def test_missing_parameter_error_lists_names() -> None:
    error = MissingParameterError("demo", ["Host", "Token"])

    assert isinstance(error, ValidationException)
    assert error.missing == ["Host", "Token"]
    assert error.details["missing"] == ["Host", "Token"]
    assert "Host, Token" in error.message


def test_record_error_counts_and_logs() -> None:
    before = _errors_total("TemplateRenderError", "rendering")
    error = TemplateRenderError("boom", template_id="demo")

    with capture_logs() as logs:
        context = record_error(error, tool="render_template")

    assert context is not None
    assert context.error_id == error.error_id
    assert context.details == {"template_id": "demo", "tool": "render_template"}
    assert _errors_total("TemplateRenderError", "rendering") == before + 1
    assert logs[0]["event"] == "application_error"
    assert logs[0]["log_level"] == "error"


def test_record_error_handles_foreign_exceptions() -> None:
    before = _errors_total("KeyError", "unknown")

    with capture_logs() as logs:
        assert record_error(KeyError("x"), tool="retrieve_templates") is None

    assert _errors_total("KeyError", "unknown") == before + 1
    assert logs[0]["event"] == "unhandled_error"
