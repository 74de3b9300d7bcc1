"""Tests for core and notification exceptions."""

from notification_service.core import exceptions as exc
from notification_service.features.notifications import exceptions as notify_exc


def test_app_exception_defaults_title() -> None:
    error = exc.AppException(status_code=400, detail="bad")
    assert error.title == "Bad Request"
    assert error.extra == {}


def test_not_found_exception_fields() -> None:
    error = exc.NotFoundException(detail="missing")
    assert error.status_code == 404
    assert error.title == "Not Found"


def test_unknown_template_is_not_found() -> None:
    error = notify_exc.UnknownTemplateError("violation_recorded")
    assert error.status_code == 404
    assert error.type == "template-not-found"
    assert error.extra["template_name"] == "violation_recorded"


def test_missing_variable_keeps_order() -> None:
    error = notify_exc.MissingVariableError(["b", "a"], template_name="t")
    assert error.missing == ["b", "a"]
    assert error.status_code == 422
    assert "b, a" in error.detail


def test_activation_conflict_is_409() -> None:
    error = notify_exc.ActivationConflictError("email")
    assert error.status_code == 409
    assert error.extra["channel_type"] == "email"


def test_resolution_error_is_503() -> None:
    error = notify_exc.ResolutionError("down", role="guru_bk")
    assert error.status_code == 503
    assert error.extra == {"role": "guru_bk"}
