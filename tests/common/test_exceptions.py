# tests/common/test_exceptions.py
"""
Тесты доменных исключений.
"""

import pytest

from roadside.common.exceptions import (
    AlreadyAccepted,
    AlreadyProcessed,
    DomainError,
    Forbidden,
    InsufficientFunds,
    InvalidState,
    MissingPayoutDestination,
    NotFound,
    Unauthorized,
    UpstreamPaymentFailure,
    ValidationError,
    WrongType,
)


class TestDomainErrors:
    """Коды и HTTP статусы исключений."""

    @pytest.mark.parametrize(
        "exc_class, code, status",
        [
            (ValidationError, "validation_error", 400),
            (WrongType, "wrong_type", 400),
            (Unauthorized, "unauthorized", 401),
            (Forbidden, "forbidden", 403),
            (NotFound, "not_found", 404),
            (InvalidState, "invalid_state", 409),
            (AlreadyAccepted, "already_accepted", 409),
            (AlreadyProcessed, "already_processed", 409),
            (InsufficientFunds, "insufficient_funds", 422),
            (MissingPayoutDestination, "missing_payout_destination", 422),
            (UpstreamPaymentFailure, "upstream_payment_failure", 502),
        ],
    )
    def test_code_and_status(self, exc_class, code: str, status: int) -> None:
        exc = exc_class("message")
        assert isinstance(exc, DomainError)
        assert exc.code == code
        assert exc.status_code == status

    def test_message_and_details(self) -> None:
        exc = NotFound("Заявка не найдена", {"request_id": "r-1"})
        assert exc.message == "Заявка не найдена"
        assert exc.details == {"request_id": "r-1"}
        assert str(exc) == "Заявка не найдена"

    def test_wrong_type_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            raise WrongType("not a withdrawal")
