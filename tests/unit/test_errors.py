"""Tests for cx_common.errors and cx_common.response."""

from unittest.mock import MagicMock

from pydantic import BaseModel

from src.cx_common.errors import (
    ActorBannedError,
    ActorRequiredError,
    AppError,
    AuctionEndedError,
    AuctionNotActiveError,
    AuctionNotEndedError,
    AuctionNotFoundError,
    BidTooLowError,
    CapacityExhaustedError,
    ConcurrencyConflictError,
    DuplicateOfferError,
    ExpiredError,
    FeatureDisabledError,
    InvalidAmountError,
    InvalidTransitionError,
    ItemNotFoundError,
    NoActivePhaseError,
    ScheduleExhaustedError,
    SelfDealingError,
    UnauthorizedError,
)
from src.cx_common.response import ApiResponse, error_response, success_response, wrap


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.message == "Internal error"
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="x"), Exception)


class TestSpecificErrors:
    def test_actor_required(self) -> None:
        err = ActorRequiredError()
        assert (err.code, err.http_status) == (1001, 401)

    def test_item_not_found(self) -> None:
        err = ItemNotFoundError("CX-00001")
        assert (err.code, err.http_status) == (2001, 404)
        assert "CX-00001" in err.message

    def test_no_active_phase(self) -> None:
        assert NoActivePhaseError().code == 3001

    def test_schedule_exhausted(self) -> None:
        err = ScheduleExhaustedError(20)
        assert (err.code, err.http_status) == (3002, 409)
        assert "20" in err.message

    def test_capacity_exhausted_message(self) -> None:
        err = CapacityExhaustedError(1)
        assert err.code == 3003
        assert "capacity exhausted" in err.message

    def test_self_dealing(self) -> None:
        err = SelfDealingError()
        assert (err.code, err.http_status) == (4002, 422)

    def test_expired_is_gone(self) -> None:
        err = ExpiredError("off-1")
        assert (err.code, err.http_status) == (4003, 410)

    def test_duplicate_offer(self) -> None:
        err = DuplicateOfferError("CX-00001", "off-1")
        assert err.code == 4004
        assert "off-1" in err.message

    def test_auction_errors(self) -> None:
        missing = AuctionNotFoundError("auc-1")
        assert (missing.code, missing.http_status) == (5001, 404)
        assert AuctionNotActiveError("auc-1", "ENDED").http_status == 409
        err = BidTooLowError(12500)
        assert (err.code, err.http_status) == (5003, 422)
        assert "12500" in err.message
        assert AuctionEndedError("auc-1").http_status == 410
        assert AuctionNotEndedError("auc-1").code == 5005

    def test_marketplace_guards(self) -> None:
        assert (ActorBannedError().code, ActorBannedError().http_status) == (1003, 403)
        err = FeatureDisabledError("offers")
        assert (err.code, err.http_status) == (9003, 503)
        assert "offers" in err.message

    def test_state_machine_errors(self) -> None:
        assert InvalidTransitionError("x").code == 6001
        assert ConcurrencyConflictError("offer a").code == 6002
        assert InvalidAmountError("x").http_status == 422
        assert UnauthorizedError("x").http_status == 403


class TestApiResponse:
    def test_success(self) -> None:
        resp = success_response({"a": 1})
        assert resp.code == 0
        assert resp.message == "success"
        assert resp.data == {"a": 1}
        assert resp.request_id.startswith("req_")

    def test_error(self) -> None:
        resp = error_response(6001, "Invalid transition: x")
        assert resp.code == 6001
        assert resp.data is None

    def test_default_is_success(self) -> None:
        assert ApiResponse().code == 0

    def test_wrap_echoes_request_id(self) -> None:
        class Payload(BaseModel):
            value: int

        request = MagicMock()
        request.state.request_id = "req_abc123"
        resp = wrap(request, Payload(value=3))
        assert resp.request_id == "req_abc123"
        assert resp.data == {"value": 3}
