"""Tests for api/base.py - Unified API response format."""

from datetime import timezone

from api.base import (
    success_response,
    error_response,
    ErrorCodes,
)


class TestSuccessResponse:
    """Tests for success_response()."""

    def test_structure(self):
        resp = success_response({"chave": 101})
        assert resp.success is True
        assert resp.data == {"chave": 101}
        assert resp.error is None

    def test_request_id_generated(self):
        resp = success_response({})
        assert resp.meta.request_id is not None
        assert len(resp.meta.request_id) > 0

    def test_request_id_kept(self):
        assert success_response([], request_id="req-1").meta.request_id == "req-1"

    def test_timestamp_is_utc(self):
        resp = success_response({})
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorResponse:
    """Tests for error_response()."""

    def test_structure(self):
        resp = error_response("TEST_ERROR", "Algo deu errado")
        assert resp.success is False
        assert resp.data is None
        assert resp.error.code == "TEST_ERROR"
        assert resp.error.message == "Algo deu errado"
        assert resp.error.details is None

    def test_details(self):
        resp = error_response(ErrorCodes.CONVERSION_INCOMPLETE, "msg", {"encaixe_chave": 40})
        assert resp.error.details == {"encaixe_chave": 40}

    def test_json_shape(self):
        dumped = error_response("ERR", "msg", request_id="r").model_dump(mode="json")
        assert set(dumped) == {"success", "data", "error", "meta"}
        assert dumped["meta"]["request_id"] == "r"

    def test_timestamp_is_utc(self):
        resp = error_response("ERR", "msg")
        assert resp.meta.timestamp.tzinfo == timezone.utc


class TestErrorCodes:
    """Tests that ErrorCodes carries the codes the browser branches on."""

    def test_auth_codes(self):
        assert ErrorCodes.NOT_AUTHENTICATED == "NOT_AUTHENTICATED"
        assert ErrorCodes.SESSION_EXPIRED == "SESSION_EXPIRED"
        assert ErrorCodes.ROLE_NOT_PERMITTED == "ROLE_NOT_PERMITTED"

    def test_lifecycle_codes(self):
        assert ErrorCodes.INVALID_STATUS_TRANSITION == "INVALID_STATUS_TRANSITION"
        assert ErrorCodes.OPERATION_IN_PROGRESS == "OPERATION_IN_PROGRESS"
        assert ErrorCodes.CONVERSION_INCOMPLETE == "CONVERSION_INCOMPLETE"

    def test_has_service_unavailable(self):
        assert ErrorCodes.SERVICE_UNAVAILABLE == "SERVICE_UNAVAILABLE"
