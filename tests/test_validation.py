"""Tests for response envelope validation."""

import httpx
import pytest

from mealsync import ApiResponse, ApiResponseError, ValidationError, validate_response
from mealsync.errors import INVALID_RESPONSE, ErrorKind
from mealsync.validation import decode_json, error_message, is_api_response


class TestValidateResponse:
    def test_success_envelope(self) -> None:
        response = validate_response({"success": True, "data": [1, 2]}, "/meals")
        assert response == ApiResponse(success=True, data=[1, 2])

    def test_message_is_kept(self) -> None:
        response = validate_response({"success": True, "message": "ok"}, "/x")
        assert response.message == "ok"
        assert response.data is None

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            "success",
            {},
            {"success": "true"},
            {"success": 1},
            {"success": True, "message": 42},
            {"success": True, "error": ["x"]},
        ],
    )
    def test_malformed_payload(self, payload) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_response(payload, "/meals")
        error = exc_info.value
        assert error.code == INVALID_RESPONSE
        assert error.envelope.kind is ErrorKind.VALIDATION
        assert "/meals" in error.message

    def test_failure_envelope_uses_server_message(self) -> None:
        with pytest.raises(ApiResponseError, match="no meals today"):
            validate_response({"success": False, "message": "no meals today"}, "/meals")

    def test_failure_envelope_falls_back_to_error_then_endpoint(self) -> None:
        with pytest.raises(ApiResponseError, match="denied"):
            validate_response({"success": False, "error": "denied"}, "/x")
        with pytest.raises(ApiResponseError, match="/x"):
            validate_response({"success": False}, "/x")

    def test_is_api_response(self) -> None:
        assert is_api_response({"success": False})
        assert not is_api_response({"data": 1})


class TestDecoding:
    def test_non_json_body_is_invalid(self) -> None:
        response = httpx.Response(200, text="<html>oops</html>")
        with pytest.raises(ValidationError) as exc_info:
            decode_json(response, "/meals")
        assert exc_info.value.status == 200

    def test_error_message_from_body(self) -> None:
        response = httpx.Response(422, json={"message": "date is required"})
        message, details = error_message(response)
        assert message == "date is required"
        assert details == {"message": "date is required"}

    def test_error_message_fallback(self) -> None:
        response = httpx.Response(502, text="bad gateway")
        message, details = error_message(response)
        assert message == "HTTP 502: Bad Gateway"
        assert details == {}
