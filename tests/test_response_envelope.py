import json

from fastapi import HTTPException

from core.errors import validation_failed
from core.response_envelope import error_payload, http_exception_response, success_payload


def test_success_payload_includes_request_id():
    payload = success_payload(
        data={"value": 1},
        message="ok",
        request_id="req-123",
    )
    assert payload["success"] is True
    assert payload["data"] == {"value": 1}
    assert payload["requestId"] == "req-123"


def test_error_payload_includes_request_id_and_error_message():
    payload = error_payload(
        message="failed",
        data={"code": "X"},
        request_id="req-999",
    )
    assert payload["success"] is False
    assert payload["error"] == "failed"
    assert payload["data"]["code"] == "X"
    assert payload["requestId"] == "req-999"


def test_http_exception_response_unpacks_app_exception():
    response = http_exception_response(validation_failed("phone_number", "phone_number is required for method 'mpesa'"))

    assert response.status_code == 422
    body = json.loads(response.body)
    assert body["error"] == "phone_number is required for method 'mpesa'"
    assert body["data"] == {"code": "VALIDATION_FAILED", "details": {"field": "phone_number"}}


def test_http_exception_response_handles_plain_string_detail():
    response = http_exception_response(HTTPException(status_code=404, detail="Not Found"))

    assert response.status_code == 404
    assert json.loads(response.body)["message"] == "Not Found"
