from __future__ import annotations

from datetime import datetime, timezone

import pytest

from payloads import encode, envelope, failure
from tetrch.api.errors import ApiError, DecodeError
from tetrch.models.envelope import CacheStatus, decode_envelope
from tetrch.models.primitives import UnknownCode


def passthrough(raw, path):
    return raw


def test_success_envelope_carries_payload_and_cache():
    result = decode_envelope(200, encode(envelope({"answer": 42})), passthrough)
    assert result.success is True
    assert result.payload == {"answer": 42}
    assert result.cache_status is CacheStatus.HIT
    assert result.cached_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert result.cached_until > result.cached_at


def test_cache_metadata_is_optional():
    result = decode_envelope(200, encode(envelope([1, 2], cache=False)), passthrough)
    assert result.payload == [1, 2]
    assert result.cache_status is None
    assert result.cached_at is None


def test_unknown_cache_status_is_kept():
    document = {"success": True, "data": {}, "cache": {"status": "stale"}}
    result = decode_envelope(200, encode(document), passthrough)
    assert result.cache_status == UnknownCode(raw="stale")


def test_unsuccessful_response_raises_api_error_with_key():
    body = encode(failure("No such user!", key="users:not_found", context="osk2"))
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(200, body, passthrough)
    assert exc_info.value.code == "users:not_found"
    assert exc_info.value.message == "No such user!"
    assert exc_info.value.context == "osk2"


def test_legacy_string_error_body():
    body = encode({"success": False, "error": "Not allowed"})
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(200, body, passthrough)
    assert exc_info.value.code == "api_error"
    assert exc_info.value.message == "Not allowed"


def test_404_maps_to_not_found():
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(404, encode(failure("No such user!")), passthrough)
    assert exc_info.value.code == "not_found"
    assert exc_info.value.status == 404


@pytest.mark.parametrize(
    ("status", "code"),
    [(400, "bad_request"), (429, "rate_limited"), (502, "server_error"), (418, "http_418")],
)
def test_error_codes_follow_http_status(status, code):
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(status, encode(failure("nope", key="ignored")), passthrough)
    assert exc_info.value.code == code


def test_unrecognised_error_body_is_a_decode_error():
    with pytest.raises(DecodeError):
        decode_envelope(503, b"<html>Bad gateway</html>", passthrough)


def test_non_json_success_body_is_a_decode_error():
    with pytest.raises(DecodeError) as exc_info:
        decode_envelope(200, b"not json", passthrough)
    assert exc_info.value.path == "<root>"


def test_missing_success_flag_is_a_decode_error():
    with pytest.raises(DecodeError) as exc_info:
        decode_envelope(200, encode({"data": {}}), passthrough)
    assert exc_info.value.path == "success"


def test_missing_data_is_a_decode_error():
    with pytest.raises(DecodeError) as exc_info:
        decode_envelope(200, encode({"success": True}), passthrough)
    assert exc_info.value.path == "data"


def test_payload_decode_errors_propagate():
    def failing(raw, path):
        raise DecodeError(f"{path}.xp", "missing required number")

    with pytest.raises(DecodeError) as exc_info:
        decode_envelope(200, encode(envelope({})), failing)
    assert exc_info.value.path == "data.xp"


def test_error_without_message_falls_back_to_key():
    body = encode({"success": False, "error": {"key": "users:not_found"}})
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(404, body, passthrough)
    assert exc_info.value.code == "not_found"
    assert exc_info.value.message == "users:not_found"


def test_error_status_without_error_body_uses_the_status():
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(404, encode({"success": False}), passthrough)
    assert exc_info.value.code == "not_found"
    assert exc_info.value.message == "Not Found"


def test_unsuccessful_response_without_error_body():
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(200, encode({"success": False}), passthrough)
    assert exc_info.value.code == "api_error"
    assert exc_info.value.status == 200


def test_unknown_status_without_error_body():
    with pytest.raises(ApiError) as exc_info:
        decode_envelope(599, encode({}), passthrough)
    assert exc_info.value.code == "server_error"
    assert exc_info.value.message == "HTTP 599"


def test_out_of_range_cache_timestamp_is_a_decode_error():
    document = {"success": True, "data": {}, "cache": {"status": "hit", "cached_at": 10**20}}
    with pytest.raises(DecodeError) as exc_info:
        decode_envelope(200, encode(document), passthrough)
    assert exc_info.value.path == "cache.cached_at"
