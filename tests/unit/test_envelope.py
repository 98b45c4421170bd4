"""
Unit tests for response envelope decoding.
"""
import json

import pytest

from tcg_catalog.core import ApiError, DecodeError, decode
from tcg_catalog.core.envelope import is_success_status


def body(**fields) -> bytes:
    return json.dumps(fields).encode()


class TestDecode:

    def test_success_envelope(self):
        raw = body(totalItems=250, success=True, errors=[], results=[{"productId": 1}])

        envelope = decode(raw, 200)

        assert envelope.total_items == 250
        assert envelope.success is True
        assert envelope.errors == []
        assert envelope.results == [{"productId": 1}]

    def test_accepts_text(self):
        envelope = decode('{"success": true, "results": []}', 200)

        assert envelope.success
        assert envelope.total_items == 0

    def test_missing_errors_default_to_empty(self):
        envelope = decode(body(success=True, errors=None), 200)

        assert envelope.errors == []

    def test_failed_status_with_errors_raises(self):
        raw = body(success=False, errors=["No products were found.", "Try again."])

        with pytest.raises(ApiError) as exc_info:
            decode(raw, 404)

        assert exc_info.value.errors == ["No products were found.", "Try again."]
        assert exc_info.value.status == 404
        assert str(exc_info.value) == "No products were found. Try again."

    def test_failed_status_without_errors_returns_envelope(self):
        envelope = decode(body(success=False, errors=[], results=[]), 500)

        assert envelope.success is False
        assert envelope.errors == []

    def test_errors_with_success_status_do_not_raise(self):
        envelope = decode(body(success=True, errors=["partial"], results=[1]), 200)

        assert envelope.errors == ["partial"]
        assert envelope.results == [1]

    def test_invalid_json_keeps_body(self):
        with pytest.raises(DecodeError) as exc_info:
            decode(b"<html>bad gateway</html>", 200)

        assert exc_info.value.body == "<html>bad gateway</html>"
        assert "<html>bad gateway</html>" in str(exc_info.value)

    def test_non_object_json(self):
        with pytest.raises(DecodeError, match="expected a JSON object"):
            decode(b"[1, 2, 3]", 200)


@pytest.mark.parametrize("status,expected", [
    (200, True),
    (204, True),
    (304, True),
    (399, True),
    (199, False),
    (400, False),
    (404, False),
    (500, False),
])
def test_success_status_class(status, expected):
    assert is_success_status(status) is expected
