"""
Decoder for the uniform response wrapper returned by every API endpoint.

    {"totalItems": 250, "success": true, "errors": [], "results": [...]}
"""
import json
from dataclasses import dataclass, field
from typing import Any, Union

from .errors import ApiError, DecodeError


@dataclass
class Envelope:
    """
    Parsed response wrapper.

    Attributes:
        total_items: Size of the full collection, regardless of page size
        success: Success flag reported by the API
        errors: Error strings reported by the API
        results: Raw decoded payload, left to the caller to interpret
    """
    total_items: int = 0
    success: bool = False
    errors: list[str] = field(default_factory=list)
    results: Any = None


def is_success_status(status: int) -> bool:
    """Treat 2xx and 3xx as the success class."""
    return status // 200 == 1


def decode(raw_body: Union[bytes, str], http_status: int) -> Envelope:
    """
    Decode an envelope from a response body.

    A failing HTTP status only raises when the envelope explains why; otherwise
    the envelope is returned as-is so callers keep any partial payload.

    Args:
        raw_body: Response body
        http_status: HTTP status code of the response

    Returns:
        The decoded Envelope

    Raises:
        DecodeError: If the body is not a JSON object
        ApiError: If the status is not successful and errors were reported
    """
    text = raw_body.decode("utf-8", errors="replace") if isinstance(raw_body, bytes) else raw_body

    try:
        data = json.loads(text)
    except ValueError as e:
        raise DecodeError(str(e), body=text) from e

    if not isinstance(data, dict):
        raise DecodeError("expected a JSON object", body=text)

    errors = [str(err) for err in (data.get("errors") or [])]
    envelope = Envelope(
        total_items=int(data.get("totalItems") or 0),
        success=bool(data.get("success", False)),
        errors=errors,
        results=data.get("results"),
    )

    if not is_success_status(http_status) and envelope.errors:
        raise ApiError(envelope.errors, status=http_status)

    return envelope
