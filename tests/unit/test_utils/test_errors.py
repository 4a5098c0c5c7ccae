"""Tests for error handling utilities."""

import pytest

from rentcrowd.utils.errors import (
    ApiError,
    LocationError,
    NetworkError,
    OperationResult,
    capture,
    error_message,
)


@pytest.mark.unit
def test_error_message_prefers_server_text():
    """Test the message chosen for a failed operation."""
    assert error_message(ApiError("Email already registered", status_code=400), "Registration failed") == \
        "Email already registered"
    assert error_message(ApiError(None, status_code=500), "Registration failed") == "Registration failed"
    assert error_message(ValueError("boom"), "Registration failed") == "Registration failed"


@pytest.mark.unit
def test_network_error_is_api_error():
    """Test that NetworkError is caught by ApiError handlers."""
    error = NetworkError(ConnectionError("refused"))

    assert isinstance(error, ApiError)
    assert isinstance(error.cause, ConnectionError)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_capture_success():
    """Test capturing a successful operation."""
    async def operation():
        return 42

    result = await capture(operation())

    assert result == OperationResult(ok=True, value=42)
    assert result.unwrap() == 42


@pytest.mark.unit
@pytest.mark.asyncio
async def test_capture_failure():
    """Test capturing a failed operation and re-raising on unwrap."""
    async def operation():
        raise LocationError("no fix")

    result = await capture(operation())

    assert result.ok is False
    assert isinstance(result.error, LocationError)
    with pytest.raises(LocationError):
        result.unwrap()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_capture_malformed_response():
    """Test that a malformed-body failure is returned, not raised."""
    async def operation():
        raise KeyError("user")

    result = await capture(operation())

    assert result.ok is False
    assert isinstance(result.error, KeyError)
    with pytest.raises(KeyError):
        result.unwrap()
