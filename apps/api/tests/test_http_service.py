"""Tests for HTTP retry helper."""

import httpx
import pytest

from wecarry.services.http_service import request_with_retries


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_status():
    req = httpx.Request("POST", "https://example.com")
    responses = [
        httpx.Response(500, request=req),
        httpx.Response(200, json={"ok": True}, request=req),
    ]
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return responses.pop(0)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_retries_on_request_error():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=req)
        return httpx.Response(200, json={"ok": True}, request=req)

    response = await request_with_retries(
        request_fn,
        max_attempts=2,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 2
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_request_with_retries_raises_after_max_attempts():
    req = httpx.Request("POST", "https://example.com")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        raise httpx.ConnectError("boom", request=req)

    with pytest.raises(httpx.RequestError):
        await request_with_retries(
            request_fn,
            max_attempts=2,
            base_delay=0,
            max_delay=0,
        )

    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_request_with_retries_returns_last_retryable_response():
    req = httpx.Request("POST", "https://api.resend.com/emails")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return httpx.Response(429, request=req)

    response = await request_with_retries(
        request_fn,
        max_attempts=3,
        base_delay=0,
        max_delay=0,
    )

    assert calls["count"] == 3
    assert response.status_code == 429


@pytest.mark.asyncio
async def test_request_with_retries_does_not_retry_client_errors():
    req = httpx.Request("POST", "https://api.resend.com/emails")
    calls = {"count": 0}

    async def request_fn():
        calls["count"] += 1
        return httpx.Response(422, request=req)

    response = await request_with_retries(request_fn, base_delay=0, max_delay=0)

    assert calls["count"] == 1
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_request_with_retries_honours_retry_after(monkeypatch):
    req = httpx.Request("POST", "https://api.resend.com/emails")
    responses = [
        httpx.Response(429, headers={"Retry-After": "2"}, request=req),
        httpx.Response(200, request=req),
    ]
    sleeps: list[float] = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("wecarry.services.http_service.asyncio.sleep", fake_sleep)

    async def request_fn():
        return responses.pop(0)

    response = await request_with_retries(request_fn, max_delay=10, label="resend")

    assert response.status_code == 200
    assert sleeps == [2.0]
