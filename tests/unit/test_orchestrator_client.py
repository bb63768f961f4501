import json

import httpx
import pytest

from orchsim.services.orchestrator_client import send_to_orchestrator
from orchsim.store import db


@pytest.fixture
def bearer_env(temp_db):
    return db.create_environment({
        "name": "Staging",
        "code": "STG",
        "orchestrator_base_url": "http://orchestrator.test/api/v1/",
        "auth_type": "bearer",
        "auth_config": {"token": "secret-token"},
    })


@pytest.fixture
def session_and_message(bearer_env):
    session = db.create_chat_session(bearer_env["id"], external_session_id="ext-1")
    message = db.add_message(session["id"], "inbound", "hello", {}, "text", "corr-1")
    return session, message


@pytest.mark.asyncio
async def test_successful_call_is_logged_with_headers(bearer_env, session_and_message):
    session, message = session_and_message
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"accepted": True})

    result = await send_to_orchestrator(session, bearer_env, message, "corr-1",
                                        transport=httpx.MockTransport(handler))

    assert result["success"] is True
    assert result["response_status"] == 200
    assert seen["url"] == "http://orchestrator.test/api/v1/inbound"
    assert seen["headers"]["authorization"] == "Bearer secret-token"
    assert seen["headers"]["x-correlation-id"] == "corr-1"
    assert seen["body"]["session_id"] == "ext-1"
    assert seen["body"]["metadata"]["simulator_session_id"] == session["id"]

    calls = db.list_orchestrator_calls(correlation_id="corr-1")
    assert len(calls) == 1
    assert calls[0]["direction"] == "outbound"
    assert calls[0]["error_flag"] is False
    assert calls[0]["response_body"] == {"accepted": True}


@pytest.mark.asyncio
async def test_non_2xx_sets_error_flag(bearer_env, session_and_message):
    session, message = session_and_message
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))

    result = await send_to_orchestrator(session, bearer_env, message, "corr-2", transport=transport)

    assert result["success"] is False
    assert result["response_status"] == 503
    assert db.list_orchestrator_calls(correlation_id="corr-2")[0]["error_flag"] is True


@pytest.mark.asyncio
async def test_transport_failure_is_recorded_not_raised(bearer_env, session_and_message):
    session, message = session_and_message

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await send_to_orchestrator(session, bearer_env, message, "corr-3",
                                        transport=httpx.MockTransport(handler))

    assert result["success"] is False
    assert result["response_status"] is None
    call = db.list_orchestrator_calls(correlation_id="corr-3")[0]
    assert call["error_flag"] is True
    assert "connection refused" in call["response_body"]["error"]
