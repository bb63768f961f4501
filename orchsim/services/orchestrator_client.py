# orchsim/services/orchestrator_client.py
import logging
import time
from typing import Any, Dict, Optional

import httpx

from orchsim.config import ORCHESTRATOR_TIMEOUT_SEC
from orchsim.store import db

LOG = logging.getLogger(__name__)


def build_headers(session: Dict[str, Any], environment: Dict[str, Any], correlation_id: str) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "X-Correlation-Id": correlation_id,
        "X-Session-Id": session["id"],
    }
    if environment.get("auth_type") == "bearer":
        token = (environment.get("auth_config") or {}).get("token")
        if token:
            headers["Authorization"] = f"Bearer {token}"
    return headers


def build_body(session: Dict[str, Any], message: Dict[str, Any], correlation_id: str) -> Dict[str, Any]:
    return {
        "session_id": session.get("external_session_id") or session["id"],
        "message_id": message["id"],
        "type": message.get("type"),
        "content": message.get("content"),
        "payload": message.get("payload"),
        "correlation_id": correlation_id,
        "metadata": {
            "simulator_session_id": session["id"],
            "environment_id": session.get("environment_id"),
        },
    }


async def send_to_orchestrator(
    session: Dict[str, Any],
    environment: Dict[str, Any],
    message: Dict[str, Any],
    correlation_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    POST a chat message to <orchestrator_base_url>/inbound and record the exchange.
    Transport failures and non-2xx answers set error_flag; nothing is retried.
    """
    endpoint = f"{(environment.get('orchestrator_base_url') or '').rstrip('/')}/inbound"
    headers = build_headers(session, environment, correlation_id)
    body = build_body(session, message, correlation_id)

    status: Optional[int] = None
    response_body: Dict[str, Any] = {}
    error_flag = False
    started = time.monotonic()

    try:
        async with httpx.AsyncClient(timeout=ORCHESTRATOR_TIMEOUT_SEC, transport=transport) as client:
            resp = await client.post(endpoint, json=body, headers=headers)
        status = resp.status_code
        try:
            parsed = resp.json()
            response_body = parsed if isinstance(parsed, dict) else {"data": parsed}
        except ValueError:
            response_body = {}
        error_flag = not resp.is_success
    except httpx.HTTPError as e:
        error_flag = True
        response_body = {"error": str(e)}
        LOG.warning("Orchestrator call to %s failed: %s", endpoint, e)

    latency_ms = int((time.monotonic() - started) * 1000)

    db.insert_orchestrator_call({
        "environment_id": session.get("environment_id"),
        "session_id": session["id"],
        "direction": "outbound",
        "endpoint": endpoint,
        "method": "POST",
        "request_headers": headers,
        "request_body": body,
        "response_status": status,
        "response_body": response_body,
        "latency_ms": latency_ms,
        "error_flag": error_flag,
        "correlation_id": correlation_id,
    })

    return {"success": not error_flag, "response_status": status,
            "response_body": response_body, "latency_ms": latency_ms}
