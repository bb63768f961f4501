import logging
import uuid
from typing import Any, Dict, Optional

from orchsim.store import db

LOG = logging.getLogger(__name__)


def send_message(session: Dict[str, Any], content: Optional[str], payload: Optional[Dict[str, Any]] = None,
                 msg_type: str = "text") -> Dict[str, Any]:
    """
    Store an inbound (tester -> orchestrator) message under a fresh correlation id.
    Returns the stored message and whether the environment has an orchestrator to call.
    """
    correlation_id = str(uuid.uuid4())
    message = db.add_message(session["id"], "inbound", content, payload, msg_type, correlation_id)
    environment = db.get_environment(session["environment_id"])
    return {
        "message": message,
        "environment": environment,
        "correlation_id": correlation_id,
        "should_call": bool(environment and environment.get("orchestrator_base_url")),
    }


def handle_orchestrator_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Webhook: the orchestrator answers into a session (by simulator or external id)."""
    session = db.find_chat_session(data["session_id"])
    if not session:
        LOG.info("Webhook for unknown session %s", data["session_id"])
        return {"success": False, "error": f'Session "{data["session_id"]}" not found'}

    payload = data.get("payload") or {}
    message = db.add_message(
        session["id"],
        "outbound",
        data.get("content"),
        payload,
        payload.get("type") or "text",
        data.get("correlation_id"),
        data.get("run_id"),
    )

    db.insert_orchestrator_call({
        "environment_id": session["environment_id"],
        "session_id": session["id"],
        "direction": "inbound",
        "endpoint": "/webhooks/orchestrator/messages",
        "method": "POST",
        "request_body": data,
        "response_status": 200,
        "response_body": {"message_id": message["id"]},
        "latency_ms": 0,
        "error_flag": False,
        "correlation_id": data.get("correlation_id"),
    })

    return {"success": True, "message_id": message["id"]}
