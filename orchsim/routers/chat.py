# orchsim/routers/chat.py
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, HTTPException, Query
from orchsim.models import MessageCreate, SessionCreate
from orchsim.services import chat as chat_service
from orchsim.services.orchestrator_client import send_to_orchestrator
from orchsim.store import db

router = APIRouter(prefix="/chat", tags=["chat"])

def _session_or_404(session_id: str):
    session = db.get_chat_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f'Session "{session_id}" not found')
    return session

@router.post("/sessions", status_code=201)
def create_session(req: SessionCreate):
    if not db.get_environment(req.environment_id):
        raise HTTPException(status_code=404, detail=f'Environment with id "{req.environment_id}" not found')
    return db.create_chat_session(req.environment_id, req.external_session_id, req.metadata)

@router.get("/sessions")
def list_sessions(environment_id: Optional[str] = Query(None)):
    return db.list_chat_sessions(environment_id)

@router.get("/sessions/{session_id}")
def get_session(session_id: str):
    session = _session_or_404(session_id)
    return {**session, "messages": db.get_messages(session_id)}

@router.get("/sessions/{session_id}/messages")
def get_messages(session_id: str):
    _session_or_404(session_id)
    return db.get_messages(session_id)

@router.post("/sessions/{session_id}/messages")
async def send_message(session_id: str, req: MessageCreate, background: BackgroundTasks):
    """
    Store the tester's message and, when the environment points at an orchestrator,
    forward it in the background. The call outcome lands in /observability.
    """
    session = _session_or_404(session_id)
    if session["status"] == "closed":
        raise HTTPException(status_code=409, detail=f'Session "{session_id}" is closed')
    sent = chat_service.send_message(session, req.content, req.payload, req.type)
    if sent["should_call"]:
        background.add_task(send_to_orchestrator, session, sent["environment"], sent["message"],
                            sent["correlation_id"])
    return {
        "message_id": sent["message"]["id"],
        "correlation_id": sent["correlation_id"],
        "orchestrator_call_enqueued": sent["should_call"],
    }

@router.post("/sessions/{session_id}/close")
def close_session(session_id: str):
    _session_or_404(session_id)
    db.close_chat_session(session_id)
    return db.get_chat_session(session_id)
