from fastapi import APIRouter
from orchsim.models import OrchestratorMessage
from orchsim.services import chat as chat_service

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

@router.post("/orchestrator/messages")
def orchestrator_messages(req: OrchestratorMessage):
    return chat_service.handle_orchestrator_message(req.model_dump())
