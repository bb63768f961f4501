from typing import Optional
from fastapi import APIRouter, Query
from orchsim.store import db

router = APIRouter(prefix="/observability", tags=["observability"])

@router.get("/orchestrator-calls")
def orchestrator_calls(
    environment_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    correlation_id: Optional[str] = Query(None, description="Trace one request/response pair"),
    limit: int = Query(100, ge=1, le=1000),
):
    return db.list_orchestrator_calls(environment_id, session_id, correlation_id, limit)

@router.get("/metrics")
def metrics(environment_id: Optional[str] = Query(None)):
    calls = db.orchestrator_call_stats(environment_id)
    simulated = db.call_log_stats()
    total = calls["total"] or 0
    error_rate = (calls["errors"] / total * 100) if total else 0.0
    return {
        "total_calls": total,
        "error_rate": round(error_rate, 2),
        "latency": {
            "avg": calls["avg_latency"] or 0,
            "max": calls["max_latency"] or 0,
            "min": calls["min_latency"] or 0,
        },
        "simulated_calls": simulated["total"],
        "injected_errors": simulated["injected"],
    }
