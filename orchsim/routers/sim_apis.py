from typing import Optional
from fastapi import APIRouter, HTTPException, Query
from orchsim.models import EndpointCreate, EndpointUpdate
from orchsim.store import db

router = APIRouter(prefix="/sim-apis", tags=["sim-apis"])

@router.post("", status_code=201)
def create_endpoint(req: EndpointCreate):
    if req.environment_id and not db.get_environment(req.environment_id):
        raise HTTPException(status_code=404, detail=f'Environment with id "{req.environment_id}" not found')
    endpoint = db.create_endpoint(req.model_dump())
    return {"id": endpoint["id"], "full_url": f"/sim-proxy{endpoint['path']}"}

@router.get("")
def list_endpoints(environment_id: Optional[str] = Query(None)):
    return db.list_endpoints(environment_id)

@router.get("/{endpoint_id}")
def get_endpoint(endpoint_id: str):
    endpoint = db.get_endpoint(endpoint_id)
    if not endpoint:
        raise HTTPException(status_code=404, detail=f'API Endpoint "{endpoint_id}" not found')
    return endpoint

@router.put("/{endpoint_id}")
def update_endpoint(endpoint_id: str, req: EndpointUpdate):
    get_endpoint(endpoint_id)
    return db.update_endpoint(endpoint_id, req.model_dump(exclude_unset=True))

@router.delete("/{endpoint_id}")
def delete_endpoint(endpoint_id: str):
    get_endpoint(endpoint_id)
    db.delete_endpoint(endpoint_id)
    return {"deleted": True}

@router.get("/{endpoint_id}/logs")
def get_call_logs(endpoint_id: str, limit: int = Query(50, ge=1, le=1000)):
    get_endpoint(endpoint_id)
    return db.get_call_logs(endpoint_id, limit)
