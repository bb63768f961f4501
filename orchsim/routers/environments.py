from fastapi import APIRouter, HTTPException
from orchsim.models import EnvironmentCreate, EnvironmentUpdate
from orchsim.store import db

router = APIRouter(prefix="/environments", tags=["environments"])

@router.post("", status_code=201)
def create_environment(req: EnvironmentCreate):
    if db.get_environment_by_code(req.code):
        raise HTTPException(status_code=409, detail=f'Environment with code "{req.code}" already exists')
    return db.create_environment(req.model_dump())

@router.get("")
def list_environments():
    return db.list_environments()

@router.get("/{env_id}")
def get_environment(env_id: str):
    env = db.get_environment(env_id)
    if not env:
        raise HTTPException(status_code=404, detail=f'Environment with id "{env_id}" not found')
    return env

@router.put("/{env_id}")
def update_environment(env_id: str, req: EnvironmentUpdate):
    get_environment(env_id)
    if req.code:
        existing = db.get_environment_by_code(req.code)
        if existing and existing["id"] != env_id:
            raise HTTPException(status_code=409, detail=f'Environment with code "{req.code}" already exists')
    return db.update_environment(env_id, req.model_dump(exclude_unset=True))

@router.delete("/{env_id}")
def delete_environment(env_id: str):
    get_environment(env_id)
    db.delete_environment(env_id)
    return {"deleted": True}
