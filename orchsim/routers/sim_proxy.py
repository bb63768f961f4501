import json
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from orchsim.config import HTTP_METHODS
from orchsim.services import simulated_api

router = APIRouter(prefix="/sim-proxy", tags=["sim-proxy"])

async def _json_body(request: Request):
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        return {}

@router.api_route("/{path:path}", methods=HTTP_METHODS, include_in_schema=False)
async def handle_proxy(path: str, request: Request):
    """Serve whatever virtual endpoint is configured for METHOD /<path>."""
    method = request.method
    sim_path = "/" + path
    result = await simulated_api.dispatch(
        method,
        sim_path,
        headers=dict(request.headers),
        body=await _json_body(request),
        query=dict(request.query_params),
    )
    if result is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Endpoint not found",
                "message": f"No simulated endpoint configured for {method} {sim_path}",
            },
        )
    return JSONResponse(status_code=result["status"], content=result["body"])
