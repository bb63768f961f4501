import random
from fastapi import APIRouter, HTTPException
from orchsim.models import ClearRequest, GenerateRequest, SampleRequest
from orchsim.services import data_generator
from orchsim.services.distributions import sample

router = APIRouter(prefix="/data-generator", tags=["data-generator"])

@router.post("/run")
def run(req: GenerateRequest):
    """Generate synthetic rows for the target table and bulk insert them."""
    distributions = {k: v.model_dump() for k, v in (req.distributions or {}).items()}
    return data_generator.generate(
        req.target_table,
        req.rows,
        distributions=distributions,
        seasonality=req.seasonality,
        anomalies=req.anomalies.model_dump() if req.anomalies else None,
        rng=random.Random(req.seed) if req.seed is not None else None,
    )

@router.post("/clear")
def clear(req: ClearRequest):
    try:
        return data_generator.clear(req.target_table, req.only_simulator_data, req.from_date, req.to_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid date filter: {e}")

@router.post("/sample")
def sample_value(req: SampleRequest):
    rng = random.Random(req.seed)
    dist = req.distribution.model_dump() if req.distribution else None
    return {"value": sample(dist, rng)}
