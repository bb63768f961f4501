from pydantic import BaseModel, Field
from typing import Optional, Any, Dict, List, Literal

from orchsim.config import MAX_ROWS

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

class EnvironmentCreate(BaseModel):
    name: str
    code: str
    orchestrator_base_url: Optional[str] = None
    worker_base_url: Optional[str] = None
    auth_type: Optional[str] = None
    auth_config: Optional[Dict[str, Any]] = None

class EnvironmentUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    orchestrator_base_url: Optional[str] = None
    worker_base_url: Optional[str] = None
    auth_type: Optional[str] = None
    auth_config: Optional[Dict[str, Any]] = None

class EndpointCreate(BaseModel):
    environment_id: Optional[str] = None
    method: HttpMethod
    path: str = Field(..., description="e.g. /api/customers")
    response_template: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = Field(None, ge=100, le=599)
    latency_ms: Optional[int] = Field(None, ge=0)
    error_rate: Optional[float] = Field(None, ge=0, le=100, description="Error rate percentage (0-100)")
    script: Optional[str] = Field(None, description="Declarative response script")

class EndpointUpdate(BaseModel):
    method: Optional[HttpMethod] = None
    path: Optional[str] = None
    response_template: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = Field(None, ge=100, le=599)
    latency_ms: Optional[int] = Field(None, ge=0)
    error_rate: Optional[float] = Field(None, ge=0, le=100)
    script: Optional[str] = None
    enabled: Optional[bool] = None

class DistributionSpec(BaseModel):
    type: str = "normal"
    params: Optional[Dict[str, float]] = None

class AnomaliesConfig(BaseModel):
    enabled: bool = False
    count: int = Field(0, ge=0)
    types: Optional[List[str]] = None

class GenerateRequest(BaseModel):
    environment_id: Optional[str] = None
    target_table: Literal["transactions", "operational_events"]
    rows: int = Field(..., ge=1, le=MAX_ROWS)
    distributions: Optional[Dict[str, DistributionSpec]] = None
    seasonality: bool = False
    anomalies: Optional[AnomaliesConfig] = None
    seed: Optional[int] = Field(None, description="Seed for a reproducible batch")

class ClearRequest(BaseModel):
    target_table: Literal["transactions", "operational_events", "all"]
    only_simulator_data: bool = False
    from_date: Optional[str] = None
    to_date: Optional[str] = None

class SampleRequest(BaseModel):
    distribution: Optional[DistributionSpec] = None
    seed: Optional[int] = None

class SessionCreate(BaseModel):
    environment_id: str
    external_session_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

class MessageCreate(BaseModel):
    content: Optional[str] = None
    type: str = "text"
    payload: Optional[Dict[str, Any]] = None

class OrchestratorMessage(BaseModel):
    session_id: str
    direction: Literal["outbound"] = "outbound"
    content: str
    payload: Optional[Dict[str, Any]] = None
    correlation_id: Optional[str] = None
    run_id: Optional[str] = None
