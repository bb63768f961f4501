import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Internal imports
from orchsim.config import CORS_ORIGINS, LOG_LEVEL
from orchsim.store import db
from orchsim.routers import (
    environments,
    sim_apis,
    sim_proxy,
    data_generator,
    chat,
    webhook,
    observability,
)

# ------------------------------------------------------------------
# Logging + App setup
# ------------------------------------------------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Orchestrator Simulator", version="0.1.0")

# ------------------------------------------------------------------
# CORS setup
# ------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

# ------------------------------------------------------------------
# DB Initialization
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    db.init()

# ------------------------------------------------------------------
# Health & Root
# ------------------------------------------------------------------
@app.get("/healthz")
def health():
    return {"ok": True}

@app.get("/")
def root():
    return {"message": "Orchestrator Simulator API. See /docs"}

# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
# Configuration
app.include_router(environments.router)
app.include_router(sim_apis.router)

# Simulation surfaces
app.include_router(sim_proxy.router)
app.include_router(data_generator.router)

# Orchestrator exchange + tracing
app.include_router(chat.router)
app.include_router(webhook.router)
app.include_router(observability.router)
