import os
from pathlib import Path

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv())

DB_PATH = os.getenv("SIM_DB_PATH") or str(Path(__file__).resolve().parent.parent / "simulator.db")
LOG_LEVEL = os.getenv("SIM_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("SIM_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]
ORCHESTRATOR_TIMEOUT_SEC = float(os.getenv("SIM_ORCHESTRATOR_TIMEOUT_SEC", "10"))
PREVIEW_SIZE = int(os.getenv("SIM_PREVIEW_SIZE", "10"))
MAX_ROWS = int(os.getenv("SIM_MAX_ROWS", "100000"))

# Simulator-origin marker written into metadata of every generated row
SIMULATOR_SOURCE = "simulator"
SIMULATED_ERROR_BODY = {
    "error": "Simulated error",
    "message": "This error was injected by the simulator based on error_rate configuration",
}
HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
