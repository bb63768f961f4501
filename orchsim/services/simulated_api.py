# orchsim/services/simulated_api.py
import asyncio
import copy
import json
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from orchsim.config import SIMULATED_ERROR_BODY
from orchsim.services.scripting import ScriptError, run_script
from orchsim.services.template import interpolate
from orchsim.store import db

LOG = logging.getLogger(__name__)

_rng = random.Random()


async def execute_endpoint(
    endpoint: Dict[str, Any],
    request: Dict[str, Any],
    rng: Optional[random.Random] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Dict[str, Any]:
    """
    Synthesize a response for a configured endpoint.

    latency -> error roll -> (forced error | script | template) -> call log.
    Always returns {"status", "body"} and writes exactly one call-log row.
    """
    rng = rng or _rng
    started = time.monotonic()

    latency_ms = endpoint.get("latency_ms") or 0
    if latency_ms > 0:
        await sleep(latency_ms / 1000)

    error_rate = float(endpoint.get("error_rate") or 0)
    error_injected = rng.random() * 100 < error_rate

    template = endpoint.get("response_template")
    if template is None:
        template = {}
    status = endpoint.get("status_code") or 200

    if error_injected:
        status = 500
        body = copy.deepcopy(SIMULATED_ERROR_BODY)
        LOG.info("Injected simulated error on %s %s (error_rate=%s)",
                 request.get("method"), request.get("path"), error_rate)
    elif endpoint.get("script"):
        try:
            result = run_script(endpoint["script"], request, {"status": status, "body": template})
            # the body must survive JSONResponse
            json.dumps(result["body"], allow_nan=False)
            status, body = result["status"], result["body"]
        except ScriptError as e:
            # falls back to the raw template, never an endpoint failure
            LOG.warning("Response script failed for endpoint %s: %s", endpoint.get("id"), e)
            body = copy.deepcopy(template)
        except Exception as e:
            LOG.warning("Response script for endpoint %s produced an unusable response: %r",
                        endpoint.get("id"), e)
            body = copy.deepcopy(template)
    else:
        body = interpolate(template, request)

    elapsed_ms = int((time.monotonic() - started) * 1000)

    db.insert_call_log({
        "endpoint_id": endpoint["id"],
        "request_method": request.get("method"),
        "request_path": request.get("path"),
        "request_headers": request.get("headers") or {},
        "request_body": request.get("body") or {},
        "request_query": request.get("query") or {},
        "response_status": status,
        "response_body": body,
        "latency_ms": elapsed_ms,
        "error_injected": error_injected,
    })

    return {"status": status, "body": body}


async def dispatch(method: str, path: str, headers: Dict[str, Any], body: Any,
                   query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Route a proxied request to its endpoint; None when nothing is configured."""
    endpoint = db.find_endpoint(method, path)
    if not endpoint:
        LOG.info("No simulated endpoint for %s %s", method, path)
        return None
    return await execute_endpoint(endpoint, {
        "method": method.upper(),
        "path": path,
        "headers": headers,
        "body": body if body is not None else {},
        "query": query,
    })
