"""Shared helpers for route and tool implementations"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse

from managers.orchestrator import failure

logger = logging.getLogger("ImagenFlow")


async def read_json_body(request: Request) -> Tuple[Optional[Dict[str, Any]], Optional[JSONResponse]]:
    """Decode a JSON object body, or build the 400 response to send instead"""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None, JSONResponse(failure("Request body must be valid JSON"), status_code=400)
    if not isinstance(payload, dict):
        return None, JSONResponse(failure("Request body must be a JSON object"), status_code=400)
    return payload, None


def call_guarded(operation: str, func: Callable[..., Dict[str, Any]], *args, **kwargs) -> Dict[str, Any]:
    """Run a pipeline call so that no exception reaches the client"""
    try:
        return func(*args, **kwargs)
    except Exception as exc:
        logger.exception("%s failed unexpectedly", operation)
        return failure(f"Unexpected error during {operation}: {exc}")


async def respond_guarded(operation: str, func: Callable[..., Dict[str, Any]], *args, **kwargs) -> JSONResponse:
    """Run a blocking pipeline call off the event loop and wrap it as JSON"""
    result = await run_in_threadpool(call_guarded, operation, func, *args, **kwargs)
    return JSONResponse(result)
