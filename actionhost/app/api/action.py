"""
Action control endpoints.

The orchestrator drives the runtime through two calls:

- ``POST /init``: load the action, exactly once
- ``POST /run``: invoke it, any number of times

Request bodies are spooled to a temporary file (kept in memory up to
``spool_max_memory`` bytes) so an inline archive of any size can be
parsed as a stream.
"""
from __future__ import annotations

import logging
import tempfile
from typing import BinaryIO

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from actionhost.app.dependencies import get_controller, get_settings
from actionhost.config.schemas import AppSettings
from actionhost.runtime import ControlResponse, RuntimeController

logger = logging.getLogger(__name__)

router = APIRouter(tags=["action"])


async def spool_request_body(request: Request, max_memory: int) -> BinaryIO:
    """Copy the request body into a rewound spooled temporary file."""
    spool = tempfile.SpooledTemporaryFile(max_size=max_memory, mode="w+b")
    try:
        async for chunk in request.stream():
            spool.write(chunk)
    except BaseException:
        spool.close()
        raise
    spool.seek(0)
    return spool


def to_http_response(result: ControlResponse) -> Response:
    return Response(
        content=result.content,
        status_code=result.status,
        media_type="application/json",
    )


@router.post(
    "/init",
    summary="Load the action",
    responses={
        200: {"description": "Action loaded"},
        502: {"description": "Init failed or action already initialized"},
    },
)
async def init_action(
    request: Request,
    controller: RuntimeController = Depends(get_controller),
    settings: AppSettings = Depends(get_settings),
) -> Response:
    """
    Load the action from ``{"value": {"main": ..., "code": ...}}``.

    ``code`` is either a path to the archive or
    ``{"binary": true, "value": "<base64 zip>"}``.
    """
    try:
        body = await spool_request_body(request, settings.spool_max_memory)
    except Exception as e:
        logger.error("Error receiving init request", exc_info=True)
        return to_http_response(ControlResponse.error(f"Cannot read request: {e}"))
    return to_http_response(await controller.init(body))


@router.post(
    "/run",
    summary="Invoke the action",
    responses={
        200: {"description": "Action result"},
        502: {"description": "Uninitialized, bad request, or the action failed"},
    },
)
async def run_action(
    request: Request,
    controller: RuntimeController = Depends(get_controller),
    settings: AppSettings = Depends(get_settings),
) -> Response:
    """Invoke the action with ``{"value": <input>, ...environment}``."""
    try:
        body = await spool_request_body(request, settings.spool_max_memory)
    except Exception as e:
        return to_http_response(controller.reject_run(e))
    return to_http_response(await controller.run(body))
