"""FastAPI router for the dispatch surfaces.

Mount with:

    app = FastAPI()
    app.include_router(create_router(diagnostic_dispatcher, wire_trace_dispatcher))
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from circuitiq_core.api.dispatch import DiagnosticDispatcher, WireTraceDispatcher
from circuitiq_core.auth import RequestContext, get_request_context
from circuitiq_core.core.quota import QuotaLedger
from circuitiq_core.exceptions import ConfigurationFailure, InferenceFailure

logger = logging.getLogger(__name__)

STATUS_BY_ERROR_CODE = {
    "QUOTA_EXCEEDED": status.HTTP_429_TOO_MANY_REQUESTS,
    "INVALID_ARGUMENT": status.HTTP_400_BAD_REQUEST,
    "INVALID_ACTION": status.HTTP_400_BAD_REQUEST,
    "DIAGRAM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
}


def _respond(body: Dict[str, Any]) -> JSONResponse:
    code = STATUS_BY_ERROR_CODE.get(body.get("errorCode"), status.HTTP_200_OK)
    return JSONResponse(status_code=code, content=body)


async def _guarded(dispatch, user_id: str, payload: Dict[str, Any]) -> JSONResponse:
    try:
        return _respond(await dispatch(user_id, payload))
    except InferenceFailure as e:
        logger.warning(f"Inference failure for {user_id}: {e.error_code}: {e.message}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.to_dict())
    except ConfigurationFailure as e:
        logger.error(f"Inference provider misconfigured: {e.message}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.to_dict())


def create_router(
    diagnostic_dispatcher: DiagnosticDispatcher,
    wire_trace_dispatcher: WireTraceDispatcher,
    ledger: Optional[QuotaLedger] = None,
    prefix: str = "/api/v1",
) -> APIRouter:
    """Build the router; ``ledger`` defaults to the diagnostic dispatcher's"""
    ledger = ledger or diagnostic_dispatcher.ledger
    router = APIRouter(prefix=prefix, tags=["circuitiq"])

    @router.post("/teammate")
    async def teammate(
        payload: Dict[str, Any] = Body(...),
        context: RequestContext = Depends(get_request_context),
    ):
        return await _guarded(diagnostic_dispatcher.dispatch, context.user_id, payload)

    @router.post("/wire-trace")
    async def wire_trace(
        payload: Dict[str, Any] = Body(...),
        context: RequestContext = Depends(get_request_context),
    ):
        return await _guarded(wire_trace_dispatcher.dispatch, context.user_id, payload)

    @router.get("/usage")
    async def usage(context: RequestContext = Depends(get_request_context)):
        if ledger is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usage tracking is not enabled")
        summary = await ledger.get_usage(context.user_id)
        return {
            "userId": summary.user_id,
            "plan": summary.plan,
            "billingPeriod": summary.billing_period,
            "current": {action.value: count for action, count in summary.current.items()},
            "limits": {action.value: limit for action, limit in summary.limits.items()},
        }

    return router
