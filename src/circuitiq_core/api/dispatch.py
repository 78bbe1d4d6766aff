"""Action dispatch surfaces.

Both dispatchers take an authenticated user id and a raw JSON payload and
return a JSON-ready dict. Contract violations and quota rejections come back
as structured bodies (``{"errorCode", "message", ...}``); inference and
configuration failures are raised so the caller can decide between a retry
and an operator alert.

Order of operations for a metered action:

1. validate the payload (no ledger or model access on failure)
2. check the quota (no model access on rejection)
3. perform the action
4. record usage in the background
"""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from circuitiq_core.core.diagnostics import DiagnosticSession, SessionRegistry, SessionReply
from circuitiq_core.core.quota import QuotaLedger
from circuitiq_core.core.wiring import DiagramDirectory, WireTracer
from circuitiq_core.exceptions import (
    DiagramNotFound,
    InvalidActionError,
    InvalidArgumentError,
    QuotaExceeded,
)
from circuitiq_core.models import UsageAction
from circuitiq_core.models.api_models import (
    SESSION_ACTIONS,
    WIRE_TRACE_ACTIONS,
    AnalyzeComponentRequest,
    ChatRequest,
    DiagnoseRequest,
    ExplainRequest,
    ExtractComponentsRequest,
    PhotoRequest,
    ReassessRequest,
    TracePathRequest,
    session_request_adapter,
    wire_trace_request_adapter,
)

logger = logging.getLogger(__name__)


def _describe_validation_error(e: ValidationError) -> str:
    problems = []
    for error in e.errors():
        location = ".".join(str(part) for part in error["loc"][1:] or error["loc"])
        problems.append(f"{location}: {error['msg']}")
    return "Invalid request: " + "; ".join(problems)


def _action_of(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        action = payload.get("action")
        return action if isinstance(action, str) else None
    return None


class DiagnosticDispatcher:
    """Entry point for the diagnostic teammate surface"""

    metered_action = UsageAction.AI_ANALYSIS

    def __init__(self, registry: SessionRegistry, ledger: Optional[QuotaLedger] = None):
        self.registry = registry
        self.ledger = ledger

    async def dispatch(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run one session action.

        Returns:
            ``{message, action, sessionId, probableCauses, suggestedTests,
            provider, model, timestamp}`` or a structured error

        Raises:
            InferenceFailure: Model call failed; session unchanged
            ConfigurationFailure: Inference provider misconfigured
        """
        action = _action_of(payload)
        if action not in SESSION_ACTIONS:
            logger.info(f"Rejected teammate request from {user_id}: invalid action {action!r}")
            return InvalidActionError(
                f"Invalid action {action!r}; expected one of {list(SESSION_ACTIONS)}"
            ).to_dict()

        try:
            request = session_request_adapter.validate_python(payload)
        except ValidationError as e:
            return InvalidArgumentError(_describe_validation_error(e)).to_dict()

        if self.ledger is not None:
            status = await self.ledger.check_limit(user_id, self.metered_action)
            if not status.allowed:
                logger.info(f"Quota exceeded for {user_id}: {status.current}/{status.limit}")
                return QuotaExceeded(
                    action=self.metered_action.value,
                    current=status.current,
                    limit=status.limit,
                    percentage=status.percentage,
                ).to_dict()

        session = await self.registry.get_or_create(request.session_id, request.vehicle_info)
        async with session.lock:
            try:
                reply = await self._run(session, request)
            except InvalidArgumentError as e:
                return e.to_dict()
            await self.registry.persist(session)

        if self.ledger is not None:
            self.ledger.record_in_background(
                user_id,
                self.metered_action,
                metadata={"feature": "teammate", "action": action},
                resource_id=request.session_id,
            )

        return self._result(session, action, reply)

    @staticmethod
    async def _run(session: DiagnosticSession, request) -> SessionReply:
        if isinstance(request, ChatRequest):
            return await session.chat(request.message, request.diagram_url)
        if isinstance(request, PhotoRequest):
            return await session.photo(request.image_url, request.tech_comment)
        if isinstance(request, ExplainRequest):
            return await session.explain(request.message)
        if isinstance(request, ReassessRequest):
            return await session.reassess()
        if isinstance(request, DiagnoseRequest):
            return await session.diagnose(request.message)
        raise InvalidActionError(f"Unhandled action {request.action!r}")

    @staticmethod
    def _result(session: DiagnosticSession, action: str, reply: SessionReply) -> Dict[str, Any]:
        state = session.state
        result = {
            "message": reply.message,
            "action": action,
            "sessionId": state.session_id,
            "probableCauses": [c.model_dump(mode="json") for c in state.probable_causes],
            "suggestedTests": [t.model_dump(mode="json") for t in state.suggested_tests],
            "provider": reply.provider,
            "model": reply.model,
            "timestamp": reply.timestamp.isoformat(),
        }
        if reply.diagnostic_data is not None:
            result["diagnosticData"] = reply.diagnostic_data.model_dump(mode="json", by_alias=True)
        if reply.test_procedure is not None:
            result["testProcedure"] = reply.test_procedure.model_dump(mode="json", by_alias=True)
        if reply.highlight_components:
            result["highlightComponents"] = reply.highlight_components
        if reply.quick_suggestions:
            result["quickSuggestions"] = reply.quick_suggestions
        return result


class WireTraceDispatcher:
    """Entry point for the wire-tracing surface"""

    metered_action = UsageAction.AI_ANALYSIS

    def __init__(
        self,
        tracer: WireTracer,
        diagrams: DiagramDirectory,
        ledger: Optional[QuotaLedger] = None,
    ):
        self.tracer = tracer
        self.diagrams = diagrams
        self.ledger = ledger

    async def dispatch(self, user_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Run one wire-tracing operation.

        Returns:
            ``{success, components, count}``, ``{success, path}`` or
            ``{success, analysis}``; a structured error otherwise

        Raises:
            InferenceFailure: Model call failed
            ConfigurationFailure: Inference provider misconfigured
        """
        action = _action_of(payload)
        if action not in WIRE_TRACE_ACTIONS:
            return InvalidActionError(
                f"Invalid action {action!r}; expected one of {list(WIRE_TRACE_ACTIONS)}"
            ).to_dict()

        try:
            request = wire_trace_request_adapter.validate_python(payload)
        except ValidationError as e:
            return InvalidArgumentError(_describe_validation_error(e)).to_dict()

        image_ref = await self.diagrams.get_image_ref(request.diagram_id, user_id)
        if image_ref is None:
            return DiagramNotFound(f"Diagram {request.diagram_id} not found").to_dict()

        if self.ledger is not None:
            status = await self.ledger.check_limit(user_id, self.metered_action)
            if not status.allowed:
                return QuotaExceeded(
                    action=self.metered_action.value,
                    current=status.current,
                    limit=status.limit,
                    percentage=status.percentage,
                ).to_dict()

        result = await self._run(request, image_ref)

        if self.ledger is not None:
            self.ledger.record_in_background(
                user_id,
                self.metered_action,
                metadata={"feature": "wire_trace", "action": action},
                resource_id=request.diagram_id,
            )
        return result

    async def _run(self, request, image_ref: str) -> Dict[str, Any]:
        if isinstance(request, ExtractComponentsRequest):
            components = await self.tracer.extract_components(image_ref)
            return {
                "success": True,
                "components": [c.model_dump(mode="json", exclude_none=True) for c in components],
                "count": len(components),
            }

        if isinstance(request, TracePathRequest):
            roster = await self.tracer.extract_components(image_ref)
            path = await self.tracer.trace_path(
                image_ref, request.start_component, request.end_component, roster
            )
            if path is None:
                return {
                    "success": False,
                    "errorCode": "TRACE_FAILED",
                    "message": (
                        f"Could not trace path between {request.start_component} "
                        f"and {request.end_component}"
                    ),
                }
            return {"success": True, "path": path.model_dump(mode="json", by_alias=True, exclude_none=True)}

        if isinstance(request, AnalyzeComponentRequest):
            analysis = await self.tracer.analyze_component(image_ref, request.component_id)
            return {"success": True, "analysis": analysis.model_dump(mode="json", exclude_none=True)}

        raise InvalidActionError(f"Unhandled action {request.action!r}")
