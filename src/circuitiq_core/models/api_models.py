"""API request models for the two dispatch surfaces.

Requests are closed tagged unions discriminated on ``action``: every
supported action has its own model with its own required fields, and an
``action`` outside the union is rejected before validation of the rest of
the payload.

Field names follow the JSON contract of the web layer (camelCase); Python
attributes are snake_case.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, TypeAdapter

from circuitiq_core.models.session import VehicleContext


def _required_text(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be empty")
    return v


NonEmptyStr = Annotated[str, AfterValidator(_required_text)]


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================
# Diagnostic session (teammate) requests
# ============================================================

class _SessionRequest(_Request):
    session_id: str = Field(..., alias="sessionId", min_length=1)
    vehicle_info: Optional[VehicleContext] = Field(default=None, alias="vehicleInfo")


class ChatRequest(_SessionRequest):
    """Free-form message; with a diagram URL it becomes a vision query"""

    action: Literal["chat"]
    message: NonEmptyStr
    diagram_url: Optional[str] = Field(default=None, alias="diagramUrl")


class PhotoRequest(_SessionRequest):
    """Technician submits a photo (or diagram image) for inspection"""

    action: Literal["photo"]
    image_url: NonEmptyStr = Field(..., alias="imageUrl")
    tech_comment: Optional[str] = Field(default=None, alias="techComment")


class ExplainRequest(_SessionRequest):
    """Technician asks why a claim holds"""

    action: Literal["explain"]
    message: NonEmptyStr


class ReassessRequest(_SessionRequest):
    """Throw away the current theory and rebuild it from the whole history"""

    action: Literal["reassess"]


class DiagnoseRequest(_SessionRequest):
    """Initial diagnosis from the main symptom"""

    action: Literal["diagnose"]
    message: NonEmptyStr


SessionActionRequest = Annotated[
    Union[ChatRequest, PhotoRequest, ExplainRequest, ReassessRequest, DiagnoseRequest],
    Field(discriminator="action"),
]

SESSION_ACTIONS = ("chat", "photo", "explain", "reassess", "diagnose")

session_request_adapter = TypeAdapter(SessionActionRequest)


# ============================================================
# Wire-tracing requests
# ============================================================

class _WireTraceRequest(_Request):
    diagram_id: str = Field(..., alias="diagramId", min_length=1)


class ExtractComponentsRequest(_WireTraceRequest):
    action: Literal["extract_components"]


class TracePathRequest(_WireTraceRequest):
    action: Literal["trace_path"]
    start_component: str = Field(..., alias="startComponent", min_length=1)
    end_component: str = Field(..., alias="endComponent", min_length=1)


class AnalyzeComponentRequest(_WireTraceRequest):
    action: Literal["analyze_component"]
    component_id: str = Field(..., alias="componentId", min_length=1)


WireTraceRequest = Annotated[
    Union[ExtractComponentsRequest, TracePathRequest, AnalyzeComponentRequest],
    Field(discriminator="action"),
]

WIRE_TRACE_ACTIONS = ("extract_components", "trace_path", "analyze_component")

wire_trace_request_adapter = TypeAdapter(WireTraceRequest)
