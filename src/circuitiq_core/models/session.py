"""Diagnostic session data models.

A diagnostic session is one troubleshooting conversation between a
technician and the AI teammate. Its state is:

- vehicle context (immutable once the session exists)
- chat history (append-only, replayed verbatim to the model)
- the current theory: probable causes and suggested tests

These models are plain data; the behaviour lives in
``circuitiq_core.core.diagnostics.session``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VehicleClass(str, Enum):
    """Kind of vehicle whose wiring is being diagnosed"""

    AIRCRAFT = "aircraft"
    AUTOMOTIVE = "automotive"
    MARINE = "marine"


class ChatRole(str, Enum):
    """Author of a chat history entry"""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Likelihood(str, Enum):
    """How likely a probable cause is, as judged by the model"""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class VehicleContext(BaseModel):
    """Vehicle under diagnosis"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    make: str = Field(default="Unknown", description="Manufacturer")
    model: str = Field(default="Unknown", description="Model designation")
    vehicle_class: VehicleClass = Field(
        default=VehicleClass.AIRCRAFT,
        alias="type",
        description="aircraft | automotive | marine",
    )
    year: Optional[int] = Field(default=None, description="Model year if known")

    @field_validator("vehicle_class", mode="before")
    @classmethod
    def normalize_class(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def describe(self) -> str:
        """Human-readable one-liner used in prompts"""
        year = f" ({self.year})" if self.year else ""
        return f"{self.make} {self.model}{year} [{self.vehicle_class.value}]"


class ChatMessage(BaseModel):
    """One entry of the chat history"""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ProbableCause(BaseModel):
    """A candidate root cause"""

    cause: str
    likelihood: Likelihood = Likelihood.MEDIUM
    reason: str = ""

    @field_validator("likelihood", mode="before")
    @classmethod
    def normalize_likelihood(cls, v: Any) -> Any:
        """Models answer "high", "HIGH", "High likelihood"; anything else is Medium"""
        if isinstance(v, Likelihood):
            return v
        text = str(v or "").strip().lower()
        for level in Likelihood:
            if text.startswith(level.value.lower()):
                return level
        return Likelihood.MEDIUM


class SuggestedTest(BaseModel):
    """One step of the suggested troubleshooting procedure"""

    step: int = Field(..., ge=1)
    title: str
    instruction: str = ""
    expected: str = ""

    @field_validator("expected", "instruction", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        if not isinstance(v, str):
            return str(v)
        return v


def _coerce_str_list(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    if isinstance(v, (list, tuple)):
        return [str(item) for item in v if item is not None and str(item).strip()]
    return v


class DiagnosticInsight(BaseModel):
    """The teammate's working hypothesis after one chat turn"""

    model_config = ConfigDict(populate_by_name=True)

    current_hypothesis: str = Field(default="", alias="currentHypothesis")
    confidence: int = Field(default=0, ge=0, le=100, description="Percent")
    reasoning: str = ""
    alternative_theories: List[str] = Field(default_factory=list, alias="alternativeTheories")

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: Any) -> Any:
        """Accepts 70, "70", "70%" and 0.7; anything unreadable is 0"""
        if isinstance(v, str):
            v = v.strip().rstrip("%").strip()
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 0
        if 0 < value <= 1:
            value *= 100
        return max(0, min(100, int(round(value))))

    @field_validator("current_hypothesis", "reasoning", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("alternative_theories", mode="before")
    @classmethod
    def normalize_theories(cls, v: Any) -> Any:
        return _coerce_str_list(v)


class CheckProcedure(BaseModel):
    """A concrete check the teammate wants performed next"""

    model_config = ConfigDict(populate_by_name=True)

    action: str = ""
    tool: str = ""
    location: str = ""
    expected_result: str = Field(default="", alias="expectedResult")
    safety: str = ""

    @field_validator("action", "tool", "location", "expected_result", "safety", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)


class SessionState(BaseModel):
    """Serializable state of one diagnostic session"""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., alias="sessionId")
    vehicle: VehicleContext = Field(default_factory=VehicleContext)
    chat_history: List[ChatMessage] = Field(default_factory=list, alias="chatHistory")
    probable_causes: List[ProbableCause] = Field(default_factory=list, alias="probableCauses")
    suggested_tests: List[SuggestedTest] = Field(default_factory=list, alias="suggestedTests")
    symptom: Optional[str] = Field(default=None, description="Main complaint, set by diagnose")

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = Field(default=0, ge=0, description="Mutation counter")
