"""Diagnostic session engine.

A ``DiagnosticSession`` wraps one ``SessionState`` and turns technician
actions into model calls. Every action follows the same shape:

1. build an ``InferenceRequest`` from the current state
2. await the gateway
3. fold the answer into the state

Step 3 only runs once step 2 has fully succeeded, so a failed or timed out
call (``InferenceFailure``/``ConfigurationFailure``) leaves the state exactly
as it was and the action can be retried. The session knows nothing about
billing; metering is the dispatcher's job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from circuitiq_core.config import LLMSettings, get_settings
from circuitiq_core.core.diagnostics import prompts
from circuitiq_core.core.parsing import Unparsable, extract_json_object, log_unparsable
from circuitiq_core.exceptions import InferenceFailure, InvalidArgumentError
from circuitiq_core.infrastructure.llm import (
    InferenceGateway,
    InferenceRequest,
    LLMResponse,
    PromptMessage,
    ResponseShape,
)
from circuitiq_core.models import (
    ChatMessage,
    ChatRole,
    CheckProcedure,
    DiagnosticInsight,
    ProbableCause,
    SessionState,
    SuggestedTest,
)

logger = logging.getLogger(__name__)


@dataclass
class SessionReply:
    """What an action produced, plus which model produced it"""

    message: str
    provider: Optional[str] = None
    model: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Teammate extras, only filled by a structured chat answer
    diagnostic_data: Optional[DiagnosticInsight] = None
    test_procedure: Optional[CheckProcedure] = None
    highlight_components: List[str] = field(default_factory=list)
    quick_suggestions: List[str] = field(default_factory=list)

    @classmethod
    def from_response(cls, message: str, response: LLMResponse, **extras) -> "SessionReply":
        return cls(message=message, provider=response.provider, model=response.model, **extras)


@dataclass
class _Assessment:
    causes: List[ProbableCause]
    tests: List[SuggestedTest]
    narrative: str


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"'{name}' is required")
    return value


def _parse_causes(raw: Any) -> List[ProbableCause]:
    causes = []
    for item in raw if isinstance(raw, list) else []:
        if isinstance(item, str):
            item = {"cause": item}
        try:
            causes.append(ProbableCause.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed probable cause {item!r}: {e.error_count()} errors")
    return causes


def _parse_tests(raw: Any) -> List[SuggestedTest]:
    tests = []
    for position, item in enumerate(raw if isinstance(raw, list) else [], start=1):
        if isinstance(item, dict) and not item.get("step"):
            item = {**item, "step": position}
        try:
            tests.append(SuggestedTest.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed suggested test {item!r}: {e.error_count()} errors")
    return tests


def parse_assessment(content: str) -> _Assessment:
    """Decode the initial-diagnosis JSON shape.

    Raises:
        InferenceFailure: The answer holds no JSON object
    """
    result = extract_json_object(content)
    if isinstance(result, Unparsable):
        log_unparsable(result, "diagnosis")
        raise InferenceFailure(
            f"Malformed diagnosis response: {result.reason}",
            error_code="INFERENCE_MALFORMED_RESPONSE",
        )

    data: Dict[str, Any] = result.value
    narrative = data.get("initialResponse") or data.get("thoughtProcess") or ""
    return _Assessment(
        causes=_parse_causes(data.get("probableCauses")),
        tests=_parse_tests(data.get("suggestedTests")),
        narrative=str(narrative),
    )


def _labels(raw: Any) -> List[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    return [str(item).strip() for item in raw if item is not None and str(item).strip()]


def _optional_model(model_cls, raw: Any, what: str):
    if not isinstance(raw, dict) or not raw:
        return None
    try:
        return model_cls.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Dropping malformed {what} {raw!r}: {e.error_count()} errors")
        return None


def parse_teammate_reply(content: str, response: LLMResponse) -> SessionReply:
    """Decode a structured chat answer.

    Never fails: an answer that is not a JSON object, or one without a
    ``message``, is used verbatim as the message with no extras.
    """
    result = extract_json_object(content)
    if isinstance(result, Unparsable):
        log_unparsable(result, "teammate reply")
        return SessionReply.from_response(content, response)

    data: Dict[str, Any] = result.value
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        logger.warning("Teammate reply has no message, using the raw answer")
        return SessionReply.from_response(content, response)

    return SessionReply.from_response(
        message,
        response,
        diagnostic_data=_optional_model(DiagnosticInsight, data.get("diagnosticData"), "diagnostic data"),
        test_procedure=_optional_model(CheckProcedure, data.get("testProcedure"), "test procedure"),
        highlight_components=_labels(data.get("highlightComponents")),
        quick_suggestions=_labels(data.get("quickSuggestions")),
    )


class DiagnosticSession:
    """One troubleshooting conversation and its current theory"""

    def __init__(
        self,
        state: SessionState,
        gateway: InferenceGateway,
        llm_settings: Optional[LLMSettings] = None,
    ):
        self.state = state
        self.gateway = gateway
        self.llm_settings = llm_settings or get_settings().llm
        # Serializes actions dispatched against this session
        self.lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    # ------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------

    def _commit(
        self,
        entries: List[ChatMessage],
        causes: Optional[List[ProbableCause]] = None,
        tests: Optional[List[SuggestedTest]] = None,
        replace: bool = False,
    ):
        state = self.state
        if causes is not None:
            state.probable_causes = list(causes) if replace else state.probable_causes + list(causes)
        if tests is not None:
            state.suggested_tests = list(tests) if replace else state.suggested_tests + list(tests)
        state.chat_history.extend(entries)
        state.updated_at = datetime.now(timezone.utc)
        state.version += 1

    def _history(self) -> List[PromptMessage]:
        # Empty turns are kept in the record but providers reject them
        return [
            PromptMessage(role=m.role.value, content=m.content)
            for m in self.state.chat_history
            if m.content.strip()
        ]

    @staticmethod
    def _exchange(user_text: str, reply: str) -> List[ChatMessage]:
        return [
            ChatMessage(role=ChatRole.USER, content=user_text),
            ChatMessage(role=ChatRole.ASSISTANT, content=reply),
        ]

    async def _vision(self, image_ref: str, query: str) -> LLMResponse:
        return await self.gateway.complete(
            InferenceRequest(
                system=prompts.vision_system(self.state),
                messages=[PromptMessage(role="user", content=query)],
                image_ref=image_ref,
                max_tokens=self.llm_settings.vision_max_tokens,
            )
        )

    # ------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------

    async def chat(self, message: str, diagram_image_ref: Optional[str] = None) -> SessionReply:
        """Continue the conversation; with an image, ask about that image.

        Without an image the teammate answers in JSON and the reply carries
        its hypothesis, next check and suggestions as well. Appends the user
        message and the reply text to the history.
        """
        _require(message, "message")

        if diagram_image_ref:
            response = await self._vision(diagram_image_ref, message)
            reply = SessionReply.from_response(response.content, response)
        else:
            response = await self.gateway.complete(
                InferenceRequest(
                    system=prompts.continuation_system(self.state),
                    messages=self._history() + [PromptMessage(role="user", content=message)],
                    shape=ResponseShape.JSON_OBJECT,
                    max_tokens=self.llm_settings.max_tokens,
                )
            )
            reply = parse_teammate_reply(response.content, response)

        self._commit(self._exchange(message, reply.message))
        return reply

    async def photo(self, image_ref: str, technician_comment: Optional[str] = None) -> SessionReply:
        """Look at a photo or diagram image the technician submitted"""
        _require(image_ref, "image_ref")

        response = await self._vision(image_ref, prompts.vision_query(self.state, technician_comment))

        user_text = technician_comment if technician_comment and technician_comment.strip() else prompts.PHOTO_SUBMITTED_NOTE
        self._commit(self._exchange(user_text, response.content))
        return SessionReply.from_response(response.content, response)

    async def explain(self, topic: str) -> SessionReply:
        """Justify a prior claim; never touches causes or tests.

        The exchange is only recorded when the model actually answered.
        """
        _require(topic, "topic")

        response = await self.gateway.complete(
            InferenceRequest(
                system=prompts.explain_system(self.state),
                messages=self._history() + [PromptMessage(role="user", content=prompts.explain_query(topic))],
                max_tokens=self.llm_settings.max_tokens,
            )
        )

        if response.content.strip():
            self._commit(self._exchange(topic, response.content))
        else:
            logger.info(f"Session {self.session_id}: empty explanation for {topic!r}, history unchanged")
        return SessionReply.from_response(response.content, response)

    async def reassess(self) -> SessionReply:
        """Rebuild the theory from the whole history, replacing causes and tests.

        Raises:
            InferenceFailure: Includes a reassessment that is not a JSON object
        """
        response = await self.gateway.complete(
            InferenceRequest(
                system=prompts.reassess_system(self.state),
                messages=self._history() + [PromptMessage(role="user", content=prompts.REASSESS_INSTRUCTION)],
                shape=ResponseShape.JSON_OBJECT,
                max_tokens=self.llm_settings.extraction_max_tokens,
            )
        )
        assessment = parse_assessment(response.content)

        self._commit(
            [ChatMessage(role=ChatRole.ASSISTANT, content=assessment.narrative)],
            causes=assessment.causes,
            tests=assessment.tests,
            replace=True,
        )
        logger.info(
            f"Session {self.session_id} reassessed: {len(assessment.causes)} causes, "
            f"{len(assessment.tests)} tests"
        )
        return SessionReply.from_response(assessment.narrative, response)

    async def diagnose(self, symptom: str) -> SessionReply:
        """Initial diagnosis of the main symptom; appends causes and tests.

        Raises:
            InferenceFailure: Includes a diagnosis that is not a JSON object
        """
        _require(symptom, "symptom")

        response = await self.gateway.complete(
            InferenceRequest(
                system=prompts.diagnosis_system(self.state),
                messages=[PromptMessage(role="user", content=prompts.diagnosis_query(symptom))],
                shape=ResponseShape.JSON_OBJECT,
                max_tokens=self.llm_settings.extraction_max_tokens,
            )
        )
        assessment = parse_assessment(response.content)

        self.state.symptom = symptom
        self._commit(
            self._exchange(symptom, assessment.narrative),
            causes=assessment.causes,
            tests=assessment.tests,
        )
        logger.info(
            f"Session {self.session_id} diagnosed: {len(assessment.causes)} causes, "
            f"{len(assessment.tests)} tests"
        )
        return SessionReply.from_response(assessment.narrative, response)
