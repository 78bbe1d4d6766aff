"""Wire-tracing engine.

Three stateless vision operations against a single diagram image. Model
output is semi-structured at best, so each operation decides locally what an
unusable answer means:

- extract_components: no components (``[]``)
- trace_path: no path (``None``)
- analyze_component: ``ComponentAnalysis.failed()``

Gateway failures are not parse failures and propagate unchanged.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from circuitiq_core.config import LLMSettings, get_settings
from circuitiq_core.core.parsing import (
    Unparsable,
    extract_json_array,
    extract_json_object,
    log_unparsable,
)
from circuitiq_core.core.wiring import prompts
from circuitiq_core.infrastructure.llm import (
    InferenceGateway,
    InferenceRequest,
    PromptMessage,
    ResponseShape,
)
from circuitiq_core.models import Component, ComponentAnalysis, PathPoint, WirePath

logger = logging.getLogger(__name__)


def _optional_text(value: Any) -> Optional[str]:
    """Models write "null", "unknown" or "" for attributes they can't read"""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() in ("null", "none", "unknown", "n/a"):
        return None
    return text


def _points(raw: Any) -> List[PathPoint]:
    points = []
    for item in raw if isinstance(raw, list) else []:
        try:
            points.append(PathPoint.model_validate(item))
        except ValidationError:
            continue
    return points


def _find(roster: List[Component], component_id: str) -> Optional[Component]:
    for component in roster:
        if component.id == component_id:
            return component
    return None


class WireTracer:
    """Extract, trace and analyze components on a wiring diagram"""

    def __init__(self, gateway: InferenceGateway, llm_settings: Optional[LLMSettings] = None):
        self.gateway = gateway
        self.llm_settings = llm_settings or get_settings().llm

    async def _ask(self, image_ref: str, prompt: str, shape: ResponseShape, max_tokens: int) -> str:
        response = await self.gateway.complete(
            InferenceRequest(
                messages=[PromptMessage(role="user", content=prompt)],
                image_ref=image_ref,
                shape=shape,
                max_tokens=max_tokens,
                temperature=0.2,
            )
        )
        return response.content

    async def extract_components(self, image_ref: str) -> List[Component]:
        """List the components visible on the diagram.

        Items that do not validate as a component are skipped; an answer
        without a JSON array yields an empty list.
        """
        content = await self._ask(
            image_ref,
            prompts.EXTRACT_COMPONENTS,
            ResponseShape.JSON_ARRAY,
            self.llm_settings.extraction_max_tokens,
        )

        result = extract_json_array(content)
        if isinstance(result, Unparsable):
            log_unparsable(result, "component extraction")
            return []

        components: List[Component] = []
        skipped = 0
        for item in result.value:
            try:
                components.append(Component.model_validate(item))
            except ValidationError:
                skipped += 1
        if skipped:
            logger.warning(f"Skipped {skipped} malformed component(s) in extraction output")
        logger.info(f"Extracted {len(components)} components")
        return components

    async def trace_path(
        self,
        image_ref: str,
        start_id: str,
        end_id: str,
        known_components: List[Component],
    ) -> Optional[WirePath]:
        """Trace the wire between two components of the roster.

        Returns None when either endpoint is not in ``known_components`` (the
        model is not consulted) or when the answer holds no JSON object.
        """
        start = _find(known_components, start_id)
        end = _find(known_components, end_id)
        if start is None or end is None:
            missing = [cid for cid, found in ((start_id, start), (end_id, end)) if found is None]
            logger.info(f"Cannot trace {start_id} -> {end_id}: unknown component(s) {missing}")
            return None

        content = await self._ask(
            image_ref,
            prompts.trace_path_prompt(start_id, end_id, known_components),
            ResponseShape.JSON_OBJECT,
            self.llm_settings.max_tokens,
        )

        result = extract_json_object(content)
        if isinstance(result, Unparsable):
            log_unparsable(result, f"trace {start_id} -> {end_id}")
            return None

        data: Dict[str, Any] = result.value
        try:
            return WirePath(
                from_component=start,
                to_component=end,
                path=data.get("path") or [],
                wire_color=_optional_text(data.get("wireColor")),
                wire_gauge=_optional_text(data.get("wireGauge")),
                points=_points(data.get("points")),
            )
        except ValidationError as e:
            logger.warning(f"Trace {start_id} -> {end_id} answer did not validate: {e.error_count()} errors")
            return None

    async def analyze_component(self, image_ref: str, component_id: str) -> ComponentAnalysis:
        """Describe one component; an unusable answer yields ``ComponentAnalysis.failed()``"""
        content = await self._ask(
            image_ref,
            prompts.analyze_component_prompt(component_id),
            ResponseShape.JSON_OBJECT,
            self.llm_settings.max_tokens,
        )

        result = extract_json_object(content)
        if isinstance(result, Unparsable):
            log_unparsable(result, f"analysis of {component_id}")
            return ComponentAnalysis.failed()

        try:
            return ComponentAnalysis.model_validate(result.value)
        except ValidationError as e:
            logger.warning(f"Analysis of {component_id} did not validate: {e.error_count()} errors")
            return ComponentAnalysis.failed()
