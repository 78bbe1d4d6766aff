"""Tests for the wire-tracing engine and diagram lookup."""

import json

import pytest

from circuitiq_core.core.wiring import InMemoryDiagramDirectory, WireTracer
from circuitiq_core.exceptions import InferenceFailure
from circuitiq_core.infrastructure.llm import ResponseShape
from circuitiq_core.models import Component
from tests.conftest import StubGateway

IMAGE = "https://cdn.example.com/diagrams/d-1.png"

ROSTER = [
    Component(id="CB1", name="Fuel pump breaker", type="breaker"),
    Component(id="K1", name="Pump relay", type="relay"),
    Component(id="M1", name="Fuel pump", type="motor"),
]


class TestExtractComponents:
    """Component rosters from model answers."""

    @pytest.mark.asyncio
    async def test_array_inside_prose(self, llm_settings):
        gateway = StubGateway(
            'Sure! Here you go: [{"id":"CB1","name":"Breaker","type":"breaker"}] Hope that helps'
        )
        components = await WireTracer(gateway, llm_settings).extract_components(IMAGE)

        assert [c.id for c in components] == ["CB1"]
        assert components[0].type == "breaker"
        request = gateway.last_request
        assert request.image_ref == IMAGE
        assert request.shape is ResponseShape.JSON_ARRAY
        assert request.temperature == 0.2

    @pytest.mark.asyncio
    async def test_refusal_is_empty_roster(self, llm_settings):
        gateway = StubGateway("I cannot see the diagram")
        assert await WireTracer(gateway, llm_settings).extract_components(IMAGE) == []

    @pytest.mark.asyncio
    async def test_runaway_nesting_is_empty_roster(self, llm_settings):
        gateway = StubGateway("[" * 5000)
        assert await WireTracer(gateway, llm_settings).extract_components(IMAGE) == []

    @pytest.mark.asyncio
    async def test_malformed_items_skipped(self, llm_settings):
        answer = json.dumps(
            [
                {"id": "F1", "name": "Fuse", "connections": "W12"},
                {"name": "no id"},
                "just text",
                {"id": 7, "type": "ground"},
            ]
        )
        components = await WireTracer(StubGateway(answer), llm_settings).extract_components(IMAGE)

        assert [c.id for c in components] == ["F1", "7"]
        assert components[0].connections == ["W12"]

    @pytest.mark.asyncio
    async def test_null_and_numeric_labels_kept(self, llm_settings):
        answer = json.dumps([{"id": "P1", "name": None, "type": 15}, {"id": "P2", "name": 42}])
        components = await WireTracer(StubGateway(answer), llm_settings).extract_components(IMAGE)

        assert [(c.id, c.name, c.type) for c in components] == [("P1", "", "15"), ("P2", "42", "")]

    @pytest.mark.asyncio
    async def test_gateway_failure_propagates(self, llm_settings):
        gateway = StubGateway(InferenceFailure("timeout", error_code="INFERENCE_TIMEOUT"))
        with pytest.raises(InferenceFailure):
            await WireTracer(gateway, llm_settings).extract_components(IMAGE)


class TestTracePath:
    """Tracing between two roster components."""

    @pytest.mark.asyncio
    async def test_unknown_endpoint_skips_model(self, llm_settings, stub_gateway):
        tracer = WireTracer(stub_gateway, llm_settings)

        assert await tracer.trace_path(IMAGE, "CB1", "X9", ROSTER) is None
        assert await tracer.trace_path(IMAGE, "X9", "M1", ROSTER) is None
        assert stub_gateway.call_count == 0

    @pytest.mark.asyncio
    async def test_traced_path(self, llm_settings):
        answer = json.dumps(
            {
                "path": ["CB1", "W12", "K1", "M1"],
                "wireColor": "red",
                "wireGauge": "unknown",
                "points": [{"x": 10, "y": 20}, {"x": "bad"}],
            }
        )
        gateway = StubGateway(answer)
        path = await WireTracer(gateway, llm_settings).trace_path(IMAGE, "CB1", "M1", ROSTER)

        assert path.from_component.name == "Fuel pump breaker"
        assert path.to_component.id == "M1"
        assert path.path == ["CB1", "W12", "K1", "M1"]
        assert path.wire_color == "red"
        assert path.wire_gauge is None
        assert [(p.x, p.y) for p in path.points] == [(10, 20)]
        assert "K1" in gateway.last_request.messages[0].content

    @pytest.mark.asyncio
    async def test_empty_path_is_still_a_path(self, llm_settings):
        gateway = StubGateway('{"path": []}')
        path = await WireTracer(gateway, llm_settings).trace_path(IMAGE, "CB1", "M1", ROSTER)

        assert path is not None
        assert path.path == []

    @pytest.mark.asyncio
    async def test_unparsable_answer_is_no_path(self, llm_settings):
        gateway = StubGateway("These components are not connected.")
        assert await WireTracer(gateway, llm_settings).trace_path(IMAGE, "CB1", "M1", ROSTER) is None

    def test_path_serializes_with_contract_names(self):
        from circuitiq_core.models import WirePath

        path = WirePath(from_component=ROSTER[0], to_component=ROSTER[2], path=["CB1", "M1"])
        body = path.model_dump(mode="json", by_alias=True, exclude_none=True)

        assert body["from"]["id"] == "CB1"
        assert body["to"]["id"] == "M1"
        assert "wireColor" not in body


class TestAnalyzeComponent:
    """Single component analysis."""

    @pytest.mark.asyncio
    async def test_analysis(self, llm_settings):
        answer = json.dumps(
            {
                "description": "30A pull-to-reset breaker",
                "specifications": {"rating": 30, "type": "thermal"},
                "connections": ["Bus A", "W12"],
                "warnings": "Check for heat discoloration",
            }
        )
        analysis = await WireTracer(StubGateway(answer), llm_settings).analyze_component(IMAGE, "CB1")

        assert analysis.description == "30A pull-to-reset breaker"
        assert analysis.specifications == {"rating": "30", "type": "thermal"}
        assert analysis.connections == ["Bus A", "W12"]
        assert analysis.warnings == ["Check for heat discoloration"]

    @pytest.mark.asyncio
    async def test_unparsable_analysis_fails_soft(self, llm_settings):
        analysis = await WireTracer(StubGateway("No idea."), llm_settings).analyze_component(IMAGE, "CB1")

        assert analysis.description == "Analysis failed"
        assert analysis.connections == []

    @pytest.mark.asyncio
    async def test_gateway_failure_propagates(self, llm_settings):
        gateway = StubGateway(InferenceFailure("upstream 502"))
        with pytest.raises(InferenceFailure):
            await WireTracer(gateway, llm_settings).analyze_component(IMAGE, "CB1")


class TestDiagramDirectory:
    """Owner-scoped diagram lookup."""

    @pytest.mark.asyncio
    async def test_prefers_analysis_image(self):
        diagrams = InMemoryDiagramDirectory()
        diagrams.add("d-1", "u1", "https://files/d-1.pdf", "https://files/d-1.png")
        diagrams.add("d-2", "u1", "https://files/d-2.png")

        assert await diagrams.get_image_ref("d-1", "u1") == "https://files/d-1.png"
        assert await diagrams.get_image_ref("d-2", "u1") == "https://files/d-2.png"

    @pytest.mark.asyncio
    async def test_other_owner_and_missing(self):
        diagrams = InMemoryDiagramDirectory()
        diagrams.add("d-1", "u1", "https://files/d-1.png")

        assert await diagrams.get_image_ref("d-1", "u2") is None
        assert await diagrams.get_image_ref("nope", "u1") is None
