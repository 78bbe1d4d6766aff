"""Prompt text for the wire-tracing operations."""

from typing import List

from circuitiq_core.models import Component

EXTRACT_COMPONENTS = """Analyze this circuit diagram and extract ALL components WITH their positions.

For each component, provide:
1. A unique identifier (e.g. "CB1", "RELAY_1", "SWITCH_A")
2. Component name/label from the diagram
3. Component type (circuit_breaker, relay, switch, connector, fuse, ...)
4. Location/position reference if visible
5. Connections to other components (by identifier)
6. X and Y coordinates of the component's center as percentages (0-100) of the image
   - x: 0 = left edge, 100 = right edge
   - y: 0 = top edge, 100 = bottom edge

Return ONLY a JSON array in this format:
[
  {
    "id": "CB1",
    "name": "Circuit Breaker 1",
    "type": "circuit_breaker",
    "location": "Panel A",
    "connections": ["RELAY_1", "BUS_1"],
    "x": 25.5,
    "y": 30.2
  }
]"""

ANALYZE_COMPONENT = """Analyze component "{component_id}" in this circuit diagram in detail.

Provide:
1. Detailed description
2. Technical specifications (voltage, amperage, rating, ...)
3. All connections to other components
4. Any warnings or special notes

Return ONLY JSON in this format:
{{
  "description": "detailed description",
  "specifications": {{"voltage": "value", "current": "value"}},
  "connections": ["component1", "component2"],
  "warnings": ["warning1"]
}}"""


def trace_path_prompt(start_id: str, end_id: str, roster: List[Component]) -> str:
    known = "\n".join(f"- {c.id}: {c.name} ({c.type})" for c in roster)
    return f"""Trace the wire path from "{start_id}" to "{end_id}" in this circuit diagram.

Provide:
1. The complete path (ordered component ids the wire passes through)
2. Wire color if visible
3. Wire gauge/size if visible
4. Key coordinate points along the wire as percentages (0-100): start, each bend, end

Known components in diagram:
{known}

Return ONLY JSON in this format:
{{
  "from": "{start_id}",
  "to": "{end_id}",
  "path": ["component_id_1", "component_id_2"],
  "wireColor": "color or null",
  "wireGauge": "gauge or null",
  "points": [{{"x": 25.5, "y": 30.2}}, {{"x": 45.0, "y": 30.2}}]
}}"""


def analyze_component_prompt(component_id: str) -> str:
    return ANALYZE_COMPONENT.format(component_id=component_id)
