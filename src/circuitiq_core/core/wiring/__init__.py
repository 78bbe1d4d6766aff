"""Wire-tracing engine."""

from circuitiq_core.core.wiring.diagrams import (
    DiagramDirectory,
    DiagramRecord,
    InMemoryDiagramDirectory,
)
from circuitiq_core.core.wiring.tracer import WireTracer

__all__ = [
    "DiagramDirectory",
    "DiagramRecord",
    "InMemoryDiagramDirectory",
    "WireTracer",
]
