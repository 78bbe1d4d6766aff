"""Diagram lookup for the wire-tracing surface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class DiagramRecord:
    diagram_id: str
    owner_id: str
    file_url: str
    analysis_image_url: Optional[str] = None  # rasterized page, preferred for vision

    @property
    def image_ref(self) -> str:
        return self.analysis_image_url or self.file_url


class DiagramDirectory(ABC):
    """Resolves a diagram id to the image the model should look at"""

    @abstractmethod
    async def get_image_ref(self, diagram_id: str, user_id: str) -> Optional[str]:
        """Image reference, or None when the diagram does not exist or
        belongs to another user"""
        pass


class InMemoryDiagramDirectory(DiagramDirectory):
    def __init__(self):
        self._diagrams: Dict[str, DiagramRecord] = {}

    def add(
        self,
        diagram_id: str,
        owner_id: str,
        file_url: str,
        analysis_image_url: Optional[str] = None,
    ) -> DiagramRecord:
        record = DiagramRecord(diagram_id, owner_id, file_url, analysis_image_url)
        self._diagrams[diagram_id] = record
        return record

    async def get_image_ref(self, diagram_id: str, user_id: str) -> Optional[str]:
        record = self._diagrams.get(diagram_id)
        if record is None or record.owner_id != user_id:
            return None
        return record.image_ref
