"""Wire-tracing data models.

Components are extracted from a single diagram image; ids are only
meaningful within that diagram. Position hints (x, y, width, height) are
percentages of the image size and are purely advisory.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_str_list(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    if isinstance(v, (list, tuple, set)):
        return [str(item) for item in v if item is not None]
    return v


class Component(BaseModel):
    """A component visible on a wiring diagram"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    type: str = ""
    location: Optional[str] = None
    connections: List[str] = Field(default_factory=list)

    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> Any:
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("name", "type", mode="before")
    @classmethod
    def label_to_str(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("connections", mode="before")
    @classmethod
    def normalize_connections(cls, v: Any) -> Any:
        return _coerce_str_list(v)


class PathPoint(BaseModel):
    """Coordinate hint along a traced wire"""

    x: float
    y: float


class WirePath(BaseModel):
    """Result of tracing a wire between two components"""

    model_config = ConfigDict(populate_by_name=True)

    from_component: Component = Field(..., alias="from")
    to_component: Component = Field(..., alias="to")
    path: List[str] = Field(default_factory=list)
    wire_color: Optional[str] = Field(default=None, alias="wireColor")
    wire_gauge: Optional[str] = Field(default=None, alias="wireGauge")
    points: List[PathPoint] = Field(default_factory=list)

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, v: Any) -> Any:
        return _coerce_str_list(v)


class ComponentAnalysis(BaseModel):
    """Detailed description of one component"""

    description: str = ""
    specifications: Optional[Dict[str, str]] = None
    connections: List[str] = Field(default_factory=list)
    warnings: Optional[List[str]] = None

    @field_validator("specifications", mode="before")
    @classmethod
    def stringify_specifications(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v

    @field_validator("connections", mode="before")
    @classmethod
    def normalize_connections(cls, v: Any) -> Any:
        return _coerce_str_list(v)

    @field_validator("warnings", mode="before")
    @classmethod
    def normalize_warnings(cls, v: Any) -> Any:
        if v is None:
            return None
        return _coerce_str_list(v)

    @classmethod
    def failed(cls) -> "ComponentAnalysis":
        """Degenerate result returned when the model answer is unusable"""
        return cls(description="Analysis failed", connections=[])
