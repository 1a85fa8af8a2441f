import re
from typing import Dict, FrozenSet, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from .errors import ConfigurationError

FIELD_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*", re.ASCII)


class OutputFormat(str, Enum):
    GEOJSON = "geojson"
    ESRI_JSON = "json"


class MappingPolicy(str, Enum):
    SKIP = "skip"
    ABORT = "abort"


class SpatialFilter(BaseModel):
    """Point + buffer distance filter (``esriGeometryPoint`` intersects)."""

    model_config = ConfigDict(frozen=True)

    longitude: float
    latitude: float
    distance: float
    units: str = "esriSRUnit_Meter"
    in_sr: Optional[int] = None


class AttributeFilter(BaseModel):
    """Equality filter ``field='value'`` or a raw where expression."""

    model_config = ConfigDict(frozen=True)

    field: Optional[str] = None
    value: Optional[str] = None
    raw: Optional[str] = None

    def expression(self) -> str:
        if self.raw is not None:
            if not self.raw.strip():
                raise ConfigurationError("Attribute filter expression is empty")
            return self.raw.strip()
        if not self.field or self.value is None:
            raise ConfigurationError("Attribute filter needs a field and a value, or a raw expression")
        if not FIELD_NAME_PATTERN.fullmatch(self.field):
            raise ConfigurationError(f"Invalid attribute filter field: {self.field!r}")
        escaped = self.value.replace("'", "''")
        return f"{self.field}='{escaped}'"


class QueryParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_format: OutputFormat = OutputFormat.GEOJSON
    spatial_filter: Optional[SpatialFilter] = None
    attribute_filter: Optional[AttributeFilter] = None
    output_fields: FrozenSet[str] = frozenset()
    output_sr: int = 4326
    result_limit: Optional[int] = None
    result_offset: Optional[int] = None


class FeatureRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    geometry_type: str
    coordinates: Tuple[float, float]
    attributes: Dict[str, Optional[str]] = Field(default_factory=dict)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class GeoPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    longitude: float
    latitude: float
    elevation: float
    spatial_reference_id: int


class Scale(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


class PlacementDirective(BaseModel):
    model_config = ConfigDict(frozen=True)

    position: GeoPosition
    scale: Scale
    display_name: str
    category: str
    asset_key: Optional[str] = None
    asset_matched: bool = False


class MappingContext(BaseModel):
    """Caller-supplied placement constants.

    ``reference_width``/``reference_height`` are the baseline axis lengths of
    the default visual asset; scale factors are attribute values divided by
    them.
    """

    model_config = ConfigDict(frozen=True)

    spawn_height: float
    spatial_reference_id: int = 4326
    reference_width: float = 1.0
    reference_height: float = 1.0


class SkippedRecord(BaseModel):
    index: int
    reason: str
    error_type: str
    field: Optional[str] = None


class MappingBatch(BaseModel):
    directives: List[PlacementDirective] = Field(default_factory=list)
    skipped: List[SkippedRecord] = Field(default_factory=list)


# API models

class FieldSelectionResponse(BaseModel):
    selectAll: bool
    selectedFields: List[str]
    effectiveFields: List[str]
    catalog: List[str]


class ToggleRequest(BaseModel):
    field: str = Field(..., min_length=1, max_length=100)


class PlacementRequest(BaseModel):
    attributeFilter: Optional[AttributeFilter] = None
    spatialFilter: Optional[SpatialFilter] = None
    resultLimit: Optional[int] = None
    outputFormat: OutputFormat = OutputFormat.GEOJSON
    layerUrl: Optional[str] = None
    policy: MappingPolicy = MappingPolicy.SKIP


class QueryPreviewResponse(BaseModel):
    url: str
    query: str


class SceneEntry(BaseModel):
    id: str
    displayName: str
    assetKey: Optional[str] = None


class PlacementResponse(BaseModel):
    query: str
    featureCount: int
    directives: List[PlacementDirective]
    skipped: List[SkippedRecord]
    scene: List[SceneEntry]


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    request_id: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: Optional[str] = None
