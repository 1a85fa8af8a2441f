from dataclasses import dataclass, field
from typing import List, Optional

from .client import FeatureServiceClient
from .mapping import PlacementMapper
from .models import (
    AttributeFilter,
    MappingBatch,
    MappingContext,
    MappingPolicy,
    OutputFormat,
    QueryParameters,
    SpatialFilter,
)
from .parsers import parse_payload
from .query import build_url
from .scene import SceneHandle, SceneSink
from .selection import SelectionIndex
from .utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PlacementResult:
    query_url: str
    feature_count: int
    batch: MappingBatch
    handles: List[SceneHandle] = field(default_factory=list)


def parameters_from_selection(
    selection: SelectionIndex,
    attribute_filter: Optional[AttributeFilter] = None,
    spatial_filter: Optional[SpatialFilter] = None,
    output_sr: int = 4326,
    result_limit: Optional[int] = None,
    output_format: OutputFormat = OutputFormat.GEOJSON,
) -> QueryParameters:
    """Snapshot the current field selection into fresh query parameters."""
    return QueryParameters(
        output_format=output_format,
        attribute_filter=attribute_filter,
        spatial_filter=spatial_filter,
        output_fields=selection.effective_field_set(),
        output_sr=output_sr,
        result_limit=result_limit,
    )


async def fetch_placements(
    client: FeatureServiceClient,
    layer_url: str,
    params: QueryParameters,
    mapper: PlacementMapper,
    context: MappingContext,
    sink: Optional[SceneSink] = None,
    policy: MappingPolicy = MappingPolicy.SKIP,
) -> PlacementResult:
    """Query, parse, map and (optionally) instantiate one batch of features.

    The query is built before any request is sent, so configuration errors
    never reach the transport. Directives are handed to ``sink`` only once
    the whole batch has been parsed and mapped; a cancelled or failed query
    instantiates nothing.
    """
    query_url = build_url(layer_url, params)
    body = await client.get_text(query_url)

    records = parse_payload(params.output_format, body)
    batch = mapper.map_batch(records, context, policy=policy)

    handles: List[SceneHandle] = []
    if sink is not None:
        handles = [sink.instantiate(directive) for directive in batch.directives]

    logger.info(
        "Placement batch completed",
        extra={
            'feature_count': len(records),
            'placed': len(batch.directives),
            'skipped': len(batch.skipped),
        },
    )
    return PlacementResult(
        query_url=query_url,
        feature_count=len(records),
        batch=batch,
        handles=handles,
    )
