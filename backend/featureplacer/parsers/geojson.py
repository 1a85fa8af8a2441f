from typing import List, Union

from ..errors import SchemaMismatch
from ..models import FeatureRecord
from ..utils.logging import get_logger
from .common import coordinate_pair, feature_list, load_payload, require_object, stringify_attributes

logger = get_logger(__name__)


def parse_geojson(raw_payload: Union[str, bytes]) -> List[FeatureRecord]:
    """Parse an ``f=geojson`` FeatureCollection into records, in payload order.

    Any error aborts the whole collection; extra properties are kept as-is.
    """
    data = load_payload(raw_payload)

    collection_type = data.get("type")
    if collection_type is not None and collection_type != "FeatureCollection":
        raise SchemaMismatch(f"Expected a FeatureCollection, got {collection_type!r}")

    records: List[FeatureRecord] = []
    for index, feature in enumerate(feature_list(data)):
        geometry = require_object(feature, "geometry", index)
        properties = require_object(feature, "properties", index)

        records.append(
            FeatureRecord(
                geometry_type=str(geometry.get("type") or "Point"),
                coordinates=coordinate_pair(geometry.get("coordinates"), index),
                attributes=stringify_attributes(properties),
            )
        )

    logger.debug(f"Parsed {len(records)} GeoJSON features")
    return records
