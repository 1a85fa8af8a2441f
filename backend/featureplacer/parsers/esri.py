from typing import List, Union

from ..models import FeatureRecord
from ..utils.logging import get_logger
from .common import coordinate_pair, feature_list, load_payload, require_object, stringify_attributes

logger = get_logger(__name__)


def parse_esri_json(raw_payload: Union[str, bytes]) -> List[FeatureRecord]:
    """Parse an ``f=json`` feature set (``geometry.x``/``geometry.y`` + ``attributes``)."""
    data = load_payload(raw_payload)
    geometry_type = str(data.get("geometryType") or "esriGeometryPoint")

    records: List[FeatureRecord] = []
    for index, feature in enumerate(feature_list(data)):
        geometry = require_object(feature, "geometry", index)
        attributes = require_object(feature, "attributes", index)

        records.append(
            FeatureRecord(
                geometry_type=geometry_type,
                coordinates=coordinate_pair([geometry.get("x"), geometry.get("y")], index),
                attributes=stringify_attributes(attributes),
            )
        )

    logger.debug(f"Parsed {len(records)} Esri JSON features")
    return records
