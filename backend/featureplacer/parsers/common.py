from typing import Any, Dict, List, Optional, Tuple, Union

import orjson

from ..errors import InvalidGeometry, MalformedPayload, SchemaMismatch


def load_payload(raw_payload: Union[str, bytes]) -> Dict[str, Any]:
    """Decode a response body and require a JSON object at the top level."""
    try:
        data = orjson.loads(raw_payload)
    except (orjson.JSONDecodeError, TypeError) as exc:
        raise MalformedPayload(f"Response is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise SchemaMismatch(f"Expected a JSON object, got {type(data).__name__}")
    return data


def feature_list(data: Dict[str, Any]) -> List[Any]:
    features = data.get("features")
    if not isinstance(features, list):
        raise SchemaMismatch("Response has no 'features' list")
    return features


def require_object(feature: Any, key: str, index: int) -> Dict[str, Any]:
    if not isinstance(feature, dict):
        raise SchemaMismatch("feature is not an object", feature_index=index)
    value = feature.get(key)
    if not isinstance(value, dict):
        raise SchemaMismatch(f"'{key}' object is missing", feature_index=index)
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coordinate_pair(values: Any, index: int) -> Tuple[float, float]:
    """Take longitude and latitude from the first two coordinate components."""
    if not isinstance(values, (list, tuple)) or len(values) < 2:
        raise InvalidGeometry("geometry needs at least two coordinate components", feature_index=index)
    lon, lat = values[0], values[1]
    if not (_is_number(lon) and _is_number(lat)):
        raise InvalidGeometry(f"non-numeric coordinates {values[:2]!r}", feature_index=index)
    return float(lon), float(lat)


def stringify_attributes(attributes: Dict[str, Any]) -> Dict[str, Optional[str]]:
    result: Dict[str, Optional[str]] = {}
    for name, value in attributes.items():
        if value is None or isinstance(value, str):
            result[name] = value
        elif isinstance(value, bool):
            result[name] = "true" if value else "false"
        elif _is_number(value):
            result[name] = str(value)
        else:
            result[name] = orjson.dumps(value).decode()
    return result
