"""Feature service query construction.

Produces the ``/query`` string for an ArcGIS feature layer, e.g.::

    f=geojson&outFields=baumhoehe,gattung&outSR=4326&where=bezirk%3D%27Mitte%27&resultRecordCount=500

Clause order is fixed and output fields are sorted so identical parameters
always produce the identical string.
"""
import math
from typing import List, Tuple, Union
from urllib.parse import quote

from .errors import ConfigurationError
from .models import FIELD_NAME_PATTERN, QueryParameters, SpatialFilter
from .utils.logging import get_logger

logger = get_logger(__name__)

ALL_FEATURES_WHERE = "1=1"

ALL_FIELDS = "*"

# where clauses are fully percent-encoded; other values keep list separators readable
_SAFE_CHARS = {"where": ""}
_DEFAULT_SAFE = ",*"


def _format_number(value: Union[int, float]) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _validate_fields(fields) -> List[str]:
    ordered = sorted(fields)
    for field in ordered:
        if field != ALL_FIELDS and not FIELD_NAME_PATTERN.fullmatch(field or ""):
            raise ConfigurationError(f"Invalid output field name: {field!r}")
    return ordered


def _spatial_clauses(spatial: SpatialFilter, output_sr: int) -> List[Tuple[str, str]]:
    for label, value in (("longitude", spatial.longitude), ("latitude", spatial.latitude)):
        if not math.isfinite(value):
            raise ConfigurationError(f"Spatial filter {label} must be finite")
    if not math.isfinite(spatial.distance) or spatial.distance <= 0:
        raise ConfigurationError("Spatial filter distance must be a positive number")
    if not spatial.units:
        raise ConfigurationError("Spatial filter units are required")

    in_sr = spatial.in_sr if spatial.in_sr is not None else output_sr
    return [
        ("geometryType", "esriGeometryPoint"),
        ("geometry", f"{_format_number(spatial.longitude)},{_format_number(spatial.latitude)}"),
        ("spatialRel", "esriSpatialRelIntersects"),
        ("distance", _format_number(spatial.distance)),
        ("units", spatial.units),
        ("inSR", str(in_sr)),
    ]


def query_params(params: QueryParameters) -> List[Tuple[str, str]]:
    """Return the ordered, unencoded ``(name, value)`` pairs for a query.

    Raises ``ConfigurationError`` when the parameters conflict: both an
    attribute and a spatial filter, non-positive limits, or invalid field
    names.
    """
    if params.spatial_filter is not None and params.attribute_filter is not None:
        raise ConfigurationError("Attribute and spatial filters are mutually exclusive")
    if params.result_limit is not None and params.result_limit <= 0:
        raise ConfigurationError("resultRecordCount must be a positive integer")
    if params.result_offset is not None and params.result_offset < 0:
        raise ConfigurationError("resultOffset must not be negative")

    pairs: List[Tuple[str, str]] = [("f", params.output_format.value)]

    fields = _validate_fields(params.output_fields)
    # Empty field set: the clause is omitted and the service applies its default
    if fields:
        pairs.append(("outFields", ",".join(fields)))

    pairs.append(("outSR", str(params.output_sr)))

    if params.spatial_filter is not None:
        pairs.extend(_spatial_clauses(params.spatial_filter, params.output_sr))
    elif params.attribute_filter is not None:
        pairs.append(("where", params.attribute_filter.expression()))
    else:
        pairs.append(("where", ALL_FEATURES_WHERE))

    if params.result_offset is not None:
        pairs.append(("resultOffset", str(params.result_offset)))
    if params.result_limit is not None:
        pairs.append(("resultRecordCount", str(params.result_limit)))

    return pairs


def build(params: QueryParameters) -> str:
    """Build the URL-encoded query string for ``params``."""
    return "&".join(
        f"{name}={quote(value, safe=_SAFE_CHARS.get(name, _DEFAULT_SAFE))}"
        for name, value in query_params(params)
    )


def build_url(layer_url: str, params: QueryParameters) -> str:
    query = build(params)
    url = f"{layer_url.rstrip('/')}/query?{query}"
    logger.debug("Built feature query", extra={'query_url': url})
    return url
