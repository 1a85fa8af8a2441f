from .geojson import parse_geojson
from .esri import parse_esri_json
from ..models import OutputFormat


def parse(raw_payload):
    """Parse a GeoJSON feature collection payload."""
    return parse_geojson(raw_payload)


def parse_payload(output_format: OutputFormat, raw_payload):
    """Parse a payload in the format it was requested with."""
    if output_format == OutputFormat.GEOJSON:
        return parse_geojson(raw_payload)
    elif output_format == OutputFormat.ESRI_JSON:
        return parse_esri_json(raw_payload)
    else:
        raise ValueError(f"Unsupported output format: {output_format}")
