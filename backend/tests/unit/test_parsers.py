import json

import pytest

from featureplacer.errors import InvalidGeometry, MalformedPayload, SchemaMismatch
from featureplacer.models import OutputFormat
from featureplacer.parsers import parse, parse_payload


def _tree(lon, lat, genus="ACER", crown="5.0", height="10.0", **extra):
    properties = {"gattung": genus, "kronedurch": crown, "baumhoehe": height}
    properties.update(extra)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
        "properties": properties,
    }


def _collection(*features):
    return json.dumps({"type": "FeatureCollection", "features": list(features)})


class TestGeoJSONParser:

    def test_single_feature(self):
        """Coordinates and attributes are carried over unchanged."""
        records = parse(_collection(_tree(13.3501, 52.5145)))

        assert len(records) == 1
        assert records[0].geometry_type == "Point"
        assert records[0].coordinates == (13.3501, 52.5145)
        assert records[0].attributes["gattung"] == "ACER"
        assert records[0].attributes["kronedurch"] == "5.0"

    def test_order_is_preserved(self):
        features = [_tree(13.0 + i / 100, 52.5, genus=f"G{i}") for i in range(5)]
        records = parse(_collection(*features))

        assert [r.attributes["gattung"] for r in records] == ["G0", "G1", "G2", "G3", "G4"]
        assert [r.longitude for r in records] == [13.0, 13.01, 13.02, 13.03, 13.04]

    def test_extra_attributes_are_tolerated(self):
        records = parse(_collection(_tree(13.35, 52.51, pflanzjahr=1985, standortnr=None)))

        assert records[0].attributes["pflanzjahr"] == "1985"
        assert records[0].attributes["standortnr"] is None

    def test_third_coordinate_is_ignored(self):
        feature = _tree(13.35, 52.51)
        feature["geometry"]["coordinates"] = [13.35, 52.51, 34.0]
        records = parse(_collection(feature))
        assert records[0].coordinates == (13.35, 52.51)

    def test_bytes_payload(self):
        records = parse(_collection(_tree(13.35, 52.51)).encode())
        assert len(records) == 1

    def test_empty_collection(self):
        assert parse(_collection()) == []

    def test_invalid_json(self):
        with pytest.raises(MalformedPayload):
            parse("{not json")

    @pytest.mark.parametrize(
        "payload",
        [
            "[]",
            json.dumps({"type": "FeatureCollection"}),
            json.dumps({"type": "Feature", "features": []}),
            json.dumps({"type": "FeatureCollection", "features": [{"type": "Feature", "properties": {}}]}),
            json.dumps({
                "type": "FeatureCollection",
                "features": [{"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 2]}}],
            }),
        ],
    )
    def test_schema_mismatch(self, payload):
        with pytest.raises(SchemaMismatch):
            parse(payload)

    @pytest.mark.parametrize(
        "coordinates",
        [[13.35], [], ["13.35", "52.51"], [True, 52.51], [[13.35, 52.51]]],
    )
    def test_invalid_geometry(self, coordinates):
        feature = _tree(13.35, 52.51)
        feature["geometry"]["coordinates"] = coordinates

        with pytest.raises(InvalidGeometry) as excinfo:
            parse(_collection(_tree(13.0, 52.0), feature))

        assert excinfo.value.feature_index == 1


class TestEsriJSONParser:

    def test_feature_set(self):
        payload = json.dumps({
            "geometryType": "esriGeometryPoint",
            "features": [
                {"geometry": {"x": 13.3501, "y": 52.5145}, "attributes": {"gattung": "TILIA", "baumhoehe": 12}},
            ],
        })
        records = parse_payload(OutputFormat.ESRI_JSON, payload)

        assert records[0].geometry_type == "esriGeometryPoint"
        assert records[0].coordinates == (13.3501, 52.5145)
        assert records[0].attributes == {"gattung": "TILIA", "baumhoehe": "12"}

    def test_missing_point(self):
        payload = json.dumps({"features": [{"geometry": {"x": 13.35}, "attributes": {}}]})
        with pytest.raises(InvalidGeometry):
            parse_payload(OutputFormat.ESRI_JSON, payload)
