import asyncio
import json

import pytest

from featureplacer.errors import ConfigurationError, SchemaMismatch
from featureplacer.mapping import AssetCatalog, PlacementMapper
from featureplacer.models import AttributeFilter, MappingContext, QueryParameters, SpatialFilter
from featureplacer.pipeline import fetch_placements, parameters_from_selection
from featureplacer.query import build
from featureplacer.scene import InMemorySceneRegistry
from featureplacer.selection import SELECT_ALL, SelectionIndex

LAYER_URL = "https://example.com/arcgis/rest/services/Trees/FeatureServer/0"


class FakeClient:
    """Stands in for FeatureServiceClient; records requested URLs."""

    def __init__(self, body):
        self.body = body
        self.urls = []

    async def get_text(self, url):
        self.urls.append(url)
        return self.body


def _payload(*trees):
    return json.dumps({
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lon, lat]},
                "properties": props,
            }
            for lon, lat, props in trees
        ],
    })


@pytest.fixture
def mapper():
    return PlacementMapper(catalog=AssetCatalog(assets={"ACER": "tree_maple"}, fallback="tree_default"))


@pytest.fixture
def context():
    return MappingContext(spawn_height=10000.0)


def _run(coro):
    return asyncio.run(coro)


def test_full_batch_reaches_sink(mapper, context):
    client = FakeClient(_payload(
        (13.3501, 52.5145, {"gattung": "ACER", "kronedurch": "5.0", "baumhoehe": "10.0"}),
        (13.36, 52.52, {"gattung": "TILIA", "kronedurch": "4", "baumhoehe": None}),
        (13.37, 52.53, {"gattung": "QUERCUS", "kronedurch": "7", "baumhoehe": "21"}),
    ))
    sink = InMemorySceneRegistry()
    params = QueryParameters(attribute_filter=AttributeFilter(field="bezirk", value="Mitte"))

    result = _run(fetch_placements(client, LAYER_URL, params, mapper, context, sink=sink))

    assert result.feature_count == 3
    assert [d.display_name for d in result.batch.directives] == ["ACER_0", "QUERCUS_1"]
    assert result.batch.skipped[0].index == 1
    assert sink.display_names() == ["ACER_0", "QUERCUS_1"]
    assert sink.directive(sink.find("QUERCUS_1")).asset_key == "tree_default"
    assert [h.display_name for h in result.handles] == ["ACER_0", "QUERCUS_1"]
    assert client.urls == [result.query_url]
    assert "where=bezirk%3D%27Mitte%27" in result.query_url


def test_conflicting_filters_never_reach_transport(mapper, context):
    client = FakeClient(_payload())
    params = QueryParameters(
        attribute_filter=AttributeFilter(field="bezirk", value="Mitte"),
        spatial_filter=SpatialFilter(longitude=13.35, latitude=52.51, distance=1000),
    )

    with pytest.raises(ConfigurationError):
        _run(fetch_placements(client, LAYER_URL, params, mapper, context))

    assert client.urls == []


def test_parse_failure_instantiates_nothing(mapper, context):
    client = FakeClient(json.dumps({"type": "FeatureCollection"}))
    sink = InMemorySceneRegistry()

    with pytest.raises(SchemaMismatch):
        _run(fetch_placements(client, LAYER_URL, QueryParameters(), mapper, context, sink=sink))

    assert len(sink) == 0


def test_cancelled_query_instantiates_nothing(mapper, context):
    class SlowClient(FakeClient):
        async def get_text(self, url):
            self.urls.append(url)
            await asyncio.sleep(10)
            return self.body

    client = SlowClient(_payload((13.0, 52.0, {"gattung": "ACER", "kronedurch": "1", "baumhoehe": "2"})))
    sink = InMemorySceneRegistry()

    async def run():
        task = asyncio.ensure_future(
            fetch_placements(client, LAYER_URL, QueryParameters(), mapper, context, sink=sink)
        )
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    _run(run())
    assert len(sink) == 0


def test_parameters_from_selection():
    selection = SelectionIndex(catalog=("gattung", "baumhoehe", "kronedurch"))
    selection.toggle(SELECT_ALL)

    params = parameters_from_selection(selection, result_limit=500)

    assert params.output_fields == {"gattung", "baumhoehe", "kronedurch"}
    assert params.result_limit == 500

    selection.toggle("gattung")
    assert parameters_from_selection(selection).output_fields == {"gattung"}
    # earlier snapshot is unaffected
    assert len(params.output_fields) == 3


def test_select_all_without_catalog_requests_every_field():
    selection = SelectionIndex()
    empty = build(parameters_from_selection(selection))
    selection.toggle(SELECT_ALL)

    query = build(parameters_from_selection(selection))

    assert "outFields=*" in query
    assert query != empty
