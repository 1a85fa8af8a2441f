import uuid
from datetime import datetime, timezone
from typing import List
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import uvicorn

from .client import FeatureServiceClient
from .errors import ConfigurationError, MappingError, PayloadError, TransportError
from .mapping import AssetCatalog, MappingRules, PlacementMapper
from .models import (
    ErrorResponse,
    FieldSelectionResponse,
    HealthResponse,
    MappingContext,
    PlacementRequest,
    PlacementResponse,
    QueryPreviewResponse,
    SceneEntry,
    ToggleRequest,
)
from .pipeline import fetch_placements, parameters_from_selection
from .query import build_url
from .scene import InMemorySceneRegistry
from .selection import ExplicitFields, SelectionIndex
from .settings import (
    ASSET_CATALOG,
    CATEGORY_FIELD,
    DEFAULT_ASSET,
    FEATURE_LAYER_URL,
    FIELD_CATALOG,
    HEIGHT_FIELD,
    LOG_LEVEL,
    OUT_SR,
    QUERY_RETRY_ATTEMPTS,
    QUERY_TIMEOUT,
    REFERENCE_HEIGHT,
    REFERENCE_WIDTH,
    RESULT_RECORD_COUNT,
    SELECT_ALL_LABEL,
    SPAWN_HEIGHT,
    WIDTH_FIELD,
    cache,
)
from .utils.logging import setup_logging, get_logger

VERSION = "1.0.0"

setup_logging(LOG_LEVEL)
logger = get_logger(__name__)

app = FastAPI(
    title="Feature Placer API",
    description="Feature layer query to scene placement service",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

selection = SelectionIndex(
    catalog=FIELD_CATALOG,
    select_all_label=SELECT_ALL_LABEL,
    initial=ExplicitFields(frozenset({CATEGORY_FIELD, WIDTH_FIELD, HEIGHT_FIELD})),
)
scene = InMemorySceneRegistry()
mapper = PlacementMapper(
    catalog=AssetCatalog(assets=ASSET_CATALOG, fallback=DEFAULT_ASSET),
    rules=MappingRules(category_field=CATEGORY_FIELD, width_field=WIDTH_FIELD, height_field=HEIGHT_FIELD),
)
mapping_context = MappingContext(
    spawn_height=SPAWN_HEIGHT,
    spatial_reference_id=OUT_SR,
    reference_width=REFERENCE_WIDTH,
    reference_height=REFERENCE_HEIGHT,
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log requests with timing and add request ID."""
    request_id = str(uuid.uuid4())[:8]
    start_time = datetime.now(timezone.utc)
    request.state.request_id = request_id

    logger.info(
        "Request started",
        extra={'request_id': request_id, 'method': request.method, 'url': str(request.url)},
    )

    response = await call_next(request)
    duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

    logger.info(
        "Request completed",
        extra={
            'request_id': request_id,
            'method': request.method,
            'url': str(request.url),
            'status_code': response.status_code,
            'duration_ms': round(duration, 2),
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured error response."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.detail, request_id=request_id).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions with structured error response."""
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if LOG_LEVEL == "DEBUG" else None,
            request_id=request_id,
        ).model_dump(),
    )


def _selection_response() -> FieldSelectionResponse:
    return FieldSelectionResponse(
        selectAll=selection.select_all_flag,
        selectedFields=sorted(selection.selected_fields),
        effectiveFields=sorted(selection.effective_field_set()),
        catalog=sorted(selection.catalog),
    )


def _query_parameters(request: PlacementRequest):
    return parameters_from_selection(
        selection,
        attribute_filter=request.attributeFilter,
        spatial_filter=request.spatialFilter,
        output_sr=OUT_SR,
        result_limit=request.resultLimit if request.resultLimit is not None else RESULT_RECORD_COUNT,
        output_format=request.outputFormat,
    )


@app.get("/healthz", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
    )


@app.get("/api/fields", response_model=FieldSelectionResponse)
async def get_fields():
    return _selection_response()


@app.post("/api/fields/toggle", response_model=FieldSelectionResponse)
async def toggle_field(request: ToggleRequest):
    """Toggle one output field, or the select-all entry."""
    try:
        selection.toggle(request.field)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _selection_response()


@app.post("/api/query/preview", response_model=QueryPreviewResponse)
async def preview_query(request: PlacementRequest):
    """Return the query that /api/placements would send."""
    try:
        url = build_url(request.layerUrl or FEATURE_LAYER_URL, _query_parameters(request))
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return QueryPreviewResponse(url=url, query=url.split("?", 1)[1])


@app.post("/api/placements", response_model=PlacementResponse)
async def create_placements(request: PlacementRequest):
    """Query the feature layer and place every mappable feature in the scene."""
    layer_url = request.layerUrl or FEATURE_LAYER_URL

    try:
        params = _query_parameters(request)
        async with FeatureServiceClient(
            timeout=QUERY_TIMEOUT,
            max_attempts=QUERY_RETRY_ATTEMPTS,
            cache=cache,
        ) as client:
            result = await fetch_placements(
                client,
                layer_url,
                params,
                mapper,
                mapping_context,
                sink=scene,
                policy=request.policy,
            )
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except TransportError as exc:
        logger.error(f"Feature query failed: {exc}")
        raise HTTPException(status_code=502, detail=str(exc))
    except PayloadError as exc:
        logger.error(f"Feature response rejected: {exc}")
        raise HTTPException(status_code=502, detail=f"{type(exc).__name__}: {exc}")
    except MappingError as exc:
        raise HTTPException(status_code=422, detail=f"{type(exc).__name__}: {exc}")

    return PlacementResponse(
        query=result.query_url.split("?", 1)[1],
        featureCount=result.feature_count,
        directives=result.batch.directives,
        skipped=result.batch.skipped,
        scene=[
            SceneEntry(
                id=handle.id,
                displayName=handle.display_name,
                assetKey=scene.directive(handle).asset_key,
            )
            for handle in result.handles
        ],
    )


@app.get("/api/scene", response_model=List[SceneEntry])
async def list_scene():
    """Everything placed so far, sorted by display name."""
    entries = [
        SceneEntry(id=handle.id, displayName=handle.display_name, assetKey=scene.directive(handle).asset_key)
        for handle in scene.handles
    ]
    return sorted(entries, key=lambda entry: entry.displayName)


@app.delete("/api/scene")
async def clear_scene():
    scene.clear()
    return {"status": "cleared"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
