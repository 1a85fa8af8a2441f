import logging
from typing import Optional

import httpx
import orjson
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import TransportError
from .models import QueryParameters
from .query import build_url
from .utils.cache import ResponseCache
from .utils.logging import get_logger

logger = get_logger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


class FeatureServiceClient:
    """Async HTTP transport for feature layer queries.

    Returns the raw response body; service-side error bodies and every
    httpx failure (including timeouts) surface as ``TransportError``.
    Retries are opt-in via ``max_attempts`` and only cover timeouts,
    connection failures and 5xx responses.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_attempts: int = 1,
        cache: Optional[ResponseCache] = None,
    ):
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.cache = cache
        self.retry_wait = wait_exponential(multiplier=1, min=1, max=10)
        self.session: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self.session = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.session.aclose()
        self.session = None

    async def fetch(self, layer_url: str, params: QueryParameters) -> str:
        """Build the query for ``params`` and return the response text."""
        url = build_url(layer_url, params)
        return await self.get_text(url)

    async def get_text(self, url: str) -> str:
        if self.session is None:
            raise RuntimeError("FeatureServiceClient must be used as an async context manager")

        if self.cache is not None:
            cached = self.cache.get(url)
            if cached is not None:
                logger.info("Returning cached feature response", extra={'query_url': url})
                return cached

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                body = await self._get_once(url)

        if self.cache is not None:
            self.cache.set(url, body)
        return body

    async def _get_once(self, url: str) -> str:
        logger.info("Querying feature service", extra={'query_url': url})
        try:
            response = await self.session.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Feature service timed out after {self.timeout}s", retryable=True
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"Feature service returned HTTP {exc.response.status_code}",
                code=exc.response.status_code,
                retryable=exc.response.status_code >= 500,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Feature service request failed: {exc}", retryable=True) from exc

        body = response.text
        self._raise_for_service_error(body)
        return body

    @staticmethod
    def _raise_for_service_error(body: str) -> None:
        # ArcGIS reports query errors as HTTP 200 with an ``error`` object
        if '"error"' not in body.lstrip()[:200]:
            return
        try:
            payload = orjson.loads(body)
        except orjson.JSONDecodeError:
            return
        if not isinstance(payload, dict) or 'error' not in payload:
            return

        error_info = payload['error'] or {}
        if not isinstance(error_info, dict):
            error_info = {'message': str(error_info)}
        message = error_info.get('message') or 'Feature service error'
        details = error_info.get('details')
        if details:
            detail_text = '; '.join(str(item) for item in details if item)
            if detail_text:
                message = f"{message}: {detail_text}"
        logger.error(f"Feature service error: {message}")
        code = error_info.get('code')
        raise TransportError(message, code=code, retryable=isinstance(code, int) and code >= 500)
