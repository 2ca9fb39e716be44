"""PostCrawl API client for search and extraction operations."""

import json
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

import httpx
import pydantic

from .config import ClientConfig
from .errors import (
    ValidationErrorBuilder,
    classify_error_response,
    generate_request_id,
    internal_error,
)
from .logging_config import mask_sensitive_data
from .models import ExtractRequest, SearchAndExtractRequest, SearchRequest


SEARCH_ENDPOINT = "/v1/search"
SEARCH_EXTRACT_ENDPOINT = "/v1/search-and-extract"
EXTRACT_ENDPOINT = "/v1/extract"
HEALTH_ENDPOINT = "/health"

RequestT = TypeVar("RequestT", bound=pydantic.BaseModel)


def coerce_request(
    model: Type[RequestT],
    request: Union[RequestT, Mapping[str, Any]]
) -> RequestT:
    """Validate a plain mapping into ``model``, reporting problems as a validation error."""
    if isinstance(request, model):
        return request
    try:
        return model.model_validate(dict(request or {}))
    except pydantic.ValidationError as e:
        builder = ValidationErrorBuilder()
        for problem in e.errors():
            field = ".".join(str(part) for part in problem["loc"]) or "arguments"
            if problem["type"] == "missing":
                builder.add_missing_field(field)
            else:
                builder.add_field_error(field, "invalid_value", problem["msg"])
        raise builder.build() from e


def _require_platforms(request: SearchRequest) -> None:
    if request.social_platforms is not None and len(request.social_platforms) == 0:
        raise (
            ValidationErrorBuilder(generate_request_id())
            .add_field_error(
                "social_platforms",
                "invalid_value",
                "must specify at least one platform"
            )
            .build()
        )


class PostCrawlClient:
    """PostCrawl API client.

    One instance serves one caller: it is built from that caller's API key and
    closed once the call completes.
    """

    def __init__(self, config: ClientConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logging.getLogger(f"postcrawl_client.{self.base_url}")

    async def __aenter__(self) -> "PostCrawlClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}"
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout,
                transport=self._transport
            )
        return self._client

    async def close(self):
        """Close the HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _send(self, method: str, endpoint: str, body: Optional[Dict[str, Any]], request_id: str) -> httpx.Response:
        url = self._build_url(endpoint)
        client = await self._get_client()
        start_time = time.time()

        self.logger.info(f"API Request: {method} {endpoint} - Request ID: {request_id}")
        if body is not None:
            self.logger.debug(f"Request Data: {json.dumps(mask_sensitive_data(body), indent=2)}")

        try:
            response = await client.request(method, url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            duration = time.time() - start_time
            self.logger.error(
                f"API Transport Error: {method} {endpoint} - Request ID: {request_id} - "
                f"Duration: {duration:.3f}s - Error: {e}"
            )
            raise internal_error(
                f"PostCrawl API unreachable: {e}", request_id, code="upstream_unavailable"
            ) from e

        duration = time.time() - start_time
        self.logger.info(
            f"API Response: {method} {endpoint} - Request ID: {request_id} - "
            f"Duration: {duration:.3f}s - Status: {response.status_code}"
        )

        if not response.is_success:
            error = classify_error_response(
                response.status_code, response.reason_phrase, response.text, request_id
            )
            log = self.logger.error if error.status_code >= 500 else self.logger.warning
            log(
                f"API Error: {method} {endpoint} - Request ID: {error.request_id} - "
                f"Type: {error.error_type} - Code: {error.code}"
            )
            raise error

        return response

    async def _make_request(self, endpoint: str, body: Dict[str, Any]) -> Any:
        """POST ``body`` to ``endpoint`` and return the parsed JSON response."""
        request_id = generate_request_id()
        response = await self._send("POST", endpoint, body, request_id)
        try:
            return response.json()
        except ValueError as e:
            raise internal_error(
                f"Invalid JSON in response from {endpoint}", request_id
            ) from e

    async def search(self, request: Union[SearchRequest, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Search for posts across social media platforms.

        Args:
            request: Search parameters; ``page`` defaults to 1 and ``results`` to 10

        Returns:
            List of search results
        """
        request = coerce_request(SearchRequest, request)
        _require_platforms(request)
        return await self._make_request(SEARCH_ENDPOINT, request.to_payload())

    async def search_and_extract(
        self,
        request: Union[SearchAndExtractRequest, Mapping[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Search for posts and extract the content of each hit.

        Args:
            request: Search parameters plus ``response_mode`` (default "raw")
                and ``include_comments`` (default False)

        Returns:
            List of extracted posts
        """
        request = coerce_request(SearchAndExtractRequest, request)
        _require_platforms(request)
        return await self._make_request(SEARCH_EXTRACT_ENDPOINT, request.to_payload())

    async def extract(self, request: Union[ExtractRequest, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Extract content from specific post URLs."""
        request = coerce_request(ExtractRequest, request)
        return await self._make_request(EXTRACT_ENDPOINT, request.to_payload())

    async def check_health(self) -> Any:
        """Check PostCrawl API health.

        Non-JSON bodies are returned as ``{"status": <text>}``.
        """
        response = await self._send("GET", HEALTH_ENDPOINT, None, generate_request_id())
        text = response.text
        try:
            return json.loads(text)
        except ValueError:
            return {"status": text}
