"""
Outline
GrippClient.execute()
GrippClient.fetch_all()
GrippClient.aclose()
parse_retry_after()
build_gripp_client()
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from gripp_hours.core.config import settings
from gripp_hours.core.exceptions import (
    InvalidUpstreamResponseError,
    RateLimitedError,
    TransientUpstreamError,
    UpstreamApplicationError,
    UpstreamHTTPError,
)
from gripp_hours.core.logging import get_logger
from gripp_hours.core.request_queue import CancellationToken, RequestQueue, RetryPolicy
from gripp_hours.models.gripp import (
    GrippFailure,
    GrippRequest,
    GrippSuccess,
    create_request,
    parse_response,
)

logger = get_logger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After header into seconds.

    The header is either a number of seconds or an HTTP date.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unparseable Retry-After header: {value}")
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class GrippClient:
    """
    Client for the Gripp JSON-RPC API.

    Every call goes through a RequestQueue so that the upstream rate limits
    are respected no matter how many callers are active.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 60.0,
        page_size: int = 250,
        *,
        min_interval: float = settings.QUEUE_MIN_INTERVAL_MS / 1000,
        max_concurrent: int = settings.QUEUE_MAX_CONCURRENT,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Gripp client.

        Args:
            base_url: Full URL of the JSON-RPC endpoint
            api_key: Bearer token for the API
            timeout: Request timeout in seconds
            page_size: Rows per page for paginated calls
            min_interval: Minimum seconds between dispatches
            max_concurrent: Maximum concurrent requests
            retry_policy: Retry rules; bounds the number of retries
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.page_size = page_size
        self._http = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        self.queue = RequestQueue(
            self._send,
            min_interval=min_interval,
            max_concurrent=max_concurrent,
            retry_policy=retry_policy or RetryPolicy.from_settings(),
        )

    async def execute(
        self, request: GrippRequest, token: Optional[CancellationToken] = None
    ) -> GrippSuccess:
        """
        Execute a single request through the queue.

        Raises:
            TransientUpstreamError / RateLimitedError: once retries run out
            UpstreamApplicationError: the API returned an error envelope
            UpstreamHTTPError: any other non-2xx status
            RequestCancelledError: the token was cancelled
        """
        return await self.queue.enqueue(request, token)

    async def fetch_all(
        self,
        method: str,
        filters: Optional[list[dict[str, Any]]] = None,
        options: Optional[dict[str, Any]] = None,
        page_size: Optional[int] = None,
        token: Optional[CancellationToken] = None,
    ) -> list[dict[str, Any]]:
        """
        Retrieve every row of a paginated method.

        Pagination stops at a missing or empty `rows`, a short page, or when
        the API reports no more items.

        Args:
            method: Gripp method, e.g. "employee.get"
            filters: Gripp filter list
            options: Extra options merged with the paging block
            page_size: Rows per page (defaults to the client's page size)
            token: Optional cancellation token

        Returns:
            All rows across pages
        """
        size = page_size or self.page_size
        first_result = 0
        rows: list[dict[str, Any]] = []

        while True:
            request = create_request(
                method,
                filters,
                {
                    **(options or {}),
                    "paging": {"firstresult": first_result, "maxresults": size},
                },
            )
            response = await self.execute(request, token)
            page = response.result.rows

            if not page:
                break

            rows.extend(page)
            logger.info(
                f"{method}: received {len(page)} rows (offset {first_result}, total {len(rows)})"
            )

            if response.result.more_items_in_collection is False or len(page) < size:
                break

            first_result = response.result.next_start or first_result + size

        return rows

    async def aclose(self) -> None:
        await self.queue.aclose()
        await self._http.aclose()

    async def _send(self, request: GrippRequest) -> GrippSuccess:
        """Perform one HTTP round trip and classify the outcome."""
        try:
            response = await self._http.post(
                self.base_url, json=[request.model_dump()]
            )
        except httpx.TransportError as e:
            logger.warning(f"Network error calling {request.method}: {str(e)}")
            raise TransientUpstreamError(
                f"Network error calling {request.method}: {e}"
            ) from e

        if response.status_code == 503:
            raise TransientUpstreamError(f"Service unavailable (503) for {request.method}")

        if response.status_code == 429:
            raise RateLimitedError(
                f"Rate limited (429) for {request.method}",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )

        if not response.is_success:
            raise UpstreamHTTPError(
                f"Unexpected status {response.status_code} for {request.method}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidUpstreamResponseError(
                f"Response for {request.method} is not JSON"
            ) from e

        parsed = parse_response(payload)
        if isinstance(parsed, GrippFailure):
            logger.error(f"API error for {request.method}: {parsed.error.message}")
            raise UpstreamApplicationError(parsed.error.message, code=parsed.error.code)

        return parsed


def build_gripp_client(**overrides) -> GrippClient:
    """Create a client from settings. The URL and key come from the environment."""
    return GrippClient(
        base_url=overrides.pop("base_url", settings.GRIPP_API_URL),
        api_key=overrides.pop("api_key", settings.GRIPP_API_KEY),
        timeout=overrides.pop("timeout", settings.GRIPP_TIMEOUT),
        page_size=overrides.pop("page_size", settings.GRIPP_PAGE_SIZE),
        **overrides,
    )
