"""
Wire types for the Gripp JSON-RPC endpoint.

Every call posts a one-element array `[request]` and receives a one-element
array back. A response is either a success (carrying `result`) or a failure
(carrying `error`); `parse_response` decides which at the queue boundary so
no caller has to inspect ad hoc fields.
"""

import itertools
import time
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from gripp_hours.core.exceptions import InvalidUpstreamResponseError

_request_ids = itertools.count(int(time.time() * 1000))


class GrippRequest(BaseModel):
    """A single JSON-RPC call: `params` is `[filters, options]`."""

    method: str
    params: list[Any]
    id: int


def create_request(
    method: str,
    filters: Optional[list[dict[str, Any]]] = None,
    options: Optional[dict[str, Any]] = None,
) -> GrippRequest:
    return GrippRequest(
        method=method,
        params=[filters or [], options or {}],
        id=next(_request_ids),
    )


class GrippResult(BaseModel):
    """
    Paginated result block. `rows is None` means end of data.

    Rows are left unvalidated; the sync mapping skips malformed ones.
    """

    model_config = ConfigDict(extra="allow")

    rows: Optional[list[Any]] = None
    count: Optional[int] = None
    start: Optional[int] = None
    limit: Optional[int] = None
    next_start: Optional[int] = None
    more_items_in_collection: Optional[bool] = None


class GrippErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: Optional[int] = None
    message: str = "Unknown API error"


class GrippSuccess(BaseModel):
    kind: Literal["success"] = "success"
    id: Optional[int] = None
    result: GrippResult

    @property
    def rows(self) -> list[Any]:
        return self.result.rows or []


class GrippFailure(BaseModel):
    kind: Literal["failure"] = "failure"
    id: Optional[int] = None
    error: GrippErrorDetail


GrippResponse = Union[GrippSuccess, GrippFailure]


def parse_response(payload: Any) -> GrippResponse:
    """
    Turn a decoded response body into a tagged response.

    Raises:
        InvalidUpstreamResponseError: if the body is not a response array,
            or the element carries neither a result nor an error.
    """
    if isinstance(payload, list):
        if not payload:
            raise InvalidUpstreamResponseError("Empty response array from API")
        payload = payload[0]

    if not isinstance(payload, dict):
        raise InvalidUpstreamResponseError(
            f"Invalid response format from API: {type(payload).__name__}"
        )

    error = payload.get("error")
    if error:
        if isinstance(error, str):
            error = {"message": error}
        return GrippFailure(id=payload.get("id"), error=GrippErrorDetail(**error))

    result = payload.get("result")
    if not isinstance(result, dict):
        raise InvalidUpstreamResponseError("Invalid result format from API")

    return GrippSuccess(id=payload.get("id"), result=GrippResult(**result))
