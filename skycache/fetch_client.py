"""HTTP client with per-attempt timeout, bounded retries and typed error classification.

`FetchClient.request()` never raises for network or HTTP failures; it returns a
`Result` holding either the decoded payload or an `ErrorRecord`:

==========================  ===========  ==========================
condition                   retried?     terminal error kind
==========================  ===========  ==========================
timeout                     yes          NETWORK
connection refused / DNS    no           NETWORK
5xx                         yes          SERVER
401                         no           AUTHORIZATION
404 with identifier         no           NOT_FOUND
other 4xx                   no           SERVER
2xx, decoder raises         no           SERVER
unclassified exception      yes          SERVER
==========================  ===========  ==========================

Retries reuse the same descriptor with `attempt` incremented and no backoff.
The loop bounds attempts, not wall-clock time, and cannot be cancelled once
started.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import requests

from skycache.errors import ErrorRecord
from skycache.result import Result
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="fetch_client")

DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_RETRIES = 2

Decoder = Callable[[Any], Any]


class RequestMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


WRITE_METHODS = {RequestMethod.POST, RequestMethod.PUT, RequestMethod.DELETE}


@dataclass(frozen=True)
class RequestDescriptor:
    """Everything needed to issue one logical request. Immutable; retries clone it."""
    endpoint: str
    method: RequestMethod = RequestMethod.GET
    query_parameters: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[Mapping[str, Any]] = None
    include_auth: bool = True
    timeout: Optional[float] = None  # seconds; None -> client default
    max_retries: Optional[int] = None  # None -> client default
    resource_identifier: Optional[str] = None  # set on lookups so a 404 becomes NOT_FOUND
    base_url: Optional[str] = None  # overrides the client's base URL
    attempt: int = 0

    def next_attempt(self) -> "RequestDescriptor":
        return replace(self, attempt=self.attempt + 1)


def join_url(base_url: str, endpoint: str) -> str:
    """Join base and endpoint with exactly one separating slash."""
    if not endpoint:
        return base_url
    if not base_url:
        return endpoint
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


def _identity(data: Any) -> Any:
    return data


class FetchClient:
    """Issues requests through a shared requests.Session (the connection pool)."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        units: str = "metric",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.units = units
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "FetchClient":
        return cls(
            settings.base_url,
            api_key=settings.api_key,
            units=settings.units,
            timeout=settings.request_timeout_seconds,
            max_retries=settings.max_retries,
            session=session,
        )

    def build_params(self, descriptor: RequestDescriptor) -> dict[str, str]:
        """Implicit auth/unit parameters first, then the caller's (caller wins)."""
        params: dict[str, str] = {}
        if descriptor.include_auth:
            params["appid"] = self.api_key
            params["units"] = self.units
        params.update(descriptor.query_parameters)
        return params

    def build_headers(self, descriptor: RequestDescriptor) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(descriptor.headers)
        return headers

    def _send(self, descriptor: RequestDescriptor) -> requests.Response:
        url = join_url(descriptor.base_url or self.base_url, descriptor.endpoint)
        data = None
        if descriptor.method in WRITE_METHODS and descriptor.body is not None:
            data = json.dumps(descriptor.body)
        timeout = descriptor.timeout if descriptor.timeout is not None else self.timeout
        return self.session.request(
            descriptor.method.value,
            url,
            params=self.build_params(descriptor),
            headers=self.build_headers(descriptor),
            data=data,
            timeout=timeout,
        )

    def request(self, descriptor: RequestDescriptor, decoder: Decoder = _identity) -> Result:
        """Issue `descriptor`, retrying per policy, and decode a 2xx body with `decoder`."""
        max_retries = descriptor.max_retries if descriptor.max_retries is not None else self.max_retries
        current = descriptor

        while True:
            retries_left = current.attempt < max_retries
            logger.debug(
                "Sending request",
                extra={"method": current.method.value, "endpoint": current.endpoint, "attempt": current.attempt},
            )
            try:
                response = self._send(current)
            except requests.Timeout as exc:
                logger.error("Request timed out", extra={"endpoint": current.endpoint, "attempt": current.attempt})
                if retries_left:
                    logger.info("Retrying request (%d/%d)", current.attempt + 1, max_retries)
                    current = current.next_attempt()
                    continue
                return Result.failure(ErrorRecord.network("Request timed out. Please try again.", cause=exc))
            except requests.ConnectionError as exc:
                logger.error("No internet connection", extra={"endpoint": current.endpoint, "error": str(exc)})
                return Result.failure(ErrorRecord.network("No internet connection", cause=exc))
            except Exception as exc:
                logger.exception("Unexpected error sending request", extra={"endpoint": current.endpoint})
                if retries_left:
                    logger.info("Retrying request (%d/%d)", current.attempt + 1, max_retries)
                    current = current.next_attempt()
                    continue
                return Result.failure(ErrorRecord.server(f"Unexpected error occurred: {exc}", cause=exc))

            status = response.status_code
            logger.debug("Response received", extra={"status": status, "url": mask_url_secrets(response.url or "")})

            if 500 <= status:
                logger.error("Server error", extra={"status": status, "body": (response.text or "")[:200]})
                if retries_left:
                    logger.info("Retrying request (%d/%d)", current.attempt + 1, max_retries)
                    current = current.next_attempt()
                    continue
                return Result.failure(
                    ErrorRecord.server(f"Server error occurred. Status code: {status}", status_code=status)
                )

            return self._classify(current, response, decoder)

    def _classify(self, descriptor: RequestDescriptor, response: requests.Response, decoder: Decoder) -> Result:
        """Map a non-5xx response to a terminal result."""
        status = response.status_code

        if 200 <= status < 300:
            try:
                body = response.text
                data = json.loads(body) if body else {}
                return Result.success(decoder(data))
            except Exception as exc:
                logger.error("Failed to parse response data", extra={"endpoint": descriptor.endpoint, "error": str(exc)})
                return Result.failure(
                    ErrorRecord.server(f"Failed to parse response data: {exc}", cause=exc, status_code=status)
                )

        if status == 401:
            logger.error("Unauthorized (401); check the API key")
            return Result.failure(
                ErrorRecord.authorization("Invalid API key or unauthorized access. Please check your API key.")
            )

        if status == 404:
            if descriptor.resource_identifier is not None:
                logger.warning("Resource not found", extra={"identifier": descriptor.resource_identifier})
                return Result.failure(ErrorRecord.not_found(descriptor.resource_identifier))
            logger.warning("Endpoint not found", extra={"endpoint": descriptor.endpoint})
            return Result.failure(
                ErrorRecord.server(f"Resource not found: {descriptor.endpoint}", status_code=status)
            )

        logger.error("Request failed", extra={"status": status, "body": (response.text or "")[:200]})
        return Result.failure(
            ErrorRecord.server(f"Request failed with status code: {status}", status_code=status)
        )
