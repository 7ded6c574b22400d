"""HTTP client with timeouts, size limits, and failure classification."""

import time
from io import BytesIO

import httpx
import structlog

from cdnredirect.fetch.config import FetchConfig
from cdnredirect.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
)
from cdnredirect.fetch.models import (
    FetchDeadlineExceededError,
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)
from cdnredirect.fetch.redact import redact_url_credentials


logger = structlog.get_logger()


class HttpFetcher:
    """HTTP GET client used for provider range documents.

    Every request is bounded by the configured timeout. Failures are never
    raised; they are returned as a FetchResult carrying a classified
    FetchError so that callers decide how to surface them.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration (defaults if omitted).
            transport: Optional httpx transport, mainly for tests.
        """
        self._config = config or FetchConfig()
        self._transport = transport
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> FetchConfig:
        """Get the fetch configuration."""
        return self._config

    def get(self, url: str) -> FetchResult:
        """Fetch a URL.

        Args:
            url: The URL to fetch.

        Returns:
            FetchResult with status, body, and error information.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(url=redact_url_credentials(url))

        result = self._execute(url)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def _execute(self, url: str) -> FetchResult:
        """Execute a single HTTP request.

        Args:
            url: URL to fetch.

        Returns:
            FetchResult from the request.
        """
        deadline = time.monotonic() + self._config.timeout_seconds
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }

        try:
            with (
                httpx.Client(
                    timeout=self._config.timeout_seconds,
                    follow_redirects=True,
                    transport=self._transport,
                ) as client,
                client.stream("GET", url, headers=headers) as response,
            ):
                content_length = response.headers.get("content-length")
                if content_length and content_length.isdigit():
                    size = int(content_length)
                    if size > self._config.max_response_size_bytes:
                        return self._failure(
                            url,
                            FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                            f"Response size {size} exceeds limit "
                            f"{self._config.max_response_size_bytes}",
                            status_code=response.status_code,
                        )

                http_error = self._classify_http_error(response.status_code)
                if http_error is not None:
                    return FetchResult(
                        status_code=response.status_code,
                        final_url=str(response.url),
                        error=http_error,
                    )

                body = self._read_body_with_limit(response, deadline)
                return FetchResult(
                    status_code=response.status_code,
                    final_url=str(response.url),
                    body_bytes=body,
                )

        except ResponseSizeExceededError as e:
            return self._failure(url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e))

        except FetchDeadlineExceededError as e:
            return self._failure(url, FetchErrorClass.NETWORK_TIMEOUT, str(e))

        except httpx.TimeoutException as e:
            return self._failure(
                url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}"
            )

        except httpx.ConnectError as e:
            return self._failure(
                url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}"
            )

        except httpx.HTTPError as e:
            return self._failure(
                url, FetchErrorClass.UNKNOWN, f"Unexpected error: {e!r}"
            )

    def _failure(
        self,
        url: str,
        error_class: FetchErrorClass,
        message: str,
        status_code: int | None = None,
    ) -> FetchResult:
        """Build a failed FetchResult.

        Args:
            url: Requested URL.
            error_class: Classification of the failure.
            message: Human-readable message.
            status_code: HTTP status code if a response was received.

        Returns:
            FetchResult carrying the error.
        """
        return FetchResult(
            status_code=status_code or 0,
            final_url=url,
            error=FetchError(
                error_class=error_class,
                message=message,
                status_code=status_code,
            ),
        )

    def _read_body_with_limit(self, response: httpx.Response, deadline: float) -> bytes:
        """Read response body with size limit and deadline.

        httpx applies its timeout to each socket operation, so a server that
        trickles bytes never trips it; the deadline bounds the whole read.
        A single blocked read can still overrun it by one timeout.

        Args:
            response: Streaming HTTP response.
            deadline: time.monotonic() value by which the body must be read.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
            FetchDeadlineExceededError: If the deadline passes mid-read.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                msg = (
                    f"Request exceeded deadline of "
                    f"{self._config.timeout_seconds}s (read {total_read} bytes)"
                )
                raise FetchDeadlineExceededError(msg)
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()

    def _classify_http_error(self, status_code: int) -> FetchError | None:
        """Classify HTTP status code as error.

        Args:
            status_code: HTTP status code.

        Returns:
            FetchError if status indicates error, None otherwise.
        """
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return FetchError(
            error_class=FetchErrorClass.HTTP_OTHER,
            message=f"Unexpected status ({status_code})",
            status_code=status_code,
        )
