"""Listing time series from Cloud Monitoring."""
from typing import Any, Callable, Iterator, Optional
import logging

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import monitoring_v3

from tsdump.errors import ClientSetupError, FetchError
from tsdump.request import TimeSeriesQuery

logger = logging.getLogger(__name__)


class TimeSeriesFetcher:
    """
    Owns a metric service client for the duration of a run.

    Use as a context manager: the client is created on entry and its
    transport is closed on exit, whether the run succeeded or not.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[], Any]] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize the fetcher.

        Args:
            client_factory: Callable returning a MetricServiceClient-like object
            timeout: Per-call deadline in seconds; None waits indefinitely
        """
        self.client_factory = client_factory or monitoring_v3.MetricServiceClient
        self.timeout = timeout
        self.client = None

    def __enter__(self) -> "TimeSeriesFetcher":
        try:
            self.client = self.client_factory()
        except (GoogleAuthError, GoogleAPIError) as e:
            raise ClientSetupError(f"could not create metric client: {e}") from e
        logger.debug("Metric client created")
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.client is None:
            return False

        client, self.client = self.client, None
        try:
            client.transport.close()
        except Exception as e:
            # Keep the error that ended the run; a close failure only matters on success.
            if exc_type is None:
                raise
            logger.warning(f"Failed to close metric client: {e}")
        else:
            logger.debug("Metric client closed")
        return False

    def list_time_series(self, query: TimeSeriesQuery) -> Iterator[monitoring_v3.TimeSeries]:
        """
        Lazily yield the time series matching ``query``.

        Backend errors, whether raised by the first call or while paging,
        end the sequence with a FetchError. Nothing is retried.
        """
        if self.client is None:
            raise RuntimeError("TimeSeriesFetcher must be entered before listing")

        request = query.to_request()
        logger.info(f"Listing time series for {request.name} with filter {request.filter}")

        try:
            pager = self.client.list_time_series(
                request=request,
                retry=None,
                timeout=self.timeout
            )
            for series in pager:
                yield series
        except GoogleAPIError as e:
            raise FetchError(f"could not read time series value: {e}") from e
