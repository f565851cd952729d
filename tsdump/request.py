"""Construction of ListTimeSeries requests."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
import math

from google.cloud import monitoring_v3
from google.protobuf import timestamp_pb2

from tsdump.config import QueryConfig

Instant = Union[datetime, int, float]


def build_filter(metric_type: str, resource_type: str) -> str:
    """Build the monitoring filter expression for a metric/resource pair."""
    return f'metric.type="{metric_type}" resource.type="{resource_type}"'


def to_unix_seconds(instant: Instant) -> int:
    """Whole unix seconds for an instant; sub-second precision is dropped."""
    if isinstance(instant, datetime):
        return math.floor(instant.timestamp())
    return math.floor(instant)


def build_interval(start: Instant, end: Instant) -> monitoring_v3.TimeInterval:
    """Build a time interval expressed in whole seconds."""
    return monitoring_v3.TimeInterval(
        start_time=timestamp_pb2.Timestamp(seconds=to_unix_seconds(start)),
        end_time=timestamp_pb2.Timestamp(seconds=to_unix_seconds(end)),
    )


@dataclass(frozen=True)
class TimeSeriesQuery:
    """Everything needed to list time series for one metric/resource pair."""
    project: str
    metric_type: str
    resource_type: str
    start: Instant
    end: Instant

    @classmethod
    def from_config(cls, config: QueryConfig, now: Optional[float] = None) -> "TimeSeriesQuery":
        start, end = config.window(now)
        return cls(
            project=config.project,
            metric_type=config.metric_type,
            resource_type=config.resource_type,
            start=start,
            end=end,
        )

    @property
    def project_name(self) -> str:
        return f"projects/{self.project}"

    @property
    def filter(self) -> str:
        return build_filter(self.metric_type, self.resource_type)

    @property
    def interval(self) -> monitoring_v3.TimeInterval:
        return build_interval(self.start, self.end)

    def to_request(self) -> monitoring_v3.ListTimeSeriesRequest:
        """Build a request that returns both labels and points."""
        return monitoring_v3.ListTimeSeriesRequest(
            name=self.project_name,
            filter=self.filter,
            interval=self.interval,
            view=monitoring_v3.ListTimeSeriesRequest.TimeSeriesView.FULL,
        )
