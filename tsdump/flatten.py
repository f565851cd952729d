"""Flattening of monitoring time series into output points."""
from datetime import datetime, timezone
from typing import List, Mapping
import logging

from google.api import distribution_pb2
from google.cloud import monitoring_v3

from tsdump.errors import UnsupportedValueTypeError
from tsdump.series import (
    BucketOptions, DistributionValue, Exemplar, ExplicitBuckets,
    ExponentialBuckets, KeyValue, LinearBuckets, OptionsUnion, Point,
    Range, TypedValue, ValueKind,
)

logger = logging.getLogger(__name__)

# Timestamp used when a point or exemplar carries none.
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

_SCALAR_KINDS = {
    "bool_value": ValueKind.BOOL,
    "int64_value": ValueKind.INT64,
    "double_value": ValueKind.DOUBLE,
    "string_value": ValueKind.STRING,
}


def convert_labels(labels: Mapping[str, str], label_type: str) -> List[KeyValue]:
    """Tag every entry of a label map with its origin."""
    return [KeyValue(type=label_type, key=k, value=v) for k, v in labels.items()]


def build_labels(series: monitoring_v3.TimeSeries) -> List[KeyValue]:
    """Resource labels followed by metric labels."""
    labels = convert_labels(series.resource.labels, "resource")
    labels.extend(convert_labels(series.metric.labels, "metric"))
    return labels


def convert_bucket_options(options: distribution_pb2.Distribution.BucketOptions) -> BucketOptions:
    """Copy whichever bucket layout is set; none set gives an empty union."""
    layout = options.WhichOneof("options")

    if layout == "linear_buckets":
        linear = options.linear_buckets
        union = OptionsUnion(linear_buckets=LinearBuckets(
            num_finite_buckets=linear.num_finite_buckets,
            width=linear.width,
            offset=linear.offset,
        ))
    elif layout == "exponential_buckets":
        exponential = options.exponential_buckets
        union = OptionsUnion(exponential_buckets=ExponentialBuckets(
            num_finite_buckets=exponential.num_finite_buckets,
            growth_factor=exponential.growth_factor,
            scale=exponential.scale,
        ))
    elif layout == "explicit_buckets":
        union = OptionsUnion(explicit_buckets=ExplicitBuckets(
            bounds=list(options.explicit_buckets.bounds),
        ))
    else:
        union = OptionsUnion()

    return BucketOptions(options=union)


def convert_exemplar(exemplar: distribution_pb2.Distribution.Exemplar) -> Exemplar:
    timestamp = EPOCH
    if exemplar.HasField("timestamp"):
        timestamp = exemplar.timestamp.ToDatetime(tzinfo=timezone.utc)
    return Exemplar(value=exemplar.value, timestamp=timestamp)


def convert_distribution(dist: distribution_pb2.Distribution) -> DistributionValue:
    """
    Transcribe a distribution value.

    Range and bucket options are only present in the output when the source
    sets them. Bucket counts are positional and copied as-is.
    """
    value_range = None
    if dist.HasField("range"):
        value_range = Range(min=dist.range.min, max=dist.range.max)

    bucket_options = None
    if dist.HasField("bucket_options"):
        bucket_options = convert_bucket_options(dist.bucket_options)

    return DistributionValue(
        count=dist.count,
        mean=dist.mean,
        sum_of_squared_deviation=dist.sum_of_squared_deviation,
        range=value_range,
        bucket_options=bucket_options,
        bucket_counts=list(dist.bucket_counts),
        exemplars=[convert_exemplar(e) for e in dist.exemplars],
    )


def typed_value(value: monitoring_v3.TypedValue) -> TypedValue:
    """Read the oneof of a monitoring TypedValue into a TypedValue."""
    kind = monitoring_v3.TypedValue.pb(value).WhichOneof("value")

    if kind in _SCALAR_KINDS:
        return TypedValue(_SCALAR_KINDS[kind], getattr(value, kind))

    if kind == "distribution_value":
        return TypedValue(ValueKind.DISTRIBUTION, convert_distribution(value.distribution_value))

    raise UnsupportedValueTypeError(kind)


def point_timestamp(point: monitoring_v3.Point) -> datetime:
    """Start of the point's interval, or the epoch when unset."""
    start = point.interval.start_time
    return start if start is not None else EPOCH


def flatten_series(series: monitoring_v3.TimeSeries) -> List[Point]:
    """
    Flatten one time series into output points.

    Points keep the order the backend returned them in and share a single
    label list. A series without points yields an empty list.

    Raises:
        UnsupportedValueTypeError: if any point has an unknown value kind
    """
    labels = build_labels(series)

    points = [
        Point.from_value(point_timestamp(p), labels, typed_value(p.value))
        for p in series.points
    ]

    logger.debug(f"Flattened {len(points)} points with {len(labels)} labels")
    return points
