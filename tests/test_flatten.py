#!/usr/bin/env python3
"""Tests for flattening monitoring time series into output points."""
from datetime import datetime, timezone

import pytest
from google.api import distribution_pb2, metric_pb2, monitored_resource_pb2
from google.cloud import monitoring_v3
from google.protobuf import timestamp_pb2

from fakes import layout_of, populated_values
from tsdump.errors import UnsupportedValueTypeError
from tsdump.flatten import (
    EPOCH, build_labels, convert_distribution, convert_labels,
    flatten_series, typed_value,
)
from tsdump.series import ValueKind

T0 = 1700000000
T1 = 1700000060

Distribution = distribution_pb2.Distribution
BucketOptions = Distribution.BucketOptions


def make_point(value: monitoring_v3.TypedValue, start: int = T0) -> monitoring_v3.Point:
    return monitoring_v3.Point(
        interval=monitoring_v3.TimeInterval(
            start_time=timestamp_pb2.Timestamp(seconds=start),
            end_time=timestamp_pb2.Timestamp(seconds=start),
        ),
        value=value,
    )


def make_series(resource_labels=None, metric_labels=None, points=()) -> monitoring_v3.TimeSeries:
    return monitoring_v3.TimeSeries(
        resource=monitored_resource_pb2.MonitoredResource(
            type="gce_instance", labels=resource_labels or {}
        ),
        metric=metric_pb2.Metric(
            type="custom.googleapis.com/test", labels=metric_labels or {}
        ),
        points=list(points),
    )


def label_set(labels):
    return {(kv.type, kv.key, kv.value) for kv in labels}


def test_convert_labels_tags_origin():
    """Every converted label carries the given origin tag."""
    labels = convert_labels({"a": "1", "b": "2"}, "metric")
    assert label_set(labels) == {("metric", "a", "1"), ("metric", "b", "2")}


def test_convert_labels_empty_map():
    assert convert_labels({}, "resource") == []


def test_build_labels_merges_resource_and_metric():
    """Merged labels hold both maps, tagged by origin, with no loss on key collision."""
    series = make_series(
        resource_labels={"zone": "us-central1-a", "instance_id": "123"},
        metric_labels={"zone": "override", "status": "ok"},
    )
    labels = build_labels(series)

    assert len(labels) == 4
    assert label_set(labels) == {
        ("resource", "zone", "us-central1-a"),
        ("resource", "instance_id", "123"),
        ("metric", "zone", "override"),
        ("metric", "status", "ok"),
    }
    # Resource labels come first
    assert [kv.type for kv in labels] == ["resource", "resource", "metric", "metric"]


@pytest.mark.parametrize("field, value, kind", [
    ("bool_value", False, ValueKind.BOOL),
    ("bool_value", True, ValueKind.BOOL),
    ("int64_value", 9007199254740993, ValueKind.INT64),
    ("int64_value", -5, ValueKind.INT64),
    ("double_value", 0.1, ValueKind.DOUBLE),
    ("string_value", "", ValueKind.STRING),
    ("string_value", "ready", ValueKind.STRING),
])
def test_scalar_values_fill_exactly_one_field(field, value, kind):
    """Scalar values land in their own field, uncoerced, with the rest left None."""
    series = make_series(points=[make_point(monitoring_v3.TypedValue(**{field: value}))])
    (point,) = flatten_series(series)

    assert typed_value(series.points[0].value).kind is kind
    assert populated_values(point) == {field: value}
    assert type(getattr(point, field)) is type(value)


def test_zero_values_are_not_absent():
    """A false boolean is set, not missing."""
    (point,) = flatten_series(make_series(points=[
        make_point(monitoring_v3.TypedValue(bool_value=False))
    ]))
    assert point.bool_value is False
    assert point.int64_value is None


def test_unset_value_is_unsupported():
    """A point whose value oneof is unset aborts flattening."""
    series = make_series(points=[
        make_point(monitoring_v3.TypedValue(int64_value=1)),
        make_point(monitoring_v3.TypedValue()),
    ])
    with pytest.raises(UnsupportedValueTypeError) as excinfo:
        flatten_series(series)
    assert excinfo.value.kind == "unset"
    assert "unsupported metric value type" in str(excinfo.value)


def test_series_without_points():
    """A series with no points flattens to an empty list."""
    series = make_series(resource_labels={"zone": "a"})
    assert flatten_series(series) == []


def test_points_keep_fetch_order_and_share_labels():
    """Points are not re-sorted and all reference the same label list."""
    series = make_series(
        resource_labels={"zone": "a"},
        points=[
            make_point(monitoring_v3.TypedValue(int64_value=2), start=T1),
            make_point(monitoring_v3.TypedValue(int64_value=1), start=T0),
        ],
    )
    points = flatten_series(series)

    assert [p.int64_value for p in points] == [2, 1]
    assert points[0].timestamp.timestamp() == T1
    assert points[1].timestamp.timestamp() == T0
    assert points[0].labels is points[1].labels


def test_missing_interval_start_uses_epoch():
    point = monitoring_v3.Point(
        interval=monitoring_v3.TimeInterval(end_time=timestamp_pb2.Timestamp(seconds=T0)),
        value=monitoring_v3.TypedValue(double_value=1.0),
    )
    (flat,) = flatten_series(make_series(points=[point]))
    assert flat.timestamp == EPOCH


def test_distribution_summary_fields_copied_verbatim():
    dist = Distribution(
        count=7,
        mean=0.30000000000000004,
        sum_of_squared_deviation=1e-300,
        bucket_counts=[0, 5, 0, 2, 0],
    )
    value = convert_distribution(dist)

    assert value.count == 7
    assert value.mean == 0.30000000000000004
    assert value.sum_of_squared_deviation == 1e-300
    assert value.bucket_counts == [0, 5, 0, 2, 0]
    assert value.range is None
    assert value.bucket_options is None
    assert value.exemplars == []


def test_distribution_range_present():
    value = convert_distribution(Distribution(count=2, range=Distribution.Range(min=-1.0, max=0.0)))
    assert value.range.min == -1.0
    assert value.range.max == 0.0


def test_distribution_linear_buckets():
    dist = Distribution(bucket_options=BucketOptions(
        linear_buckets=BucketOptions.Linear(num_finite_buckets=4, width=2.5, offset=-1.0)
    ))
    options = convert_distribution(dist).bucket_options.options

    assert layout_of(options) == "linear_buckets"
    assert options.linear_buckets.num_finite_buckets == 4
    assert options.linear_buckets.width == 2.5
    assert options.linear_buckets.offset == -1.0
    assert options.exponential_buckets is None
    assert options.explicit_buckets is None


def test_distribution_exponential_buckets():
    dist = Distribution(bucket_options=BucketOptions(
        exponential_buckets=BucketOptions.Exponential(num_finite_buckets=10, growth_factor=2.0, scale=0.5)
    ))
    options = convert_distribution(dist).bucket_options.options

    assert layout_of(options) == "exponential_buckets"
    assert options.exponential_buckets.num_finite_buckets == 10
    assert options.exponential_buckets.growth_factor == 2.0
    assert options.exponential_buckets.scale == 0.5
    assert options.linear_buckets is None
    assert options.explicit_buckets is None


def test_distribution_bucket_options_without_layout():
    """Bucket options that are set but carry no layout give an empty union."""
    dist = Distribution()
    dist.bucket_options.SetInParent()
    bucket_options = convert_distribution(dist).bucket_options

    assert bucket_options is not None
    assert layout_of(bucket_options.options) is None


def test_distribution_exemplars():
    dist = Distribution(count=1, exemplars=[
        Distribution.Exemplar(value=3.25, timestamp=timestamp_pb2.Timestamp(seconds=T0)),
        Distribution.Exemplar(value=1.0),
    ])
    exemplars = convert_distribution(dist).exemplars

    assert exemplars[0].value == 3.25
    assert exemplars[0].timestamp == datetime.fromtimestamp(T0, tz=timezone.utc)
    assert exemplars[1].timestamp == EPOCH


def test_end_to_end_scenario():
    """An int point and an explicit-bucket distribution share one label list."""
    dist = Distribution(
        count=3,
        mean=1.5,
        bucket_counts=[1, 2, 0],
        bucket_options=BucketOptions(explicit_buckets=BucketOptions.Explicit(bounds=[0.0, 1.0])),
    )
    series = make_series(
        resource_labels={"zone": "us-central1-a"},
        metric_labels={"instance": "i-1"},
        points=[
            make_point(monitoring_v3.TypedValue(int64_value=42), start=T0),
            make_point(monitoring_v3.TypedValue(distribution_value=dist), start=T1),
        ],
    )
    first, second = flatten_series(series)

    assert populated_values(first) == {"int64_value": 42}
    assert second.distribution_value.bucket_options.options.explicit_buckets.bounds == [0.0, 1.0]
    assert second.distribution_value.bucket_counts == [1, 2, 0]
    assert populated_values(second).keys() == {"distribution_value"}
    assert first.labels is second.labels
    assert label_set(first.labels) == {
        ("resource", "zone", "us-central1-a"),
        ("metric", "instance", "i-1"),
    }
