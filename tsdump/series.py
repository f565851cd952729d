"""Data structures for flattened time-series points."""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class KeyValue(BaseModel):
    """A single label, tagged with the map it came from."""
    type: Literal["resource", "metric"]
    key: str
    value: str


class Range(BaseModel):
    """Observed min/max of a distribution."""
    min: float
    max: float


class LinearBuckets(BaseModel):
    num_finite_buckets: int
    width: float
    offset: float


class ExponentialBuckets(BaseModel):
    num_finite_buckets: int
    growth_factor: float
    scale: float


class ExplicitBuckets(BaseModel):
    bounds: List[float] = Field(default_factory=list)


class OptionsUnion(BaseModel):
    """At most one bucket layout is populated."""
    linear_buckets: Optional[LinearBuckets] = None
    exponential_buckets: Optional[ExponentialBuckets] = None
    explicit_buckets: Optional[ExplicitBuckets] = None

    @model_validator(mode='after')
    def validate_single_layout(self):
        """Reject more than one populated layout."""
        populated = [
            name for name in ("linear_buckets", "exponential_buckets", "explicit_buckets")
            if getattr(self, name) is not None
        ]
        if len(populated) > 1:
            raise ValueError(f"Only one bucket layout may be set, got {populated}")
        return self


class BucketOptions(BaseModel):
    options: OptionsUnion = Field(default_factory=OptionsUnion)


class Exemplar(BaseModel):
    """Example value attached to a distribution."""
    value: float
    timestamp: datetime


class DistributionValue(BaseModel):
    """Histogram-style summary copied from a distribution point."""
    count: int
    mean: float
    sum_of_squared_deviation: float
    range: Optional[Range] = None
    bucket_options: Optional[BucketOptions] = None
    bucket_counts: List[int] = Field(default_factory=list)
    exemplars: List[Exemplar] = Field(default_factory=list)


class ValueKind(str, Enum):
    """Kinds of point values; each value is its output field name."""
    BOOL = "bool_value"
    INT64 = "int64_value"
    DOUBLE = "double_value"
    STRING = "string_value"
    DISTRIBUTION = "distribution_value"


@dataclass(frozen=True)
class TypedValue:
    """A point value together with its kind."""
    kind: ValueKind
    value: Union[bool, int, float, str, DistributionValue]


class Point(BaseModel):
    """
    One sample of a time series in its output shape.

    Exactly one of the ``*_value`` fields is set; the others stay ``None``
    and serialize as ``null``.
    """
    timestamp: datetime
    labels: List[KeyValue]
    bool_value: Optional[bool] = None
    int64_value: Optional[int] = None
    double_value: Optional[float] = None
    string_value: Optional[str] = None
    distribution_value: Optional[DistributionValue] = None

    @classmethod
    def from_value(cls, timestamp: datetime, labels: List[KeyValue], value: TypedValue) -> "Point":
        """
        Spread a typed value into its matching optional field.

        Built without re-validation, so all points of a series keep the
        very same ``labels`` list object.
        """
        fields: Dict[str, Any] = {value.kind.value: value.value}
        return cls.model_construct(timestamp=timestamp, labels=labels, **fields)
