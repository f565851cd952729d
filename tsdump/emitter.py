"""JSON output of flattened series, one line per series."""
from typing import Any, List, Optional, TextIO
import logging
import math
import sys

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from tsdump.errors import SerializationError
from tsdump.series import Point

logger = logging.getLogger(__name__)

_POINTS_ADAPTER = TypeAdapter(List[Point])


def find_non_finite(value: Any, path: str = "") -> Optional[str]:
    """Location of the first NaN or infinite float in a dumped structure."""
    if isinstance(value, float):
        return None if math.isfinite(value) else path

    if isinstance(value, dict):
        items = ((f"{path}.{k}", v) for k, v in value.items())
    elif isinstance(value, list):
        items = ((f"{path}[{i}]", v) for i, v in enumerate(value))
    else:
        return None

    for item_path, item in items:
        found = find_non_finite(item, item_path)
        if found is not None:
            return found
    return None


def serialize_points(points: List[Point]) -> str:
    """
    Encode the points of one series as a compact JSON array.

    JSON has no NaN or infinity, so a non-finite float anywhere in the
    points is an encoding failure rather than a silent ``null``.
    """
    try:
        non_finite = find_non_finite(_POINTS_ADAPTER.dump_python(points))
        if non_finite is None:
            return _POINTS_ADAPTER.dump_json(points).decode("utf-8")
    except (PydanticSerializationError, UnicodeDecodeError) as e:
        raise SerializationError(f"could not encode points as JSON: {e}") from e

    raise SerializationError(
        f"could not encode points as JSON: non-finite float at {non_finite}"
    )


class SeriesEmitter:
    """Writes one JSON document per series to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        # Resolved lazily so a replaced sys.stdout is honoured.
        self._stream = stream
        self.emitted = 0

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, points: List[Point]):
        """Write the points of one series as a single line."""
        line = serialize_points(points)
        self.stream.write(line + "\n")
        self.stream.flush()
        self.emitted += 1
        logger.debug(f"Emitted series #{self.emitted} with {len(points)} points")
