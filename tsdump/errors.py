"""Error types raised while dumping time series."""


class TsDumpError(Exception):
    """Base class for all errors that abort a dump run."""


class ClientSetupError(TsDumpError):
    """The monitoring client could not be created."""


class FetchError(TsDumpError):
    """The backend failed while the time series were being listed."""


class UnsupportedValueTypeError(TsDumpError):
    """A point carried a value kind the flattener does not know."""

    def __init__(self, kind):
        self.kind = kind if kind else "unset"
        super().__init__(f"unsupported metric value type: {self.kind}")


class SerializationError(TsDumpError):
    """Flattened points could not be encoded as JSON."""
