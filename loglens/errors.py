"""Exception hierarchy shared by the parser, store, and query layers."""


class LogLensError(Exception):
    """Base class for all engine errors."""


class ParseError(LogLensError):
    """A raw line could not be turned into a Record."""


class InvalidArgument(LogLensError):
    """A request or configuration was rejected before any work was done."""

    def __init__(self, message: str, details: list[str] | None = None):
        super().__init__(message)
        self.details = details or []


class EvaluationError(LogLensError):
    """A filter condition could not be evaluated against one record."""


class StoreError(LogLensError):
    """A store operation failed; the store itself stays usable."""


class StoreFullError(StoreError):
    pass


class DuplicateRecordError(StoreError):
    pass


class RecordNotFoundError(LogLensError):
    pass
